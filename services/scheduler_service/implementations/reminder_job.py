"""
Daily appointment reminders.

``AppointmentReminderService`` queues one ``AppointmentReminderRequested``
outbox row per appointment starting tomorrow (clinic local day).
``DailyReminderJob`` runs it every day at ``REMINDER_JOB_HOUR:REMINDER_JOB_MINUTE``
in the clinic timezone.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, time, timedelta
from typing import TYPE_CHECKING, Any
from zoneinfo import ZoneInfo

from clinic_service_libs.logging_utils import create_service_logger
from common_core.domain_enums import AppointmentEventType, AppointmentStatus

from services.scheduler_service.event_factory import AGGREGATE_TYPE, build_reminder_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from services.scheduler_service.config import Settings
    from services.scheduler_service.protocols import (
        AppointmentRepositoryProtocol,
        OutboxRepositoryProtocol,
    )

logger = create_service_logger("scheduler_service.reminder_job")

REMINDER_STATUSES = (AppointmentStatus.REQUESTED, AppointmentStatus.CONFIRMED)


def tomorrow_bounds(now: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds of the local calendar day after ``now``."""
    local_tomorrow = now.astimezone(tz).date() + timedelta(days=1)
    start = datetime.combine(local_tomorrow, time.min, tzinfo=tz)
    end = datetime.combine(local_tomorrow, time.max, tzinfo=tz)
    return start.astimezone(UTC), end.astimezone(UTC)


def seconds_until_next_run(now: datetime, tz: ZoneInfo, hour: int, minute: int) -> float:
    """Seconds from ``now`` until the next local ``hour:minute``; never zero."""
    local_now = now.astimezone(tz)
    target = local_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= local_now:
        target = datetime.combine(
            local_now.date() + timedelta(days=1), time(hour, minute), tzinfo=tz
        )
    return (target.astimezone(UTC) - now.astimezone(UTC)).total_seconds()


class AppointmentReminderService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        appointment_repository: AppointmentRepositoryProtocol,
        outbox_repository: OutboxRepositoryProtocol,
        settings: Settings,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.appointments = appointment_repository
        self.outbox = outbox_repository
        self.settings = settings
        self.metrics = metrics or {}
        self.clinic_tz = ZoneInfo(settings.CLINIC_TIMEZONE)

    async def send_reminders_for_tomorrow(self, now: datetime | None = None) -> int:
        """
        Queue a reminder for every REQUESTED or CONFIRMED appointment tomorrow.

        Each appointment is written in its own savepoint, so a failure is
        logged and skipped without losing the reminders already queued.

        Returns:
            Number of reminders queued
        """
        now = now or datetime.now(UTC)
        start, end = tomorrow_bounds(now, self.clinic_tz)
        queued = 0

        async with self.session_factory() as session, session.begin():
            appointments = await self.appointments.find_for_reminder(
                session, start, end, REMINDER_STATUSES
            )
            logger.info(
                f"Found {len(appointments)} appointments for reminders",
                window_start=start.isoformat(),
                window_end=end.isoformat(),
            )

            for appointment in appointments:
                try:
                    async with session.begin_nested():
                        event = build_reminder_event(
                            appointment,
                            patient=appointment.patient,
                            doctor=appointment.doctor,
                            clinic_tz=self.clinic_tz,
                            now=now,
                        )
                        await self.outbox.add_event(
                            session,
                            aggregate_type=AGGREGATE_TYPE,
                            aggregate_id=str(appointment.id),
                            event_type=AppointmentEventType.REMINDER_REQUESTED.value,
                            payload=event.to_payload(),
                            topic=self.settings.APPOINTMENT_EVENTS_TOPIC,
                        )
                    queued += 1
                except Exception as e:
                    logger.error(
                        f"Failed to queue reminder: {e}",
                        appointment_id=str(appointment.id),
                        exc_info=True,
                    )

        counter = self.metrics.get("appointment_reminders_queued_total")
        if counter is not None and queued:
            counter.inc(queued)
        logger.info(f"Queued {queued} appointment reminders")
        return queued


class DailyReminderJob:
    """Sleeps until the next configured local time, then runs the reminder service."""

    def __init__(self, reminder_service: AppointmentReminderService, settings: Settings) -> None:
        self.reminder_service = reminder_service
        self.settings = settings
        self.clinic_tz = ZoneInfo(settings.CLINIC_TIMEZONE)
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._running:
            logger.warning("Daily reminder job already running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info(
            "Daily reminder job started",
            hour=self.settings.REMINDER_JOB_HOUR,
            minute=self.settings.REMINDER_JOB_MINUTE,
            timezone=self.settings.CLINIC_TIMEZONE,
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Daily reminder job stopped")

    async def _run(self) -> None:
        while self._running:
            delay = seconds_until_next_run(
                datetime.now(UTC),
                self.clinic_tz,
                self.settings.REMINDER_JOB_HOUR,
                self.settings.REMINDER_JOB_MINUTE,
            )
            logger.debug(f"Next reminder run in {delay:.0f}s")
            await asyncio.sleep(delay)

            logger.info("Starting daily appointment reminder run")
            try:
                await self.reminder_service.send_reminders_for_tomorrow()
                logger.info("Daily appointment reminder run finished")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Daily appointment reminder run failed: {e}", exc_info=True)
