"""Integration tests for AppointmentReminderService."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import MagicMock

import pytest
from common_core.domain_enums import AppointmentStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.scheduler_service.config import Settings
from services.scheduler_service.implementations.appointment_repository_impl import (
    SQLAlchemyAppointmentRepository,
)
from services.scheduler_service.implementations.outbox_repository_impl import (
    SQLAlchemyOutboxRepository,
)
from services.scheduler_service.implementations.reminder_job import AppointmentReminderService
from services.scheduler_service.models_db import Appointment, EventOutbox

# 2025-12-07 09:00 in Sao Paulo; "tomorrow" is 2025-12-08 local
NOW = datetime(2025, 12, 7, 12, 0, tzinfo=UTC)


def _utc(day: int, hour: int) -> datetime:
    return datetime(2025, 12, day, hour, 0, tzinfo=UTC)


class RejectingOutboxRepository(SQLAlchemyOutboxRepository):
    def __init__(self, fail_for: str) -> None:
        self.fail_for = fail_for

    async def add_event(self, session: AsyncSession, **kwargs: Any) -> Any:
        if kwargs["aggregate_id"] == self.fail_for:
            raise RuntimeError("payload rejected")
        return await super().add_event(session, **kwargs)


async def _book(
    session_factory: async_sessionmaker[AsyncSession],
    users: Any,
    start_at: datetime,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
) -> Appointment:
    appointment = Appointment(
        patient_id=users.patient.id,
        doctor_id=users.doctor.id,
        start_at=start_at,
        end_at=start_at.replace(minute=30),
        status=status,
    )
    async with session_factory() as session, session.begin():
        session.add(appointment)
    return appointment


async def _reminder_rows(session_factory: async_sessionmaker[AsyncSession]) -> list[EventOutbox]:
    async with session_factory() as session:
        result = await session.execute(
            select(EventOutbox).where(EventOutbox.event_type == "AppointmentReminderRequested")
        )
        return list(result.scalars())


def _service(
    session_factory: async_sessionmaker[AsyncSession],
    settings: Settings,
    outbox: SQLAlchemyOutboxRepository | None = None,
    metrics: dict[str, Any] | None = None,
) -> AppointmentReminderService:
    return AppointmentReminderService(
        session_factory=session_factory,
        appointment_repository=SQLAlchemyAppointmentRepository(),
        outbox_repository=outbox or SQLAlchemyOutboxRepository(),
        settings=settings,
        metrics=metrics,
    )


class TestSendRemindersForTomorrow:
    async def test_queues_reminders_only_for_open_appointments_tomorrow(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        users: Any,
    ) -> None:
        # 10:00 and 16:00 local on Dec 8
        requested = await _book(session_factory, users, _utc(8, 13), AppointmentStatus.REQUESTED)
        confirmed = await _book(session_factory, users, _utc(8, 19), AppointmentStatus.CONFIRMED)
        await _book(session_factory, users, _utc(8, 15), AppointmentStatus.CANCELLED)
        # 23:00 local on Dec 7: today, not tomorrow
        await _book(session_factory, users, _utc(8, 2), AppointmentStatus.CONFIRMED)
        # 01:00 local on Dec 9
        await _book(session_factory, users, _utc(9, 4), AppointmentStatus.CONFIRMED)
        metrics = {"appointment_reminders_queued_total": MagicMock()}

        service = _service(session_factory, settings, metrics=metrics)

        queued = await service.send_reminders_for_tomorrow(now=NOW)

        assert queued == 2
        rows = await _reminder_rows(session_factory)
        assert {r.aggregate_id for r in rows} == {str(requested.id), str(confirmed.id)}
        times = {r.payload["appointmentTime"] for r in rows}
        assert times == {"10:00", "16:00"}
        assert all(r.payload["notificationType"] == "APPOINTMENT_REMINDER" for r in rows)
        assert all(r.payload["patientEmail"] == "joao@clinic.test" for r in rows)
        metrics["appointment_reminders_queued_total"].inc.assert_called_once_with(2)

    async def test_one_failing_appointment_does_not_block_the_rest(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        users: Any,
    ) -> None:
        broken = await _book(session_factory, users, _utc(8, 12), AppointmentStatus.CONFIRMED)
        healthy = await _book(session_factory, users, _utc(8, 14), AppointmentStatus.CONFIRMED)
        outbox = RejectingOutboxRepository(fail_for=str(broken.id))

        queued = await _service(session_factory, settings, outbox).send_reminders_for_tomorrow(
            now=NOW
        )

        assert queued == 1
        rows = await _reminder_rows(session_factory)
        assert [r.aggregate_id for r in rows] == [str(healthy.id)]

    @pytest.mark.parametrize("status", [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED])
    async def test_closed_appointments_get_no_reminder(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
        users: Any,
        status: AppointmentStatus,
    ) -> None:
        await _book(session_factory, users, _utc(8, 13), status)

        assert await _service(session_factory, settings).send_reminders_for_tomorrow(now=NOW) == 0
