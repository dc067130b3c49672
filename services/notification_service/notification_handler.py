"""
Notification dispatch with a per-notification retry state machine.

Each (appointment_id, notification_type, channel) triple owns one record:

- no record: create it PENDING, then send;
- SENT: nothing to do, the email already went out;
- FAILED with attempts >= MAX_NOTIFICATION_ATTEMPTS: permanently failed, ignored;
- otherwise (PENDING or FAILED below the limit): send again.

A failed send is persisted as FAILED with ``attempts + 1`` before the error
is re-raised. The attempt count is therefore kept while the consumer's
transport-level retry and dead-letter handling take over.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

from clinic_service_libs.logging_utils import create_service_logger
from common_core.appointment_models import AppointmentEventV1
from common_core.domain_enums import NotificationChannel, NotificationStatus, NotificationType
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.notification_service.config import Settings
from services.notification_service.models_db import Notification
from services.notification_service.protocols import (
    EmailSenderProtocol,
    NotificationRepositoryProtocol,
    TemplateRendererProtocol,
)

logger = create_service_logger("notification_service.notification_handler")

NOT_INFORMED = "Não informado"

TEMPLATES = {
    NotificationType.APPOINTMENT: "appointment_confirmation",
    NotificationType.APPOINTMENT_REMINDER: "appointment_reminder",
}


def generate_event_id(event: AppointmentEventV1) -> str:
    return f"{event.appointment_id}-{event.patient_id}-{int(time.time() * 1000)}"


def parse_appointment_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class NotificationHandlerService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: NotificationRepositoryProtocol,
        email_sender: EmailSenderProtocol,
        template_renderer: TemplateRendererProtocol,
        settings: Settings,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.repository = repository
        self.email_sender = email_sender
        self.template_renderer = template_renderer
        self.settings = settings
        self.metrics = metrics or {}
        self.clinic_tz = ZoneInfo(settings.CLINIC_TIMEZONE)

    async def handle_appointment_confirmation(self, event: AppointmentEventV1) -> None:
        await self._handle(event, NotificationType.APPOINTMENT)

    async def handle_appointment_reminder(self, event: AppointmentEventV1) -> None:
        await self._handle(event, NotificationType.APPOINTMENT_REMINDER)

    async def _handle(self, event: AppointmentEventV1, notification_type: NotificationType) -> None:
        """
        Drive the state machine for one inbound event.

        Raises:
            Exception: The send failure, after the FAILED state was persisted
        """
        channel = NotificationChannel.EMAIL
        appointment_id = event.appointment_id or ""
        logger.info(
            "Processing notification",
            appointment_id=appointment_id,
            patient_name=event.patient_name,
            notification_type=notification_type.value,
        )

        async with self.session_factory() as session:
            existing = await self.repository.find_by_triple(
                session, appointment_id, notification_type, channel
            )

        if existing is not None:
            if existing.status is NotificationStatus.SENT:
                logger.warning(
                    "Notification already sent, ignoring redelivery",
                    appointment_id=appointment_id,
                    notification_type=notification_type.value,
                    sent_at=existing.sent_at.isoformat() if existing.sent_at else None,
                )
                self._inc("notifications_skipped_total", reason="already_sent")
                return
            if (
                existing.status is NotificationStatus.FAILED
                and existing.attempts >= self.settings.MAX_NOTIFICATION_ATTEMPTS
            ):
                logger.error(
                    f"Notification failed after {existing.attempts} attempts, not retrying",
                    appointment_id=appointment_id,
                    notification_type=notification_type.value,
                    last_error=existing.last_error,
                )
                self._inc("notifications_skipped_total", reason="attempts_exhausted")
                return

            logger.info(
                f"Retrying notification, attempt {existing.attempts + 1}",
                appointment_id=appointment_id,
                status=existing.status.value,
            )
            await self._dispatch(existing, event, notification_type)
            return

        notification = Notification(
            appointment_id=appointment_id,
            patient_id=event.patient_id,
            notification_type=notification_type,
            channel=channel,
            status=NotificationStatus.PENDING,
            attempts=0,
            scheduled_for=parse_appointment_date(event.appointment_date),
            created_at=datetime.now(UTC),
            event_id=generate_event_id(event),
        )
        try:
            async with self.session_factory() as session, session.begin():
                await self.repository.create(session, notification)
        except IntegrityError:
            logger.warning(
                "Notification created concurrently by another consumer, skipping",
                appointment_id=appointment_id,
                notification_type=notification_type.value,
            )
            self._inc("notifications_skipped_total", reason="concurrent_create")
            return

        await self._dispatch(notification, event, notification_type)

    async def _dispatch(
        self,
        notification: Notification,
        event: AppointmentEventV1,
        notification_type: NotificationType,
    ) -> None:
        try:
            rendered = await self.template_renderer.render(
                TEMPLATES[notification_type], self.template_variables(event)
            )
            await self.email_sender.send_email(
                to=event.patient_email or "",
                subject=rendered.subject,
                html_content=rendered.html_content,
                text_content=rendered.text_content,
            )
        except Exception as e:
            notification.status = NotificationStatus.FAILED
            notification.attempts += 1
            notification.last_error = str(e)[: self.settings.LAST_ERROR_MAX_LENGTH]
            await self._save(notification)
            self._inc("notifications_failed_total", type=notification_type.value)

            logger.error(
                f"Failed to send notification, attempt "
                f"{notification.attempts}/{self.settings.MAX_NOTIFICATION_ATTEMPTS}: {e}",
                appointment_id=notification.appointment_id,
                notification_type=notification_type.value,
                to=event.patient_email,
            )
            if notification.attempts >= self.settings.MAX_NOTIFICATION_ATTEMPTS:
                logger.error(
                    "Maximum notification attempts reached, no further sends",
                    appointment_id=notification.appointment_id,
                )
            raise

        notification.status = NotificationStatus.SENT
        notification.sent_at = datetime.now(UTC)
        notification.last_error = None
        await self._save(notification)
        self._inc("notifications_sent_total", type=notification_type.value)
        logger.info(
            "Notification sent",
            appointment_id=notification.appointment_id,
            notification_type=notification_type.value,
            to=event.patient_email,
        )

    def template_variables(self, event: AppointmentEventV1) -> dict[str, str]:
        """Display values for the templates; anything missing reads 'Não informado'."""
        appointment_at = parse_appointment_date(event.appointment_date)
        date = time_of_day = NOT_INFORMED
        if appointment_at is not None:
            local = appointment_at.astimezone(self.clinic_tz)
            date = local.strftime("%d/%m/%Y")
            time_of_day = local.strftime("%H:%M")
        if event.appointment_time:
            time_of_day = event.appointment_time

        return {
            "patient_name": event.patient_name or NOT_INFORMED,
            "doctor_name": event.doctor_name or NOT_INFORMED,
            "specialty": event.doctor_specialty or NOT_INFORMED,
            "date": date,
            "time": time_of_day,
        }

    async def _save(self, notification: Notification) -> None:
        async with self.session_factory() as session, session.begin():
            await self.repository.save(session, notification)

    def _inc(self, name: str, **labels: str) -> None:
        metric = self.metrics.get(name)
        if metric is None:
            return
        if labels:
            metric.labels(**labels).inc()
        else:
            metric.inc()
