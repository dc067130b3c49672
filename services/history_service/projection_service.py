"""
Applies appointment events to the history projection.

``apply`` never raises. Duplicates are skipped through the idempotency
ledger, malformed events are dropped with a warning because redelivery cannot
fix them, and persistence failures are logged so the consumer moves on to the
next record.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from clinic_service_libs.logging_utils import create_service_logger
from common_core.appointment_models import AppointmentEventV1
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.history_service.protocols import (
    ProcessedEventLedgerProtocol,
    ProjectionRepositoryProtocol,
    ProjectionUpdate,
)

logger = create_service_logger("history_service.projection_service")


class InvalidEventError(ValueError):
    """Event that can never be projected; carries the metric reason label."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason


def parse_uuid(value: str | None, field: str, *, required: bool) -> UUID | None:
    if not value:
        if required:
            raise InvalidEventError(f"missing_{field}", f"{field} é obrigatório")
        return None
    try:
        return UUID(value)
    except ValueError:
        raise InvalidEventError("invalid_identifier", f"{field} inválido: {value!r}") from None


def parse_iso_datetime(value: str, *, require_offset: bool = False) -> datetime:
    """Parse ISO-8601 into UTC.

    Values without an offset are taken as UTC, or rejected with ValueError
    when ``require_offset`` is set.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        if require_offset:
            raise ValueError(f"missing UTC offset: {value!r}")
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def to_projection_update(event: AppointmentEventV1) -> ProjectionUpdate:
    """Validate the event and map it to projection fields.

    Raises:
        InvalidEventError: patientId/doctorId missing or not UUIDs, or
            appointmentDate missing or unparsable
    """
    patient_id = parse_uuid(event.patient_id, "patientId", required=True)
    doctor_id = parse_uuid(event.doctor_id, "doctorId", required=True)
    appointment_id = parse_uuid(event.appointment_id, "appointmentId", required=False)

    if not event.appointment_date:
        raise InvalidEventError("missing_appointment_date", "appointmentDate é obrigatório")
    try:
        start_at = parse_iso_datetime(event.appointment_date, require_offset=True)
    except ValueError:
        raise InvalidEventError(
            "invalid_appointment_date",
            f"appointmentDate inválido: {event.appointment_date!r}",
        ) from None

    # Freshness over accuracy: a bad timestamp falls back to now.
    event_timestamp = datetime.now(UTC)
    if event.timestamp:
        try:
            event_timestamp = parse_iso_datetime(event.timestamp)
        except ValueError:
            logger.warning(f"Unparsable timestamp {event.timestamp!r}, using current time")

    assert patient_id is not None and doctor_id is not None
    return ProjectionUpdate(
        appointment_id=appointment_id,
        patient_id=patient_id,
        doctor_id=doctor_id,
        patient_name=event.patient_name,
        doctor_name=event.doctor_name,
        start_at=start_at,
        status=event.status,
        last_action=event.event_type,
        event_timestamp=event_timestamp,
    )


class HistoryProjectionService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        ledger: ProcessedEventLedgerProtocol,
        repository: ProjectionRepositoryProtocol,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.ledger = ledger
        self.repository = repository
        self.metrics = metrics or {}

    async def apply(self, event: AppointmentEventV1) -> bool:
        """
        Project one event.

        Returns:
            True if the projection and ledger were written, False if the event
            was a duplicate, malformed, or failed to persist
        """
        event_id = event.event_id
        if event_id:
            if not await self.ledger.should_process(event_id):
                logger.warning("Event already processed, skipping duplicate", event_id=event_id)
                self._inc("history_events_duplicate_total")
                return False
        else:
            logger.warning(
                "Event without eventId, processing without idempotency guarantee",
                appointment_id=event.appointment_id,
                event_type=event.event_type,
            )

        try:
            update = to_projection_update(event)
        except InvalidEventError as e:
            logger.warning(
                f"Dropping malformed event: {e}",
                event_id=event_id,
                patient_id=event.patient_id,
                doctor_id=event.doctor_id,
            )
            self._inc("history_events_dropped_total", reason=e.reason)
            return False

        try:
            async with self.session_factory() as session, session.begin():
                await self.repository.upsert(session, update)
                if event_id:
                    await self.ledger.mark_processed(session, event_id)
        except IntegrityError:
            logger.warning(
                "Event applied concurrently by another consumer, rolled back",
                event_id=event_id,
                appointment_id=event.appointment_id,
            )
            self._inc("history_events_duplicate_total")
            return False
        except Exception as e:
            logger.error(
                f"Failed to persist projection: {e}",
                event_id=event_id,
                patient_id=event.patient_id,
                doctor_id=event.doctor_id,
                event_type=event.event_type,
                exc_info=True,
            )
            self._inc("history_events_dropped_total", reason="persistence_error")
            return False

        logger.info(
            "History projection updated",
            event_id=event_id,
            appointment_id=event.appointment_id,
            start_at=update.start_at.isoformat(),
        )
        self._inc("history_events_applied_total")
        return True

    def _inc(self, name: str, **labels: str) -> None:
        metric = self.metrics.get(name)
        if metric is None:
            return
        if labels:
            metric.labels(**labels).inc()
        else:
            metric.inc()
