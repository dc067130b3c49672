"""Role-scoped reads over the appointment history projection."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, time
from uuid import UUID
from zoneinfo import ZoneInfo

from clinic_service_libs.error_handling import (
    ClinicServiceError,
    raise_authorization_error,
    raise_external_service_error,
    raise_validation_error,
)
from clinic_service_libs.logging_utils import create_service_logger
from common_core.identity_models import CallerContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.history_service.config import Settings
from services.history_service.models_db import ProjectedAppointmentHistory, as_utc
from services.history_service.protocols import HistoryFilter, ProjectionRepositoryProtocol

logger = create_service_logger("history_service.query_service")

SERVICE_NAME = "history_service"
OPERATION = "get_history"


def parse_id(raw: str | UUID | None, field: str) -> UUID | None:
    if raw is None or isinstance(raw, UUID):
        return raw
    try:
        return UUID(raw)
    except ValueError:
        raise_validation_error(SERVICE_NAME, OPERATION, field, f"ID inválido: {raw}")


def local_day_bounds(raw: str, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds of the local calendar day ``raw`` (YYYY-MM-DD), both inclusive."""
    try:
        day = datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise_validation_error(
            SERVICE_NAME, OPERATION, "date", "Formato de data inválido. Use YYYY-MM-DD"
        )
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day, time.max, tzinfo=tz)
    return as_utc(start), as_utc(end)


class HistoryQueryService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository: ProjectionRepositoryProtocol,
        settings: Settings,
    ) -> None:
        self.session_factory = session_factory
        self.repository = repository
        self.clinic_tz = ZoneInfo(settings.CLINIC_TIMEZONE)

    async def get_history(
        self,
        caller: CallerContext | None,
        patient_id: str | UUID | None = None,
        patient_name: str | None = None,
        doctor_id: str | UUID | None = None,
        date: str | None = None,
        status: str | None = None,
    ) -> Sequence[ProjectedAppointmentHistory]:
        """
        Return projection rows visible to ``caller``, ordered by start time.

        Patients only ever see their own rows. Doctors default to their own
        rows unless a doctor filter is given. Nurses are unrestricted.

        Raises:
            ClinicServiceError: VALIDATION_ERROR for a malformed id or date,
                AUTHORIZATION_ERROR for a missing caller or a patient asking
                for someone else's history
        """
        patient_uuid = parse_id(patient_id, "patient_id")
        doctor_uuid = parse_id(doctor_id, "doctor_id")
        start_from = start_to = None
        if date:
            start_from, start_to = local_day_bounds(date, self.clinic_tz)

        if caller is None:
            raise_authorization_error(SERVICE_NAME, OPERATION, "Usuário não autenticado")

        if caller.is_patient:
            if patient_uuid is not None and patient_uuid != caller.user_id:
                raise_authorization_error(
                    SERVICE_NAME,
                    OPERATION,
                    "Paciente só pode visualizar o próprio histórico",
                    user_id=str(caller.user_id),
                    requested_patient_id=str(patient_uuid),
                )
            patient_uuid = caller.user_id
        elif caller.is_doctor and doctor_uuid is None:
            doctor_uuid = caller.user_id

        history_filter = HistoryFilter(
            patient_id=patient_uuid,
            patient_name=patient_name or None,
            doctor_id=doctor_uuid,
            start_from=start_from,
            start_to=start_to,
            status=status or None,
        )
        logger.debug(
            "Querying appointment history",
            caller_id=str(caller.user_id),
            role=caller.role.value,
            patient_id=str(patient_uuid) if patient_uuid else None,
            doctor_id=str(doctor_uuid) if doctor_uuid else None,
            date=date,
            status=status,
        )

        try:
            async with self.session_factory() as session:
                return await self.repository.find(session, history_filter)
        except ClinicServiceError:
            raise
        except Exception as e:
            logger.error(f"History query failed: {e}", exc_info=True)
            raise_external_service_error(
                SERVICE_NAME, OPERATION, "database", f"Falha ao consultar histórico: {e}"
            )
