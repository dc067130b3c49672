"""
Appointment lifecycle for the Scheduler Service.

Every state change runs in one unit of work that saves the appointment, writes
an ``appointment_history`` audit row and stages one outbox event. If any step
fails nothing is written, so no event is ever relayed for a change that did
not commit.

The caller is passed explicitly as a :class:`CallerContext` on every method.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from clinic_service_libs.error_handling import (
    raise_authorization_error,
    raise_invalid_status_transition,
    raise_resource_not_found,
    raise_scheduling_conflict,
    raise_validation_error,
)
from clinic_service_libs.logging_utils import create_service_logger
from common_core.domain_enums import AppointmentEventType, AppointmentStatus, UserRole
from common_core.identity_models import CallerContext
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.scheduler_service.config import Settings
from services.scheduler_service.event_factory import AGGREGATE_TYPE, build_appointment_event
from services.scheduler_service.models_db import Appointment, UserRecord, as_utc
from services.scheduler_service.protocols import (
    AppointmentRepositoryProtocol,
    OutboxRepositoryProtocol,
    UserRepositoryProtocol,
)

logger = create_service_logger("scheduler_service.appointment_service")

SERVICE_NAME = "scheduler_service"

HISTORY_ACTIONS = {
    AppointmentEventType.CREATED: "CRIADO",
    AppointmentEventType.CONFIRMED: "CONFIRMADO",
    AppointmentEventType.CANCELLED: "CANCELADO",
    AppointmentEventType.COMPLETED: "REALIZADO",
    AppointmentEventType.RESCHEDULED: "REAGENDADO",
}


class AppointmentService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        appointment_repository: AppointmentRepositoryProtocol,
        user_repository: UserRepositoryProtocol,
        outbox_repository: OutboxRepositoryProtocol,
        settings: Settings,
    ) -> None:
        self.session_factory = session_factory
        self.appointments = appointment_repository
        self.users = user_repository
        self.outbox = outbox_repository
        self.settings = settings
        self.clinic_tz = ZoneInfo(settings.CLINIC_TIMEZONE)

    async def create_appointment(
        self,
        caller: CallerContext,
        patient_id: UUID,
        doctor_id: UUID,
        start_at: datetime,
        end_at: datetime | None = None,
        reason: str | None = None,
        nurse_id: UUID | None = None,
    ) -> Appointment:
        operation = "create_appointment"
        if not (caller.is_doctor or caller.is_nurse):
            raise_authorization_error(
                SERVICE_NAME,
                operation,
                "Apenas médicos ou enfermeiros podem criar consultas",
                user_id=str(caller.user_id),
            )

        start_at = as_utc(start_at)
        if end_at is None:
            end_at = start_at + timedelta(minutes=self.settings.DEFAULT_APPOINTMENT_MINUTES)
        end_at = as_utc(end_at)
        self._validate_range(operation, start_at, end_at)
        if start_at <= datetime.now(UTC):
            raise_validation_error(
                SERVICE_NAME,
                operation,
                "start_at",
                "Não é possível agendar consultas no passado",
            )

        logger.info(
            "Creating appointment",
            patient_id=str(patient_id),
            doctor_id=str(doctor_id),
            start_at=start_at.isoformat(),
        )

        async with self.session_factory() as session, session.begin():
            patient = await self._require_user(session, operation, patient_id, UserRole.PATIENT)
            doctor = await self._require_user(session, operation, doctor_id, UserRole.DOCTOR)

            if await self.appointments.has_overlap(session, doctor_id, start_at, end_at):
                raise_scheduling_conflict(
                    SERVICE_NAME,
                    operation,
                    "Médico já possui consulta neste horário",
                    doctor_id=str(doctor_id),
                )

            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                nurse_id=nurse_id,
                created_by=caller.user_id,
                start_at=start_at,
                end_at=end_at,
                status=AppointmentStatus.REQUESTED,
                reason=reason,
            )
            appointment.patient = patient
            appointment.doctor = doctor
            await self.appointments.add(session, appointment)
            await self._record_change(session, appointment, AppointmentEventType.CREATED, caller)

        logger.info("Appointment created", appointment_id=str(appointment.id))
        return appointment

    async def confirm_appointment(self, caller: CallerContext, appointment_id: UUID) -> Appointment:
        operation = "confirm_appointment"
        async with self.session_factory() as session, session.begin():
            appointment = await self._require_appointment(session, operation, appointment_id)
            if appointment.status is not AppointmentStatus.REQUESTED:
                raise_invalid_status_transition(
                    SERVICE_NAME,
                    operation,
                    "Apenas consultas com status SOLICITADO podem ser confirmadas",
                    current_status=appointment.status.value,
                )
            appointment.status = AppointmentStatus.CONFIRMED
            await self._record_change(session, appointment, AppointmentEventType.CONFIRMED, caller)

        logger.info("Appointment confirmed", appointment_id=str(appointment_id))
        return appointment

    async def cancel_appointment(self, caller: CallerContext, appointment_id: UUID) -> Appointment:
        operation = "cancel_appointment"
        async with self.session_factory() as session, session.begin():
            appointment = await self._require_appointment(session, operation, appointment_id)
            if caller.is_patient and appointment.patient_id != caller.user_id:
                raise_authorization_error(
                    SERVICE_NAME,
                    operation,
                    "Paciente só pode cancelar as próprias consultas",
                    user_id=str(caller.user_id),
                )
            if appointment.status is AppointmentStatus.COMPLETED:
                raise_invalid_status_transition(
                    SERVICE_NAME, operation, "Não é possível cancelar consultas já realizadas"
                )
            if appointment.status is AppointmentStatus.CANCELLED:
                raise_invalid_status_transition(
                    SERVICE_NAME, operation, "Consulta já está cancelada"
                )
            appointment.status = AppointmentStatus.CANCELLED
            await self._record_change(session, appointment, AppointmentEventType.CANCELLED, caller)

        logger.info("Appointment cancelled", appointment_id=str(appointment_id))
        return appointment

    async def complete_appointment(
        self, caller: CallerContext, appointment_id: UUID
    ) -> Appointment:
        operation = "complete_appointment"
        if not caller.is_doctor:
            raise_authorization_error(
                SERVICE_NAME,
                operation,
                "Apenas médicos podem marcar consultas como realizadas",
                user_id=str(caller.user_id),
            )
        async with self.session_factory() as session, session.begin():
            appointment = await self._require_appointment(session, operation, appointment_id)
            if appointment.status is AppointmentStatus.CANCELLED:
                raise_invalid_status_transition(
                    SERVICE_NAME,
                    operation,
                    "Não é possível marcar como realizada uma consulta cancelada",
                )
            if appointment.status is AppointmentStatus.COMPLETED:
                raise_invalid_status_transition(
                    SERVICE_NAME, operation, "Consulta já está marcada como realizada"
                )
            appointment.status = AppointmentStatus.COMPLETED
            await self._record_change(session, appointment, AppointmentEventType.COMPLETED, caller)

        logger.info("Appointment completed", appointment_id=str(appointment_id))
        return appointment

    async def reschedule_appointment(
        self,
        caller: CallerContext,
        appointment_id: UUID,
        new_start_at: datetime,
        new_end_at: datetime | None = None,
    ) -> Appointment:
        """Move an open appointment; its status is kept."""
        operation = "reschedule_appointment"
        new_start_at = as_utc(new_start_at)
        async with self.session_factory() as session, session.begin():
            appointment = await self._require_appointment(session, operation, appointment_id)
            if caller.is_patient and appointment.patient_id != caller.user_id:
                raise_authorization_error(
                    SERVICE_NAME,
                    operation,
                    "Paciente só pode reagendar as próprias consultas",
                    user_id=str(caller.user_id),
                )
            if appointment.status not in (AppointmentStatus.REQUESTED, AppointmentStatus.CONFIRMED):
                raise_invalid_status_transition(
                    SERVICE_NAME,
                    operation,
                    "Não é possível reagendar consultas realizadas ou canceladas",
                    current_status=appointment.status.value,
                )

            if new_end_at is None:
                duration = as_utc(appointment.end_at) - as_utc(appointment.start_at)
                new_end_at = new_start_at + duration
            new_end_at = as_utc(new_end_at)
            self._validate_range(operation, new_start_at, new_end_at)

            if await self.appointments.has_overlap(
                session,
                appointment.doctor_id,
                new_start_at,
                new_end_at,
                exclude_id=appointment.id,
            ):
                raise_scheduling_conflict(
                    SERVICE_NAME,
                    operation,
                    "Médico já possui consulta neste horário",
                    doctor_id=str(appointment.doctor_id),
                )

            appointment.start_at = new_start_at
            appointment.end_at = new_end_at
            await self._record_change(
                session, appointment, AppointmentEventType.RESCHEDULED, caller
            )

        logger.info(
            "Appointment rescheduled",
            appointment_id=str(appointment_id),
            start_at=new_start_at.isoformat(),
        )
        return appointment

    async def list_appointments(self, caller: CallerContext) -> Sequence[Appointment]:
        """Doctors and patients see their own appointments; nurses see all."""
        async with self.session_factory() as session:
            if caller.role is UserRole.DOCTOR:
                return await self.appointments.list_appointments(session, doctor_id=caller.user_id)
            if caller.role is UserRole.PATIENT:
                return await self.appointments.list_appointments(
                    session, patient_id=caller.user_id
                )
            return await self.appointments.list_appointments(session)

    async def _record_change(
        self,
        session: AsyncSession,
        appointment: Appointment,
        event_type: AppointmentEventType,
        caller: CallerContext,
    ) -> None:
        await session.flush()
        await self.appointments.add_history(
            session, appointment, HISTORY_ACTIONS[event_type], caller.user_id
        )
        event = build_appointment_event(
            appointment,
            event_type,
            patient=appointment.patient,
            doctor=appointment.doctor,
            clinic_tz=self.clinic_tz,
        )
        await self.outbox.add_event(
            session,
            aggregate_type=AGGREGATE_TYPE,
            aggregate_id=str(appointment.id),
            event_type=event_type.value,
            payload=event.to_payload(),
            topic=self.settings.APPOINTMENT_EVENTS_TOPIC,
        )

    async def _require_appointment(
        self, session: AsyncSession, operation: str, appointment_id: UUID
    ) -> Appointment:
        appointment = await self.appointments.get_by_id(session, appointment_id)
        if appointment is None:
            raise_resource_not_found(SERVICE_NAME, operation, "Appointment", str(appointment_id))
        return appointment

    async def _require_user(
        self, session: AsyncSession, operation: str, user_id: UUID, role: UserRole
    ) -> UserRecord:
        user = await self.users.get_by_id(session, user_id)
        if user is None or user.role is not role:
            raise_resource_not_found(SERVICE_NAME, operation, role.value.title(), str(user_id))
        if not user.is_active:
            raise_validation_error(
                SERVICE_NAME,
                operation,
                f"{role.value.lower()}_id",
                f"{role.value.title()} está inativo",
            )
        return user

    @staticmethod
    def _validate_range(operation: str, start_at: datetime, end_at: datetime) -> None:
        if start_at >= end_at:
            raise_validation_error(
                SERVICE_NAME,
                operation,
                "start_at",
                "Data de início deve ser anterior à data de fim",
            )
