"""SQLAlchemy implementation of AppointmentRepositoryProtocol."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from common_core.domain_enums import AppointmentStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.scheduler_service.models_db import Appointment, AppointmentHistory
from services.scheduler_service.protocols import AppointmentRepositoryProtocol


class SQLAlchemyAppointmentRepository(AppointmentRepositoryProtocol):
    async def get_by_id(self, session: AsyncSession, appointment_id: UUID) -> Appointment | None:
        return await session.get(Appointment, appointment_id)

    async def add(self, session: AsyncSession, appointment: Appointment) -> Appointment:
        session.add(appointment)
        await session.flush()
        return appointment

    async def has_overlap(
        self,
        session: AsyncSession,
        doctor_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        stmt = select(Appointment.id).where(
            Appointment.doctor_id == doctor_id,
            Appointment.status != AppointmentStatus.CANCELLED,
            Appointment.start_at < end_at,
            Appointment.end_at > start_at,
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)
        result = await session.execute(stmt.limit(1))
        return result.first() is not None

    async def add_history(
        self,
        session: AsyncSession,
        appointment: Appointment,
        action: str,
        changed_by: UUID | None,
    ) -> None:
        session.add(
            AppointmentHistory(
                appointment_id=appointment.id,
                action=action,
                snapshot={
                    "status": appointment.status.value,
                    "startAt": appointment.start_at.isoformat(),
                    "endAt": appointment.end_at.isoformat(),
                },
                changed_by=changed_by,
            )
        )
        await session.flush()

    async def list_appointments(
        self,
        session: AsyncSession,
        *,
        patient_id: UUID | None = None,
        doctor_id: UUID | None = None,
    ) -> Sequence[Appointment]:
        stmt = select(Appointment).order_by(Appointment.start_at)
        if patient_id is not None:
            stmt = stmt.where(Appointment.patient_id == patient_id)
        if doctor_id is not None:
            stmt = stmt.where(Appointment.doctor_id == doctor_id)
        result = await session.execute(stmt)
        return result.unique().scalars().all()

    async def find_for_reminder(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
        statuses: Sequence[AppointmentStatus],
    ) -> Sequence[Appointment]:
        stmt = (
            select(Appointment)
            .where(
                Appointment.start_at >= start,
                Appointment.start_at <= end,
                Appointment.status.in_(list(statuses)),
            )
            .order_by(Appointment.start_at)
        )
        result = await session.execute(stmt)
        return result.unique().scalars().all()
