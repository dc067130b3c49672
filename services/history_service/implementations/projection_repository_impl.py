"""SQLAlchemy implementation of ProjectionRepositoryProtocol."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.history_service.models_db import ProjectedAppointmentHistory
from services.history_service.protocols import (
    HistoryFilter,
    ProjectionRepositoryProtocol,
    ProjectionUpdate,
)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLAlchemyProjectionRepository(ProjectionRepositoryProtocol):
    async def upsert(
        self, session: AsyncSession, update: ProjectionUpdate
    ) -> ProjectedAppointmentHistory:
        """
        Update the row for ``update.appointment_id``, or insert one.

        Events without an appointment id always insert a new row.
        """
        row: ProjectedAppointmentHistory | None = None
        if update.appointment_id is not None:
            result = await session.execute(
                select(ProjectedAppointmentHistory).where(
                    ProjectedAppointmentHistory.appointment_id == update.appointment_id
                )
            )
            row = result.scalar_one_or_none()

        if row is None:
            row = ProjectedAppointmentHistory(appointment_id=update.appointment_id)
            session.add(row)

        row.patient_id = update.patient_id
        row.doctor_id = update.doctor_id
        row.patient_name = update.patient_name
        row.doctor_name = update.doctor_name
        row.start_at = update.start_at
        row.status = update.status
        row.last_action = update.last_action
        row.event_timestamp = update.event_timestamp

        await session.flush()
        return row

    async def find(
        self, session: AsyncSession, history_filter: HistoryFilter
    ) -> Sequence[ProjectedAppointmentHistory]:
        stmt = select(ProjectedAppointmentHistory)
        if history_filter.patient_id is not None:
            stmt = stmt.where(ProjectedAppointmentHistory.patient_id == history_filter.patient_id)
        if history_filter.doctor_id is not None:
            stmt = stmt.where(ProjectedAppointmentHistory.doctor_id == history_filter.doctor_id)
        if history_filter.patient_name:
            stmt = stmt.where(
                ProjectedAppointmentHistory.patient_name.ilike(
                    f"%{escape_like(history_filter.patient_name)}%", escape="\\"
                )
            )
        if history_filter.start_from is not None:
            stmt = stmt.where(ProjectedAppointmentHistory.start_at >= history_filter.start_from)
        if history_filter.start_to is not None:
            stmt = stmt.where(ProjectedAppointmentHistory.start_at <= history_filter.start_to)
        if history_filter.status is not None:
            stmt = stmt.where(ProjectedAppointmentHistory.status == history_filter.status)

        result = await session.execute(stmt.order_by(ProjectedAppointmentHistory.start_at))
        return result.scalars().all()
