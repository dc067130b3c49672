"""Protocol definitions for History Service dependency injection."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from services.history_service.models_db import ProjectedAppointmentHistory


@dataclass(frozen=True)
class ProjectionUpdate:
    """Validated fields of one appointment event, ready to project."""

    appointment_id: UUID | None
    patient_id: UUID
    doctor_id: UUID
    patient_name: str | None
    doctor_name: str | None
    start_at: datetime
    status: str | None
    last_action: str | None
    event_timestamp: datetime


@dataclass(frozen=True)
class HistoryFilter:
    """AND-combined query filters; None means unfiltered."""

    patient_id: UUID | None = None
    patient_name: str | None = None
    doctor_id: UUID | None = None
    start_from: datetime | None = None
    start_to: datetime | None = None
    status: str | None = None


class ProcessedEventLedgerProtocol(Protocol):
    async def should_process(self, event_id: str) -> bool:
        """False if the event was already applied; True on lookup failure."""
        ...

    async def mark_processed(self, session: AsyncSession, event_id: str) -> None:
        """Record the event inside the caller's unit of work."""
        ...


class ProjectionRepositoryProtocol(Protocol):
    async def upsert(
        self, session: AsyncSession, update: ProjectionUpdate
    ) -> ProjectedAppointmentHistory: ...

    async def find(
        self, session: AsyncSession, history_filter: HistoryFilter
    ) -> Sequence[ProjectedAppointmentHistory]: ...
