"""Protocol definitions for Scheduler Service dependency injection.

Repositories take the caller's ``AsyncSession`` so that business writes and
outbox rows share one unit of work opened by the service layer.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

from common_core.domain_enums import AppointmentStatus
from sqlalchemy.ext.asyncio import AsyncSession

from services.scheduler_service.models_db import Appointment, EventOutbox, UserRecord


class OutboxRepositoryProtocol(Protocol):
    async def add_event(
        self,
        session: AsyncSession,
        *,
        aggregate_type: str,
        aggregate_id: str,
        event_type: str,
        payload: dict[str, Any],
        topic: str,
    ) -> UUID:
        """Stage an outbox row in the caller's transaction."""
        ...

    async def fetch_unprocessed(self, session: AsyncSession, limit: int) -> Sequence[EventOutbox]:
        """Oldest unprocessed rows first, at most ``limit``."""
        ...

    async def mark_processed(self, session: AsyncSession, events: Sequence[EventOutbox]) -> None:
        ...


class UserRepositoryProtocol(Protocol):
    async def get_by_id(self, session: AsyncSession, user_id: UUID) -> UserRecord | None: ...


class AppointmentRepositoryProtocol(Protocol):
    async def get_by_id(self, session: AsyncSession, appointment_id: UUID) -> Appointment | None:
        ...

    async def add(self, session: AsyncSession, appointment: Appointment) -> Appointment: ...

    async def has_overlap(
        self,
        session: AsyncSession,
        doctor_id: UUID,
        start_at: datetime,
        end_at: datetime,
        exclude_id: UUID | None = None,
    ) -> bool:
        """True if the doctor has a non-cancelled appointment intersecting the range."""
        ...

    async def add_history(
        self,
        session: AsyncSession,
        appointment: Appointment,
        action: str,
        changed_by: UUID | None,
    ) -> None: ...

    async def list_appointments(
        self,
        session: AsyncSession,
        *,
        patient_id: UUID | None = None,
        doctor_id: UUID | None = None,
    ) -> Sequence[Appointment]: ...

    async def find_for_reminder(
        self,
        session: AsyncSession,
        start: datetime,
        end: datetime,
        statuses: Sequence[AppointmentStatus],
    ) -> Sequence[Appointment]: ...
