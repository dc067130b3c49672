"""
SQLAlchemy implementation of OutboxRepositoryProtocol.

Every method runs inside the session handed in by the caller; none of them
commits. The caller's ``session.begin()`` block decides whether the rows land.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from clinic_service_libs.logging_utils import create_service_logger
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from services.scheduler_service.models_db import EventOutbox
from services.scheduler_service.protocols import OutboxRepositoryProtocol

logger = create_service_logger("scheduler_service.outbox_repository")


class SQLAlchemyOutboxRepository(OutboxRepositoryProtocol):
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
        outbox_event = EventOutbox(
            aggregate_type=aggregate_type,
            aggregate_id=aggregate_id,
            event_type=event_type,
            payload=payload,
            topic=topic,
            processed=False,
        )
        session.add(outbox_event)
        await session.flush()

        logger.info(
            "Added event to outbox",
            outbox_id=str(outbox_event.id),
            aggregate_id=aggregate_id,
            event_type=event_type,
        )
        return outbox_event.id

    async def fetch_unprocessed(self, session: AsyncSession, limit: int) -> Sequence[EventOutbox]:
        """
        Retrieve unprocessed events for relay, oldest first.

        Rows are locked with SKIP LOCKED where the database supports it, so an
        instance whose relay lock expired mid-batch cannot publish the same rows
        as its successor.
        """
        stmt = (
            select(EventOutbox)
            .where(EventOutbox.processed.is_(False))
            .order_by(EventOutbox.created_at)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def mark_processed(self, session: AsyncSession, events: Sequence[EventOutbox]) -> None:
        if not events:
            return
        await session.execute(
            update(EventOutbox)
            .where(EventOutbox.id.in_([event.id for event in events]))
            .values(processed=True, processed_at=datetime.now(UTC))
        )
