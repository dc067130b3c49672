"""
Idempotency ledger backed by the ``processed_kafka_events`` table.

The lookup uses its own short read session and fails open: if the ledger
cannot be read the event is treated as new, trading a narrow duplicate window
for a consumer that keeps moving. The write joins the caller's unit of work
so the ledger row commits together with the projection change.
"""

from __future__ import annotations

from clinic_service_libs.logging_utils import create_service_logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.history_service.models_db import ProcessedEvent
from services.history_service.protocols import ProcessedEventLedgerProtocol

logger = create_service_logger("history_service.processed_event_ledger")


class SQLAlchemyProcessedEventLedger(ProcessedEventLedgerProtocol):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def should_process(self, event_id: str) -> bool:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(ProcessedEvent.event_id).where(ProcessedEvent.event_id == event_id)
                )
                return result.first() is None
        except Exception as e:
            logger.error(
                f"Ledger lookup failed, processing event without dedup check: {e}",
                event_id=event_id,
                exc_info=True,
            )
            return True

    async def mark_processed(self, session: AsyncSession, event_id: str) -> None:
        session.add(ProcessedEvent(event_id=event_id))
        await session.flush()
