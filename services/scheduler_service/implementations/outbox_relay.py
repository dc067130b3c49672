"""
Outbox relay for the Scheduler Service.

``OutboxRelay.poll_and_relay_events`` moves one batch from the ``event_outbox``
table to Kafka. ``OutboxRelayWorker`` runs it on a fixed delay under a
distributed lock so that only one scheduler instance relays at a time.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from clinic_service_libs.logging_utils import create_service_logger

if TYPE_CHECKING:
    from clinic_service_libs.protocols import DistributedLockProtocol, KafkaPublisherProtocol
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from services.scheduler_service.config import Settings
    from services.scheduler_service.protocols import OutboxRepositoryProtocol

logger = create_service_logger("scheduler_service.outbox_relay")


class OutboxRelay:
    """Publishes unprocessed outbox rows and marks them processed atomically."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        outbox_repository: OutboxRepositoryProtocol,
        kafka_bus: KafkaPublisherProtocol,
        settings: Settings,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.outbox_repository = outbox_repository
        self.kafka_bus = kafka_bus
        self.settings = settings
        self.metrics = metrics or {}

    async def poll_and_relay_events(self) -> int:
        """
        Relay one batch of at most ``OUTBOX_BATCH_SIZE`` rows, oldest first.

        Each row is published to its topic keyed by ``aggregate_id``. The batch
        is marked processed only after every publish was acknowledged; a failed
        publish re-raises so the transaction rolls back and the whole batch is
        retried on the next tick.

        Returns:
            Number of rows relayed
        """
        started = time.perf_counter()
        async with self.session_factory() as session, session.begin():
            events = await self.outbox_repository.fetch_unprocessed(
                session, self.settings.OUTBOX_BATCH_SIZE
            )
            if not events:
                return 0

            logger.info(f"Relaying {len(events)} outbox events", event_count=len(events))

            for event in events:
                try:
                    await self.kafka_bus.publish(
                        topic=event.topic,
                        value=event.payload,
                        key=event.aggregate_id,
                    )
                except Exception as e:
                    logger.error(
                        "Publish failed, rolling back outbox batch",
                        outbox_id=str(event.id),
                        aggregate_id=event.aggregate_id,
                        event_type=event.event_type,
                        batch_size=len(events),
                        error=str(e),
                    )
                    self._inc("outbox_relay_failures_total")
                    raise

            await self.outbox_repository.mark_processed(session, events)

        self._inc("outbox_events_relayed_total", len(events))
        duration = self.metrics.get("outbox_relay_duration_seconds")
        if duration is not None:
            duration.observe(time.perf_counter() - started)
        logger.info(f"Relayed {len(events)} outbox events", event_count=len(events))
        return len(events)

    def _inc(self, name: str, amount: int = 1) -> None:
        counter = self.metrics.get(name)
        if counter is not None:
            counter.inc(amount)


class OutboxRelayWorker:
    """
    Fixed-delay loop around :class:`OutboxRelay`.

    Waits ``OUTBOX_INITIAL_DELAY_MS`` after start, then every tick tries the
    relay lock, runs one poll when acquired and sleeps ``OUTBOX_POLL_DELAY_MS``.
    """

    def __init__(
        self,
        relay: OutboxRelay,
        lock: DistributedLockProtocol,
        settings: Settings,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.relay = relay
        self.lock = lock
        self.settings = settings
        self.metrics = metrics or {}
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Start the relay loop as a background task."""
        if self._running:
            logger.warning("Outbox relay worker already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._run())
        logger.info("Outbox relay worker started")

    async def stop(self) -> None:
        """Stop the relay loop; an in-flight poll is cancelled and rolls back."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("Outbox relay worker stopped")

    async def run_once(self) -> int | None:
        """
        Run one locked poll.

        Returns:
            Rows relayed, or None when another instance held the lock
        """
        async with self.lock.hold(
            self.settings.OUTBOX_LOCK_NAME,
            min_hold_seconds=self.settings.OUTBOX_LOCK_MIN_HOLD_SECONDS,
            max_hold_seconds=self.settings.OUTBOX_LOCK_MAX_HOLD_SECONDS,
        ) as lease:
            if lease is None:
                logger.debug("Outbox relay lock held elsewhere, skipping tick")
                counter = self.metrics.get("outbox_relay_lock_skipped_total")
                if counter is not None:
                    counter.inc()
                return None
            return await self.relay.poll_and_relay_events()

    async def _run(self) -> None:
        logger.info(
            "Outbox relay worker loop starting",
            batch_size=self.settings.OUTBOX_BATCH_SIZE,
            poll_delay_ms=self.settings.OUTBOX_POLL_DELAY_MS,
            initial_delay_ms=self.settings.OUTBOX_INITIAL_DELAY_MS,
        )
        try:
            await asyncio.sleep(self.settings.OUTBOX_INITIAL_DELAY_MS / 1000)
            while self._running:
                try:
                    await self.run_once()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"Outbox relay poll failed: {e}", exc_info=True)
                await asyncio.sleep(self.settings.OUTBOX_POLL_DELAY_MS / 1000)
        except asyncio.CancelledError:
            logger.info("Outbox relay worker loop cancelled")
            raise
