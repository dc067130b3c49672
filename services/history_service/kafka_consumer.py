"""Kafka consumer for History Service.

Every record is handed to :class:`HistoryProjectionService`, which never
raises, and the offset is committed afterwards whatever the outcome.
Redelivery is therefore limited to records consumed but not yet committed
when the process stopped; the idempotency ledger absorbs those.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaConnectionError
from clinic_service_libs.logging_utils import create_service_logger, log_event_processing
from common_core.appointment_models import AppointmentEventV1
from pydantic import ValidationError
from structlog.contextvars import clear_contextvars

if TYPE_CHECKING:
    from services.history_service.config import Settings
    from services.history_service.projection_service import HistoryProjectionService

logger = create_service_logger("history_service.kafka_consumer")


class HistoryKafkaConsumer:
    def __init__(
        self,
        settings: Settings,
        projection_service: HistoryProjectionService,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        self.settings = settings
        self.projection_service = projection_service
        self.metrics = metrics or {}
        self.consumer: AIOKafkaConsumer | None = None
        self.should_stop = False
        self.topics = [settings.APPOINTMENT_EVENTS_TOPIC]
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        """Run the consumer as a background task."""
        if self._task is not None:
            logger.warning("History consumer already running")
            return
        self.should_stop = False
        self._task = asyncio.create_task(self.start_consumer())

    async def stop(self) -> None:
        self.should_stop = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self.stop_consumer()

    async def start_consumer(self) -> None:
        logger.info("Starting History Service Kafka consumer")
        self.consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=self.settings.CONSUMER_GROUP,
            client_id=self.settings.CONSUMER_CLIENT_ID,
            auto_offset_reset="earliest",
            enable_auto_commit=False,
        )
        try:
            await self.consumer.start()
            logger.info(
                "History Service Kafka consumer started",
                topics=self.topics,
                group_id=self.settings.CONSUMER_GROUP,
            )
            await self._process_messages()
        except asyncio.CancelledError:
            logger.info("History consumer task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in History Service Kafka consumer: {e}", exc_info=True)
            raise
        finally:
            await self.stop_consumer()

    async def stop_consumer(self) -> None:
        self.should_stop = True
        if self.consumer:
            try:
                await self.consumer.stop()
                logger.info("History Service Kafka consumer stopped")
            except Exception as e:
                logger.error(f"Error stopping History Service Kafka consumer: {e}")
            finally:
                self.consumer = None

    async def _process_messages(self) -> None:
        while not self.should_stop and self.consumer is not None:
            try:
                async for record in self.consumer:
                    if self.should_stop:
                        break
                    await self.process_record(record)
                    await self.consumer.commit()
            except KafkaConnectionError as kce:
                logger.error(f"Kafka connection error: {kce}", exc_info=True)
                if self.should_stop:
                    break
                await asyncio.sleep(5)
            except asyncio.CancelledError:
                logger.info("Message consumption cancelled")
                break
            except Exception as e:
                logger.error(f"Error in message processing loop: {e}", exc_info=True)
                await asyncio.sleep(5)

        logger.info("History Service message processing loop has finished")

    async def process_record(self, record: Any) -> bool:
        """Decode and project one record. Never raises.

        Returns:
            True if the projection was updated
        """
        log_event_processing(logger, "Appointment record received", record)
        try:
            try:
                event = AppointmentEventV1.model_validate_json(record.value)
            except (ValidationError, ValueError, TypeError) as e:
                logger.warning(f"Dropping undecodable record: {e}")
                counter = self.metrics.get("history_events_dropped_total")
                if counter is not None:
                    counter.labels(reason="undecodable").inc()
                return False

            logger.debug(
                "Applying appointment event",
                event_id=event.event_id,
                event_type=event.event_type,
                appointment_id=event.appointment_id,
            )
            return await self.projection_service.apply(event)
        finally:
            clear_contextvars()
