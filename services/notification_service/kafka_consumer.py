"""Kafka consumers for Notification Service.

:class:`NotificationKafkaConsumer` reads ``appointment-events`` and routes
each record through :class:`DeadLetterErrorHandler`: a failing record is
retried with a fixed backoff and then published to ``appointment-events-dlt``.
The offset is committed once the record succeeded or was dead-lettered.

:class:`DeadLetterKafkaConsumer` reads the dead-letter topic and only logs
each record for manual triage.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from aiokafka import AIOKafkaConsumer, TopicPartition
from aiokafka.errors import KafkaConnectionError
from clinic_service_libs.kafka_error_handler import (
    DLT_EXCEPTION_CLASS,
    DLT_EXCEPTION_MESSAGE,
    DeadLetterErrorHandler,
    NonRetryableRecordError,
    header_value,
)
from clinic_service_libs.logging_utils import bind_record_context, create_service_logger
from common_core.appointment_models import AppointmentEventV1
from common_core.domain_enums import AppointmentEventType, NotificationType
from common_core.event_enums import dead_letter_topic
from pydantic import ValidationError
from structlog.contextvars import clear_contextvars

if TYPE_CHECKING:
    from services.notification_service.config import Settings
    from services.notification_service.notification_handler import NotificationHandlerService

logger = create_service_logger("notification_service.kafka_consumer")


def decode_event(record: Any) -> AppointmentEventV1:
    try:
        return AppointmentEventV1.model_validate_json(record.value)
    except (ValidationError, ValueError, TypeError) as e:
        raise NonRetryableRecordError(f"Undecodable appointment event: {e}") from e


def is_reminder(event: AppointmentEventV1) -> bool:
    return (
        event.event_type == AppointmentEventType.REMINDER_REQUESTED.value
        or event.notification_type == NotificationType.APPOINTMENT_REMINDER.value
    )


class _ConsumerLoop(ABC):
    """Start/stop plumbing shared by both consumers."""

    name = "consumer"

    def __init__(self, settings: Settings, topics: list[str], group_id: str) -> None:
        self.settings = settings
        self.topics = topics
        self.group_id = group_id
        self.consumer: AIOKafkaConsumer | None = None
        self.should_stop = False
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._task is not None:
            logger.warning(f"{self.name} already running")
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
        self.consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=self.group_id,
            client_id=f"{self.settings.CONSUMER_CLIENT_ID}-{self.name}",
            auto_offset_reset="earliest",
            enable_auto_commit=False,
        )
        try:
            await self.consumer.start()
            logger.info(f"{self.name} started", topics=self.topics, group_id=self.group_id)
            await self._process_messages()
        except asyncio.CancelledError:
            logger.info(f"{self.name} task cancelled")
            raise
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}", exc_info=True)
            raise
        finally:
            await self.stop_consumer()

    async def stop_consumer(self) -> None:
        self.should_stop = True
        if self.consumer:
            try:
                await self.consumer.stop()
                logger.info(f"{self.name} stopped")
            except Exception as e:
                logger.error(f"Error stopping {self.name}: {e}")
            finally:
                self.consumer = None

    async def _process_messages(self) -> None:
        while not self.should_stop and self.consumer is not None:
            try:
                async for record in self.consumer:
                    if self.should_stop:
                        break
                    await self._consume(record)
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

    @abstractmethod
    async def _consume(self, record: Any) -> None:
        """Handle and commit one record."""


class NotificationKafkaConsumer(_ConsumerLoop):
    name = "notification consumer"

    def __init__(
        self,
        settings: Settings,
        handler_service: NotificationHandlerService,
        error_handler: DeadLetterErrorHandler,
        metrics: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(settings, [settings.APPOINTMENT_EVENTS_TOPIC], settings.CONSUMER_GROUP)
        self.handler_service = handler_service
        self.error_handler = error_handler
        self.metrics = metrics or {}

    async def _consume(self, record: Any) -> None:
        assert self.consumer is not None
        try:
            await self.error_handler.handle(record, self.process_record)
        except Exception as e:
            # Dead-letter publish failed: rewind so the record is redelivered.
            logger.error(
                f"Could not dead-letter record, rewinding to offset {record.offset}: {e}",
                exc_info=True,
            )
            self.consumer.seek(TopicPartition(record.topic, record.partition), record.offset)
            await asyncio.sleep(5)
            return
        finally:
            clear_contextvars()
        await self.consumer.commit()

    async def process_record(self, record: Any) -> None:
        """
        Decode one record and hand it to the matching notification path.

        Raises:
            NonRetryableRecordError: The record is not an appointment event
            Exception: Whatever the notification handler raised
        """
        bind_record_context(record)
        event = decode_event(record)

        if not event.appointment_id or not event.patient_email:
            logger.warning(
                "Event without appointmentId or patientEmail, skipping",
                appointment_id=event.appointment_id,
                patient_name=event.patient_name,
            )
            counter = self.metrics.get("notifications_skipped_total")
            if counter is not None:
                counter.labels(reason="missing_recipient").inc()
            return

        logger.info(
            "Appointment event received",
            appointment_id=event.appointment_id,
            patient_name=event.patient_name,
            event_type=event.event_type,
        )
        if is_reminder(event):
            await self.handler_service.handle_appointment_reminder(event)
        else:
            await self.handler_service.handle_appointment_confirmation(event)


class DeadLetterKafkaConsumer(_ConsumerLoop):
    """Logs dead-lettered appointment events. Nothing is reprocessed."""

    name = "dead-letter consumer"

    def __init__(self, settings: Settings, metrics: dict[str, Any] | None = None) -> None:
        super().__init__(
            settings,
            [dead_letter_topic(settings.APPOINTMENT_EVENTS_TOPIC)],
            settings.DLT_CONSUMER_GROUP,
        )
        self.metrics = metrics or {}

    async def _consume(self, record: Any) -> None:
        assert self.consumer is not None
        try:
            self.handle_dead_letter(record)
        finally:
            clear_contextvars()
        await self.consumer.commit()

    def handle_dead_letter(self, record: Any) -> None:
        bind_record_context(record)
        counter = self.metrics.get("dead_letter_records_total")
        if counter is not None:
            counter.inc()

        exception_message = header_value(record, DLT_EXCEPTION_MESSAGE)
        exception_class = header_value(record, DLT_EXCEPTION_CLASS)
        try:
            event = AppointmentEventV1.model_validate_json(record.value)
        except (ValidationError, ValueError, TypeError):
            logger.error(
                "Dead-lettered record could not be decoded",
                raw_value=record.value.decode("utf-8", errors="replace") if record.value else None,
                partition=record.partition,
                offset=record.offset,
                exception_class=exception_class,
                exception_message=exception_message,
            )
            return

        logger.error(
            "Dead-lettered appointment event requires manual action",
            appointment_id=event.appointment_id,
            patient_name=event.patient_name,
            patient_email=event.patient_email,
            doctor_name=event.doctor_name,
            appointment_date=event.appointment_date,
            partition=record.partition,
            offset=record.offset,
            exception_class=exception_class,
            exception_message=exception_message,
            payload=event.to_payload(),
        )
