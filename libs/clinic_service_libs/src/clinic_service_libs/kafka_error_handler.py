"""
Record-level retry with fixed backoff and dead-letter routing.

Wraps the handling of a single consumed record. A failing handler is retried
``max_retries`` times with a fixed backoff; when every attempt fails, the
original record is published to the companion dead-letter topic and the
record counts as handled so the consumer can commit past it.

Retries here are independent of any per-entity attempt counters kept by the
handler itself.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from common_core.event_enums import dead_letter_topic

from clinic_service_libs.logging_utils import create_service_logger
from clinic_service_libs.protocols import KafkaPublisherProtocol

logger = create_service_logger("kafka-error-handler")

DLT_ORIGINAL_TOPIC = "dlt-original-topic"
DLT_ORIGINAL_PARTITION = "dlt-original-partition"
DLT_ORIGINAL_OFFSET = "dlt-original-offset"
DLT_EXCEPTION_MESSAGE = "dlt-exception-message"
DLT_EXCEPTION_CLASS = "dlt-exception-class"


class NonRetryableRecordError(Exception):
    """Raised for records that can never succeed, such as undecodable payloads."""


class DeadLetterErrorHandler:
    def __init__(
        self,
        *,
        publisher: KafkaPublisherProtocol,
        backoff_ms: int,
        max_retries: int,
    ) -> None:
        self.publisher = publisher
        self.backoff_ms = backoff_ms
        self.max_retries = max_retries

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    async def handle(
        self,
        record: Any,
        handler: Callable[[Any], Awaitable[None]],
    ) -> bool:
        """
        Run ``handler`` for ``record`` with retries.

        Returns:
            True if the handler succeeded, False if the record was dead-lettered

        Raises:
            Exception: If publishing to the dead-letter topic fails. The record
                must then stay uncommitted so it is redelivered.
        """
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                await handler(record)
                return True
            except NonRetryableRecordError as e:
                logger.error(
                    f"Non-retryable record at "
                    f"{record.topic}:{record.partition}:{record.offset}: {e}"
                )
                last_error = e
                break
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Attempt {attempt}/{self.max_attempts} failed for record "
                    f"{record.topic}:{record.partition}:{record.offset}: {e}",
                    exc_info=True,
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.backoff_ms / 1000)

        assert last_error is not None
        await self._publish_to_dead_letter(record, last_error)
        return False

    async def _publish_to_dead_letter(self, record: Any, error: Exception) -> None:
        target = dead_letter_topic(record.topic)
        headers = list(record.headers or ())
        headers.extend(
            [
                (DLT_ORIGINAL_TOPIC, record.topic.encode("utf-8")),
                (DLT_ORIGINAL_PARTITION, str(record.partition).encode("utf-8")),
                (DLT_ORIGINAL_OFFSET, str(record.offset).encode("utf-8")),
                (DLT_EXCEPTION_MESSAGE, str(error)[:1000].encode("utf-8")),
                (DLT_EXCEPTION_CLASS, type(error).__name__.encode("utf-8")),
            ]
        )
        await self.publisher.publish(
            target,
            record.value if isinstance(record.value, bytes) else b"",
            key=record.key,
            headers=headers,
        )
        logger.error(
            f"Record {record.topic}:{record.partition}:{record.offset} routed to {target} "
            f"after {type(error).__name__}: {error}"
        )


def header_value(record: Any, name: str) -> str | None:
    """Return a decoded header value from a consumed record, if present."""
    for key, value in record.headers or ():
        if key == name:
            return value.decode("utf-8", errors="replace") if value is not None else None
    return None
