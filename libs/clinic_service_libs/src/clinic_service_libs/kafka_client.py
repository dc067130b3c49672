"""
Thin Kafka wrapper using aiokafka for clinic services.
"""

from __future__ import annotations

import json
import os
from typing import Any

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaConnectionError, KafkaTimeoutError

from .logging_utils import create_service_logger
from .protocols import Headers, KafkaPublisherProtocol

logger = create_service_logger("kafka-client")

KAFKA_BOOTSTRAP_SERVERS = os.getenv("KAFKA_BOOTSTRAP_SERVERS", "kafka:9092")


def encode_value(value: dict[str, Any] | bytes) -> bytes:
    """Encode a record value; bytes pass through untouched."""
    if isinstance(value, bytes):
        return value
    return json.dumps(value, ensure_ascii=False).encode("utf-8")


class KafkaBus(KafkaPublisherProtocol):
    def __init__(self, *, client_id: str, bootstrap_servers: str = KAFKA_BOOTSTRAP_SERVERS):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.producer = AIOKafkaProducer(
            bootstrap_servers=self.bootstrap_servers,
            client_id=self.client_id,
            acks="all",
            enable_idempotence=True,
        )
        self._started = False

    async def start(self) -> None:
        if not self._started:
            try:
                await self.producer.start()
                self._started = True
                logger.info(f"KafkaProducer '{self.client_id}' started successfully.")
            except KafkaConnectionError as e:
                logger.error(f"KafkaProducer '{self.client_id}' failed to start: {e}")
                raise

    async def stop(self) -> None:
        try:
            await self.producer.stop()
            self._started = False
            logger.info(f"KafkaProducer '{self.client_id}' stopped.")
        except Exception as e:
            logger.error(
                f"Error stopping KafkaProducer '{self.client_id}': {e}",
                exc_info=True,
            )

    async def publish(
        self,
        topic: str,
        value: dict[str, Any] | bytes,
        key: str | bytes | None = None,
        headers: Headers | None = None,
    ) -> None:
        if not self._started:
            logger.warning(f"KafkaProducer '{self.client_id}' not started. Attempting to start.")
            await self.start()
            if not self._started:
                raise RuntimeError(f"KafkaProducer '{self.client_id}' is not running.")
        try:
            key_bytes = key.encode("utf-8") if isinstance(key, str) else key
            record_metadata = await self.producer.send_and_wait(
                topic,
                value=encode_value(value),
                key=key_bytes,
                headers=headers,
            )
            logger.debug(
                f"Message published by '{self.client_id}' to {topic} "
                f"[partition:{record_metadata.partition}, offset:{record_metadata.offset}] "
                f"key={key!r}",
            )
        except KafkaTimeoutError:
            logger.error(f"Timeout publishing message by '{self.client_id}' to topic '{topic}'.")
            raise
        except Exception as e:
            logger.error(
                f"Error publishing message by '{self.client_id}' to topic '{topic}': {e}",
                exc_info=True,
            )
            raise
