"""Record decoding in HistoryKafkaConsumer."""

from __future__ import annotations

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from services.history_service.config import Settings
from services.history_service.kafka_consumer import HistoryKafkaConsumer
from services.history_service.projection_service import HistoryProjectionService


@pytest.fixture
def projection_service() -> AsyncMock:
    service = AsyncMock(spec=HistoryProjectionService)
    service.apply.return_value = True
    return service


@pytest.fixture
def metrics() -> dict[str, MagicMock]:
    return {"history_events_dropped_total": MagicMock()}


@pytest.fixture
def consumer(projection_service: AsyncMock, metrics: dict[str, MagicMock]) -> HistoryKafkaConsumer:
    return HistoryKafkaConsumer(Settings(), projection_service, metrics)


async def test_decodes_camel_case_payload(
    consumer: HistoryKafkaConsumer, projection_service: AsyncMock, make_record: Any
) -> None:
    payload = {"eventId": "e-1", "appointmentId": "a-1", "patientName": "João Silva"}

    applied = await consumer.process_record(make_record(json.dumps(payload).encode()))

    assert applied is True
    event = projection_service.apply.await_args.args[0]
    assert (event.event_id, event.appointment_id, event.patient_name) == (
        "e-1",
        "a-1",
        "João Silva",
    )


@pytest.mark.parametrize("value", [b"not json", b"[1, 2]", b""])
async def test_undecodable_record_is_dropped(
    consumer: HistoryKafkaConsumer,
    projection_service: AsyncMock,
    metrics: dict[str, MagicMock],
    make_record: Any,
    value: bytes,
) -> None:
    applied = await consumer.process_record(make_record(value))

    assert applied is False
    projection_service.apply.assert_not_awaited()
    metrics["history_events_dropped_total"].labels.assert_called_once_with(reason="undecodable")
