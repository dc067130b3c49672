"""
Unit tests for KafkaBus publishing.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from clinic_service_libs.kafka_client import KafkaBus, encode_value


@pytest.fixture
async def kafka_bus() -> KafkaBus:
    bus = KafkaBus(client_id="test-producer", bootstrap_servers="localhost:9092")
    bus.producer = MagicMock()
    bus.producer.send_and_wait = AsyncMock(return_value=MagicMock(partition=0, offset=7))
    bus._started = True
    return bus


class TestKafkaBus:
    async def test_publish_uses_key_and_json_value(self, kafka_bus: KafkaBus) -> None:
        await kafka_bus.publish("appointment-events", {"appointmentId": "a-1"}, key="a-1")

        kwargs = kafka_bus.producer.send_and_wait.call_args.kwargs
        assert kafka_bus.producer.send_and_wait.call_args.args[0] == "appointment-events"
        assert kwargs["key"] == b"a-1"
        assert json.loads(kwargs["value"]) == {"appointmentId": "a-1"}

    async def test_publish_passes_bytes_through(self, kafka_bus: KafkaBus) -> None:
        await kafka_bus.publish("appointment-events-dlt", b"raw", headers=[("h", b"v")])

        kwargs = kafka_bus.producer.send_and_wait.call_args.kwargs
        assert kwargs["value"] == b"raw"
        assert kwargs["key"] is None
        assert kwargs["headers"] == [("h", b"v")]

    async def test_publish_failure_propagates(self, kafka_bus: KafkaBus) -> None:
        kafka_bus.producer.send_and_wait.side_effect = RuntimeError("broker unavailable")

        with pytest.raises(RuntimeError):
            await kafka_bus.publish("appointment-events", {"a": 1}, key="a-1")


def test_encode_value_keeps_non_ascii() -> None:
    assert encode_value({"patientName": "João"}) == '{"patientName": "João"}'.encode("utf-8")
