"""Shared fixtures for Notification Service tests."""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from typing import Any

import pytest
from aiokafka import ConsumerRecord
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from services.notification_service.config import Settings
from services.notification_service.models_db import Base


class FakeEmailSender:
    """Captures sends; the first ``failures`` calls raise."""

    def __init__(self, failures: int = 0, error_message: str = "SMTP connection refused") -> None:
        self.failures = failures
        self.error_message = error_message
        self.calls = 0
        self.sent: list[dict[str, Any]] = []

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> None:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise RuntimeError(self.error_message)
        self.sent.append({"to": to, "subject": subject, "html_content": html_content})

    def get_provider_name(self) -> str:
        return "fake"


class FakeKafkaPublisher:
    def __init__(self) -> None:
        self.published: list[dict[str, Any]] = []

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def publish(
        self,
        topic: str,
        value: dict[str, Any] | bytes,
        key: str | bytes | None = None,
        headers: list[tuple[str, bytes]] | None = None,
    ) -> None:
        self.published.append({"topic": topic, "value": value, "key": key, "headers": headers})


@pytest.fixture
def settings() -> Settings:
    return Settings(MAX_NOTIFICATION_ATTEMPTS=3, LAST_ERROR_MAX_LENGTH=500)


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def failing_email_sender() -> FakeEmailSender:
    return FakeEmailSender(failures=1)


@pytest.fixture
def fake_publisher() -> FakeKafkaPublisher:
    return FakeKafkaPublisher()


@pytest.fixture
def event_payload() -> dict[str, Any]:
    return {
        "eventId": "evt-1",
        "appointmentId": "6f1c2a9e-1111-4c1b-9c55-0a5e2d3c4b10",
        "eventType": "AppointmentConfirmed",
        "status": "CONFIRMADO",
        "patientId": "0c7d1f0e-2222-4a8e-8f3e-1b2c3d4e5f60",
        "patientName": "João Silva",
        "patientEmail": "joao@clinic.test",
        "doctorName": "Dra. Ana Souza",
        "doctorSpecialty": "Cardiologia",
        "appointmentDate": "2025-12-08T10:00:00-03:00",
    }


@pytest.fixture
def make_record() -> Callable[..., ConsumerRecord]:
    def _make(
        value: dict[str, Any] | bytes,
        *,
        topic: str = "appointment-events",
        partition: int = 0,
        offset: int = 0,
        headers: list[tuple[str, bytes]] | None = None,
    ) -> ConsumerRecord:
        raw = value if isinstance(value, bytes) else json.dumps(value).encode()
        return ConsumerRecord(
            topic=topic,
            partition=partition,
            offset=offset,
            timestamp=0,
            timestamp_type=0,
            key=b"6f1c2a9e-1111-4c1b-9c55-0a5e2d3c4b10",
            value=raw,
            checksum=None,
            serialized_key_size=36,
            serialized_value_size=len(raw),
            headers=tuple(headers or ()),
        )

    return _make


@pytest.fixture
def make_email_sender() -> type[FakeEmailSender]:
    return FakeEmailSender
