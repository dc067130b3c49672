"""Shared fixtures for History Service tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

import pytest
from aiokafka import ConsumerRecord
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from services.history_service.config import Settings
from services.history_service.models_db import Base, ProjectedAppointmentHistory


@dataclass
class SeededHistory:
    p1: UUID
    p2: UUID
    d1: UUID
    d2: UUID


@pytest.fixture
def settings() -> Settings:
    return Settings(CLINIC_TIMEZONE="America/Sao_Paulo")


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
def make_record() -> Callable[..., ConsumerRecord]:
    def _make(value: bytes, *, partition: int = 0, offset: int = 0) -> ConsumerRecord:
        return ConsumerRecord(
            topic="appointment-events",
            partition=partition,
            offset=offset,
            timestamp=0,
            timestamp_type=0,
            key=None,
            value=value,
            checksum=None,
            serialized_key_size=0,
            serialized_value_size=len(value),
            headers=(),
        )

    return _make


@pytest.fixture
async def seeded_history(session_factory: async_sessionmaker[AsyncSession]) -> SeededHistory:
    """Four projection rows: three for p1, three for d1."""
    ids = SeededHistory(p1=uuid4(), p2=uuid4(), d1=uuid4(), d2=uuid4())

    def row(
        patient_id: UUID,
        patient_name: str,
        doctor_id: UUID,
        doctor_name: str,
        start_at: datetime,
        status: str,
    ) -> ProjectedAppointmentHistory:
        return ProjectedAppointmentHistory(
            appointment_id=uuid4(),
            patient_id=patient_id,
            doctor_id=doctor_id,
            patient_name=patient_name,
            doctor_name=doctor_name,
            start_at=start_at.replace(tzinfo=UTC),
            status=status,
            last_action="AppointmentCreated",
            event_timestamp=datetime(2025, 12, 1, 12, 0, tzinfo=UTC),
        )

    joao, santos = "João Silva", "Dr. Maria Santos"
    rows = [
        (ids.p1, joao, ids.d1, santos, datetime(2025, 12, 8, 10), "CONFIRMED"),
        (ids.p1, joao, ids.d2, "Dr. Pedro Costa", datetime(2025, 12, 9, 14), "SCHEDULED"),
        (ids.p2, "Maria Oliveira", ids.d1, santos, datetime(2025, 12, 10, 9), "CANCELLED"),
        (ids.p1, joao, ids.d1, santos, datetime(2025, 12, 15, 11), "CONFIRMED"),
    ]
    async with session_factory() as session, session.begin():
        session.add_all([row(*fields) for fields in rows])
    return ids
