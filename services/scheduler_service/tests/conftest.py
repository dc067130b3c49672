"""Shared fixtures for Scheduler Service tests.

Integration fixtures run against in-memory SQLite through aiosqlite with a
single shared connection. SQLite's driver-level transaction handling is
switched off so that SAVEPOINTs used by the reminder job behave as on
PostgreSQL.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import pytest
from common_core.domain_enums import UserRole
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from services.scheduler_service.config import Settings
from services.scheduler_service.models_db import Base, UserRecord


class FakeKafkaPublisher:
    """Records published records; optionally fails for one aggregate key."""

    def __init__(self, fail_on_key: str | None = None) -> None:
        self.published: list[dict[str, Any]] = []
        self.fail_on_key = fail_on_key
        self.attempts = 0

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        pass

    async def publish(
        self,
        topic: str,
        value: dict[str, Any] | bytes,
        key: str | None = None,
        headers: list[tuple[str, bytes]] | None = None,
    ) -> None:
        self.attempts += 1
        if self.fail_on_key is not None and key == self.fail_on_key:
            raise ConnectionError("broker unavailable")
        self.published.append({"topic": topic, "value": value, "key": key, "headers": headers})


class FakeLock:
    def __init__(self, acquired: bool = True) -> None:
        self.acquired = acquired
        self.holds: list[tuple[str, float, float]] = []

    @asynccontextmanager
    async def hold(
        self, name: str, *, min_hold_seconds: float, max_hold_seconds: float
    ) -> AsyncIterator[object | None]:
        self.holds.append((name, min_hold_seconds, max_hold_seconds))
        yield object() if self.acquired else None


@dataclass
class SeededUsers:
    doctor: UserRecord
    other_doctor: UserRecord
    nurse: UserRecord
    patient: UserRecord
    other_patient: UserRecord
    inactive_doctor: UserRecord


@pytest.fixture
def settings() -> Settings:
    return Settings(OUTBOX_BATCH_SIZE=50, CLINIC_TIMEZONE="America/Sao_Paulo")


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
    )

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
async def users(session_factory: async_sessionmaker[AsyncSession]) -> SeededUsers:
    def make(role: UserRole, name: str, **fields: Any) -> UserRecord:
        return UserRecord(id=uuid4(), role=role, name=name, **fields)

    seeded = SeededUsers(
        doctor=make(
            UserRole.DOCTOR,
            "Dra. Ana Souza",
            email="ana@clinic.test",
            crm="CRM-1",
            specialty="Cardiologia",
        ),
        other_doctor=make(UserRole.DOCTOR, "Dr. Bruno Lima", email="bruno@clinic.test"),
        nurse=make(UserRole.NURSE, "Enf. Carla", email="carla@clinic.test", coren="COREN-1"),
        patient=make(UserRole.PATIENT, "João Silva", email="joao@clinic.test", cpf="123"),
        other_patient=make(UserRole.PATIENT, "Maria Santos", email="maria@clinic.test"),
        inactive_doctor=make(
            UserRole.DOCTOR, "Dr. Inativo", email="inativo@clinic.test", is_active=False
        ),
    )
    async with session_factory() as session, session.begin():
        session.add_all(
            [
                seeded.doctor,
                seeded.other_doctor,
                seeded.nurse,
                seeded.patient,
                seeded.other_patient,
                seeded.inactive_doctor,
            ]
        )
    return seeded


@pytest.fixture
def fake_publisher() -> FakeKafkaPublisher:
    return FakeKafkaPublisher()


@pytest.fixture
def free_lock() -> FakeLock:
    return FakeLock(acquired=True)


@pytest.fixture
def busy_lock() -> FakeLock:
    return FakeLock(acquired=False)
