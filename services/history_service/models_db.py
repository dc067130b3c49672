"""SQLAlchemy models for History Service.

``projected_appointment_history`` is a read-optimized projection of the
appointment events. ``processed_kafka_events`` is the idempotency ledger of
event ids already applied to it.
"""

from __future__ import annotations

from datetime import UTC, datetime, tzinfo
from typing import Optional
from uuid import UUID

from sqlalchemy import DateTime, Index, Integer, String, Uuid
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC; naive values read back from SQLite are already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class ProjectedAppointmentHistory(Base):
    __tablename__ = "projected_appointment_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    appointment_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, unique=True)

    patient_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    doctor_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    patient_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    doctor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Stored in UTC; see start_at_local for the clinic wall-clock value.
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    last_action: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    history_updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (Index("ix_projected_history_start_at", "start_at"),)

    def start_at_local(self, tz: tzinfo) -> datetime:
        return as_utc(self.start_at).astimezone(tz)


class ProcessedEvent(Base):
    """Existence of a row means the event must not be applied again."""

    __tablename__ = "processed_kafka_events"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
