"""SQLAlchemy models for Scheduler Service.

Users live in one table tagged by role. Appointments, their audit history and
the transactional outbox are written together in a single unit of work.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Optional
from uuid import UUID, uuid4

from common_core.domain_enums import AppointmentStatus, UserRole
from common_core.identity_models import (
    ClinicUser,
    DoctorUser,
    NurseUser,
    PatientUser,
    UserIdentity,
)
from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy import (
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utc_now() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC; naive values read back from SQLite are already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""


class UserRecord(Base):
    """Doctor, nurse or patient; role-specific columns are null for other roles."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    role: Mapped[UserRole] = mapped_column(
        SQLAlchemyEnum(
            UserRole,
            name="user_role_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Doctor
    crm: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    specialty: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # Nurse
    coren: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    # Patient
    cpf: Mapped[Optional[str]] = mapped_column(String(14), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    def to_identity(self) -> ClinicUser:
        """Map the row to its tagged-union variant."""
        identity = UserIdentity(user_id=self.id, name=self.name, email=self.email)
        if self.role is UserRole.DOCTOR:
            return DoctorUser(identity=identity, crm=self.crm, specialty=self.specialty)
        if self.role is UserRole.NURSE:
            return NurseUser(identity=identity, coren=self.coren)
        return PatientUser(identity=identity, cpf=self.cpf, phone=self.phone)


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    patient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    doctor_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    nurse_id: Mapped[Optional[UUID]] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    created_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)

    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLAlchemyEnum(
            AppointmentStatus,
            name="appointment_status_enum",
            values_callable=lambda obj: [e.value for e in obj],
        ),
        nullable=False,
        default=AppointmentStatus.REQUESTED,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    patient: Mapped[UserRecord] = relationship(foreign_keys=[patient_id], lazy="joined")
    doctor: Mapped[UserRecord] = relationship(foreign_keys=[doctor_id], lazy="joined")

    __table_args__ = (
        Index("ix_appointments_doctor_start", "doctor_id", "start_at"),
        Index("ix_appointments_patient_start", "patient_id", "start_at"),
        Index("ix_appointments_status_start", "status", "start_at"),
    )


class AppointmentHistory(Base):
    """Audit trail of appointment state changes."""

    __tablename__ = "appointment_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    appointment_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("appointments.id"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    snapshot: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    changed_by: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True)
    event_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class EventOutbox(Base):
    """Transactional Outbox table for reliable event publishing.

    Rows are written in the same transaction as the state change they
    describe and marked processed by the relay after the broker acknowledged
    the whole batch.
    """

    __tablename__ = "event_outbox"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    aggregate_type: Mapped[str] = mapped_column(String(100), nullable=False)
    aggregate_id: Mapped[str] = mapped_column(String(255), nullable=False)

    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)

    processed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    # Python-side default keeps microsecond ordering within a batch.
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("ix_event_outbox_unprocessed_created", "processed", "created_at"),
        Index("ix_event_outbox_aggregate", "aggregate_type", "aggregate_id"),
    )
