"""SQLAlchemy models for Notification Service.

One ``notifications`` row tracks delivery of one logical notification, keyed
by the (appointment_id, notification_type, channel) triple.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional
from uuid import UUID, uuid4

from common_core.domain_enums import NotificationChannel, NotificationStatus, NotificationType
from sqlalchemy import DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy import Enum as SQLAlchemyEnum
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(UTC)


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models."""


def _enum(enum_cls: type, name: str) -> SQLAlchemyEnum:
    return SQLAlchemyEnum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=lambda obj: [e.value for e in obj],
    )


class Notification(Base):
    """Delivery state machine for one notification.

    ``status == SENT`` implies ``sent_at`` is set. ``attempts`` counts failed
    sends only.
    """

    __tablename__ = "notifications"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    appointment_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    patient_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    notification_type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType, "notification_type_enum"), nullable=False
    )
    channel: Mapped[NotificationChannel] = mapped_column(
        _enum(NotificationChannel, "notification_channel_enum"), nullable=False
    )
    status: Mapped[NotificationStatus] = mapped_column(
        _enum(NotificationStatus, "notification_status_enum"),
        nullable=False,
        default=NotificationStatus.PENDING,
        index=True,
    )
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    scheduled_for: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    last_error: Mapped[Optional[str]] = mapped_column(String(500))
    event_id: Mapped[Optional[str]] = mapped_column(String(255), index=True)

    __table_args__ = (
        UniqueConstraint(
            "appointment_id",
            "notification_type",
            "channel",
            name="uq_notifications_appointment_type_channel",
        ),
    )
