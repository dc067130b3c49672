"""SQLAlchemy implementation of NotificationRepositoryProtocol."""

from __future__ import annotations

from common_core.domain_enums import NotificationChannel, NotificationType
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification_service.models_db import Notification
from services.notification_service.protocols import NotificationRepositoryProtocol


class SQLAlchemyNotificationRepository(NotificationRepositoryProtocol):
    async def find_by_triple(
        self,
        session: AsyncSession,
        appointment_id: str,
        notification_type: NotificationType,
        channel: NotificationChannel,
    ) -> Notification | None:
        result = await session.execute(
            select(Notification).where(
                Notification.appointment_id == appointment_id,
                Notification.notification_type == notification_type,
                Notification.channel == channel,
            )
        )
        return result.scalar_one_or_none()

    async def find_by_event_id(self, session: AsyncSession, event_id: str) -> Notification | None:
        result = await session.execute(
            select(Notification).where(Notification.event_id == event_id)
        )
        return result.scalar_one_or_none()

    async def create(self, session: AsyncSession, notification: Notification) -> Notification:
        session.add(notification)
        await session.flush()
        return notification

    async def save(self, session: AsyncSession, notification: Notification) -> Notification:
        merged = await session.merge(notification)
        await session.flush()
        return merged
