"""Protocol definitions for Notification Service dependency injection."""

from __future__ import annotations

from typing import Protocol

from common_core.domain_enums import NotificationChannel, NotificationType
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from services.notification_service.models_db import Notification


class RenderedTemplate(BaseModel):
    subject: str
    html_content: str
    text_content: str


class NotificationRepositoryProtocol(Protocol):
    async def find_by_triple(
        self,
        session: AsyncSession,
        appointment_id: str,
        notification_type: NotificationType,
        channel: NotificationChannel,
    ) -> Notification | None: ...

    async def find_by_event_id(self, session: AsyncSession, event_id: str) -> Notification | None:
        ...

    async def create(self, session: AsyncSession, notification: Notification) -> Notification:
        """Insert a new record.

        Raises:
            sqlalchemy.exc.IntegrityError: The triple already has a record
        """
        ...

    async def save(self, session: AsyncSession, notification: Notification) -> Notification: ...


class TemplateRendererProtocol(Protocol):
    async def render(self, template_id: str, variables: dict[str, str]) -> RenderedTemplate: ...


class EmailSenderProtocol(Protocol):
    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> None:
        """Deliver one email.

        Raises:
            ClinicServiceError: EXTERNAL_SERVICE_ERROR when delivery fails
        """
        ...

    def get_provider_name(self) -> str: ...
