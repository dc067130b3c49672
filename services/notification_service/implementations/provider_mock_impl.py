"""Mock email provider for development and testing.

Records every email instead of sending it. A configurable failure rate lets
the retry path be exercised locally.
"""

from __future__ import annotations

import random
from datetime import UTC, datetime
from typing import Any

from clinic_service_libs.error_handling import raise_external_service_error
from clinic_service_libs.logging_utils import create_service_logger

from services.notification_service.config import Settings
from services.notification_service.protocols import EmailSenderProtocol

logger = create_service_logger("notification_service.provider_mock")


class MockEmailProvider(EmailSenderProtocol):
    def __init__(self, settings: Settings):
        self.settings = settings
        self._sent_emails: list[dict[str, Any]] = []

    async def send_email(
        self,
        to: str,
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> None:
        if random.random() < self.settings.MOCK_PROVIDER_FAILURE_RATE:
            logger.warning("Mock email send failed", to=to)
            raise_external_service_error(
                self.settings.SERVICE_NAME,
                "send_email",
                "mock",
                "Mock provider: simulated delivery failure",
            )

        self._sent_emails.append(
            {
                "to": to,
                "from_email": self.settings.DEFAULT_FROM_EMAIL,
                "subject": subject,
                "html_content": html_content,
                "text_content": text_content,
                "sent_at": datetime.now(UTC),
            }
        )
        logger.info("Mock email sent", to=to, subject=subject)

    def get_provider_name(self) -> str:
        return "mock"

    def get_sent_emails(self) -> list[dict[str, Any]]:
        """Sent emails, for inspection in tests."""
        return self._sent_emails.copy()
