"""Configuration settings for Notification Service.

Environment variables are prefixed with 'NOTIFICATION_' for service isolation.
"""

from __future__ import annotations

import os
from typing import Literal

from clinic_service_libs.config import SecureServiceSettings
from common_core.event_enums import ProcessingEvent, topic_name
from dotenv import find_dotenv, load_dotenv
from pydantic_settings import SettingsConfigDict

# Load .env file from repository root, regardless of current working directory
load_dotenv(find_dotenv(".env"))


class Settings(SecureServiceSettings):
    """Configuration settings for Notification Service."""

    model_config = SettingsConfigDict(env_prefix="NOTIFICATION_", extra="ignore")

    SERVICE_NAME: str = "notification_service"

    # Kafka consumption
    APPOINTMENT_EVENTS_TOPIC: str = topic_name(ProcessingEvent.APPOINTMENT_EVENT)
    CONSUMER_GROUP: str = "notification-consumers"
    DLT_CONSUMER_GROUP: str = "notification-dlt-consumers"
    CONSUMER_CLIENT_ID: str = "notification-service-consumer"
    PRODUCER_CLIENT_ID: str = "notification-service-dlt-producer"

    # Transport-level retry before dead-lettering: RETRY_MAX_RETRIES + 1 attempts
    RETRY_BACKOFF_MS: int = 120000
    RETRY_MAX_RETRIES: int = 2

    # Per-notification state machine
    MAX_NOTIFICATION_ATTEMPTS: int = 3
    LAST_ERROR_MAX_LENGTH: int = 500

    # Email provider configuration
    EMAIL_PROVIDER: Literal["mock", "smtp"] = "mock"
    SMTP_HOST: str = "localhost"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_USE_TLS: bool = True
    SMTP_TIMEOUT: int = 30
    DEFAULT_FROM_EMAIL: str = "noreply@clinic.local"
    DEFAULT_FROM_NAME: str = "Clínica"
    MOCK_PROVIDER_FAILURE_RATE: float = 0.0

    TEMPLATE_PATH: str = "templates"
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"

    @property
    def DATABASE_URL(self) -> str:
        """Return the PostgreSQL database URL."""
        env_type = os.getenv("ENV_TYPE", "development").lower()
        if env_type == "docker":
            dev_host = os.getenv("NOTIFICATION_SERVICE_DB_HOST", "notification_db")
            dev_port = int(os.getenv("NOTIFICATION_SERVICE_DB_PORT", "5432"))
        else:
            dev_host = "localhost"
            dev_port = 5443

        return self.build_database_url(
            database_name="clinic_notification",
            service_env_var_prefix="NOTIFICATION_SERVICE",
            dev_port=dev_port,
            dev_host=dev_host,
        )
