"""Configuration settings for Scheduler Service.

Environment variables are prefixed with 'SCHEDULER_' for service isolation.
"""

from __future__ import annotations

import os

from clinic_service_libs.config import SecureServiceSettings
from common_core.event_enums import ProcessingEvent, topic_name
from dotenv import find_dotenv, load_dotenv
from pydantic_settings import SettingsConfigDict

# Load .env file from repository root, regardless of current working directory
load_dotenv(find_dotenv(".env"))


class Settings(SecureServiceSettings):
    """Configuration settings for Scheduler Service."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_", extra="ignore")

    SERVICE_NAME: str = "scheduler_service"
    PRODUCER_CLIENT_ID: str = "scheduler-service-producer"

    APPOINTMENT_EVENTS_TOPIC: str = topic_name(ProcessingEvent.APPOINTMENT_EVENT)
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"

    # Outbox relay
    OUTBOX_BATCH_SIZE: int = 50
    OUTBOX_POLL_DELAY_MS: int = 5000
    OUTBOX_INITIAL_DELAY_MS: int = 15000
    OUTBOX_LOCK_NAME: str = "OutboxRelay_pollAndRelayEvents"
    OUTBOX_LOCK_MIN_HOLD_SECONDS: float = 2.0
    OUTBOX_LOCK_MAX_HOLD_SECONDS: float = 30.0

    # Daily reminders
    REMINDER_JOB_ENABLED: bool = True
    REMINDER_JOB_HOUR: int = 8
    REMINDER_JOB_MINUTE: int = 0

    DEFAULT_APPOINTMENT_MINUTES: int = 30

    @property
    def DATABASE_URL(self) -> str:
        """Return the PostgreSQL database URL."""
        env_type = os.getenv("ENV_TYPE", "development").lower()
        if env_type == "docker":
            dev_host = os.getenv("SCHEDULER_SERVICE_DB_HOST", "scheduler_db")
            dev_port = int(os.getenv("SCHEDULER_SERVICE_DB_PORT", "5432"))
        else:
            dev_host = "localhost"
            dev_port = 5441

        return self.build_database_url(
            database_name="clinic_scheduler",
            service_env_var_prefix="SCHEDULER_SERVICE",
            dev_port=dev_port,
            dev_host=dev_host,
        )
