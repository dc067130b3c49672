"""Configuration settings for History Service.

Environment variables are prefixed with 'HISTORY_' for service isolation.
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
    """Configuration settings for History Service."""

    model_config = SettingsConfigDict(env_prefix="HISTORY_", extra="ignore")

    SERVICE_NAME: str = "history_service"
    CONSUMER_CLIENT_ID: str = "history-service-consumer"
    CONSUMER_GROUP: str = "history-consumers"

    APPOINTMENT_EVENTS_TOPIC: str = topic_name(ProcessingEvent.APPOINTMENT_EVENT)
    CLINIC_TIMEZONE: str = "America/Sao_Paulo"

    @property
    def DATABASE_URL(self) -> str:
        """Return the PostgreSQL database URL."""
        env_type = os.getenv("ENV_TYPE", "development").lower()
        if env_type == "docker":
            dev_host = os.getenv("HISTORY_SERVICE_DB_HOST", "history_db")
            dev_port = int(os.getenv("HISTORY_SERVICE_DB_PORT", "5432"))
        else:
            dev_host = "localhost"
            dev_port = 5442

        return self.build_database_url(
            database_name="clinic_history",
            service_env_var_prefix="HISTORY_SERVICE",
            dev_port=dev_port,
            dev_host=dev_host,
        )
