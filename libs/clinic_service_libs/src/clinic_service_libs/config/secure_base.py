"""Base settings class inherited by every service's Settings."""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .database_utils import build_database_url


class SecureServiceSettings(BaseSettings):
    """Settings shared across clinic services.

    Subclasses set their own ``env_prefix`` through ``model_config``.
    """

    model_config = SettingsConfigDict(extra="ignore")

    SERVICE_NAME: str = "clinic_service"
    ENVIRONMENT: Literal["development", "testing", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    REDIS_URL: str = "redis://redis:6379/0"
    HTTP_PORT: int = 8080

    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_PRE_PING: bool = True
    DATABASE_POOL_RECYCLE: int = 3600

    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    def build_database_url(
        self,
        *,
        database_name: str,
        service_env_var_prefix: str,
        dev_port: int = 5432,
        dev_host: str = "localhost",
    ) -> str:
        return build_database_url(
            database_name=database_name,
            service_env_var_prefix=service_env_var_prefix,
            is_production=self.is_production(),
            dev_port=dev_port,
            dev_host=dev_host,
        )
