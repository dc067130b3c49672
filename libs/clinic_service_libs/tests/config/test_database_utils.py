from __future__ import annotations

from urllib.parse import quote_plus

import pytest

from clinic_service_libs.config.database_utils import build_database_url


class TestBuildDatabaseUrl:
    def test_service_specific_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        override = "postgresql+asyncpg://u:p@h:5432/db"
        monkeypatch.setenv("SCHEDULER_SERVICE_DATABASE_URL", override)
        monkeypatch.setenv("CLINIC_DB_USER", "ignored")

        url = build_database_url(
            database_name="clinic_scheduler",
            service_env_var_prefix="SCHEDULER_SERVICE",
            is_production=False,
        )

        assert url == override

    def test_generic_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        override = "sqlite+aiosqlite:///:memory:"
        monkeypatch.delenv("SCHEDULER_SERVICE_DATABASE_URL", raising=False)
        monkeypatch.setenv("SERVICE_DATABASE_URL", override)

        url = build_database_url(
            database_name="clinic_scheduler",
            service_env_var_prefix="SCHEDULER_SERVICE",
            is_production=False,
        )

        assert url == override

    def test_development_encodes_password(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HISTORY_SERVICE_DATABASE_URL", raising=False)
        monkeypatch.delenv("SERVICE_DATABASE_URL", raising=False)
        monkeypatch.setenv("CLINIC_DB_USER", "clinic")
        monkeypatch.setenv("CLINIC_DB_PASSWORD", "pa#ss:@/w?rd")

        url = build_database_url(
            database_name="clinic_history",
            service_env_var_prefix="HISTORY_SERVICE",
            is_production=False,
            dev_port=5444,
        )

        assert url == (
            f"postgresql+asyncpg://clinic:{quote_plus('pa#ss:@/w?rd')}@localhost:5444/clinic_history"
        )

    def test_production_requires_host(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("HISTORY_SERVICE_DATABASE_URL", raising=False)
        monkeypatch.delenv("SERVICE_DATABASE_URL", raising=False)
        monkeypatch.delenv("CLINIC_PROD_DB_HOST", raising=False)
        monkeypatch.setenv("CLINIC_DB_USER", "clinic")
        monkeypatch.setenv("CLINIC_PROD_DB_PASSWORD", "secret")

        with pytest.raises(ValueError):
            build_database_url(
                database_name="clinic_history",
                service_env_var_prefix="HISTORY_SERVICE",
                is_production=True,
            )

    def test_development_missing_credentials_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NOTIFICATION_SERVICE_DATABASE_URL", raising=False)
        monkeypatch.delenv("SERVICE_DATABASE_URL", raising=False)
        monkeypatch.delenv("CLINIC_DB_USER", raising=False)
        monkeypatch.delenv("CLINIC_DB_PASSWORD", raising=False)

        with pytest.raises(ValueError):
            build_database_url(
                database_name="clinic_notification",
                service_env_var_prefix="NOTIFICATION_SERVICE",
                is_production=False,
            )
