"""Database URL construction shared by every service."""

from __future__ import annotations

import os
from urllib.parse import quote_plus


def build_database_url(
    *,
    database_name: str,
    service_env_var_prefix: str,
    is_production: bool,
    dev_port: int = 5432,
    dev_host: str = "localhost",
    url_encode_password: bool = True,
) -> str:
    """
    Build an asyncpg database URL for a service.

    Resolution order:
    1. ``<PREFIX>_DATABASE_URL`` (service-specific override)
    2. ``SERVICE_DATABASE_URL`` (generic override)
    3. Production: ``CLINIC_DB_USER`` plus ``CLINIC_PROD_DB_HOST/PORT/PASSWORD``
    4. Development: ``CLINIC_DB_USER``/``CLINIC_DB_PASSWORD`` on ``dev_host:dev_port``

    Raises:
        ValueError: If the credentials needed for the selected mode are missing
    """
    override = os.getenv(f"{service_env_var_prefix}_DATABASE_URL") or os.getenv(
        "SERVICE_DATABASE_URL"
    )
    if override:
        return override

    user = os.getenv("CLINIC_DB_USER")
    if is_production:
        host = os.getenv("CLINIC_PROD_DB_HOST")
        port = os.getenv("CLINIC_PROD_DB_PORT", "5432")
        password = os.getenv("CLINIC_PROD_DB_PASSWORD")
        if not (user and host and password):
            raise ValueError(
                "Production database requires CLINIC_DB_USER, CLINIC_PROD_DB_HOST "
                "and CLINIC_PROD_DB_PASSWORD"
            )
    else:
        host = dev_host
        port = str(dev_port)
        password = os.getenv("CLINIC_DB_PASSWORD")
        if not (user and password):
            raise ValueError(
                "Missing required database credentials: CLINIC_DB_USER and CLINIC_DB_PASSWORD"
            )

    if url_encode_password:
        password = quote_plus(password)

    return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{database_name}"
