"""Database connectivity check used by every service's health route."""

from __future__ import annotations

import time
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from clinic_service_libs.logging_utils import create_service_logger

logger = create_service_logger("database-health")


async def check_database_health(engine: AsyncEngine) -> dict[str, Any]:
    """Run ``SELECT 1`` and report status with latency."""
    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - started) * 1000, 2)}
