"""Health and metrics routes for History Service."""

from __future__ import annotations

from clinic_service_libs.database_health import check_database_health
from clinic_service_libs.quart_app import ClinicApp
from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest
from quart import Blueprint, Response, current_app, jsonify

health_bp = Blueprint("health", __name__)


async def _health_payload() -> tuple[Response, int]:
    app: ClinicApp = current_app  # type: ignore[assignment]
    database = await check_database_health(app.database_engine)
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "service": "history_service",
        "dependencies": {"database": database},
    }
    return jsonify(body), 200 if healthy else 503


@health_bp.get("/healthz")
async def health_check() -> tuple[Response, int]:
    """Health check endpoint for Kubernetes/Docker."""
    return await _health_payload()


@health_bp.get("/health")
async def health_check_alt() -> tuple[Response, int]:
    """Alternative health check endpoint."""
    return await _health_payload()


@health_bp.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics endpoint."""
    return Response(generate_latest(REGISTRY), content_type=CONTENT_TYPE_LATEST)
