"""
Quart integration for ClinicServiceError.

Maps error codes to HTTP status codes and registers the global handlers every
service app installs.
"""

from __future__ import annotations

from typing import Any

from common_core.error_enums import ErrorCode, SchedulingErrorCode
from common_core.models.error_models import ErrorDetail
from quart import Quart, Response, jsonify

from clinic_service_libs.logging_utils import create_service_logger

from .clinic_error import ClinicServiceError

logger = create_service_logger("error-handling.quart")

ERROR_CODE_TO_STATUS: dict[ErrorCode | SchedulingErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.AUTHENTICATION_ERROR: 401,
    ErrorCode.AUTHORIZATION_ERROR: 403,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    SchedulingErrorCode.APPOINTMENT_CONFLICT: 409,
    SchedulingErrorCode.INVALID_STATUS_TRANSITION: 409,
    ErrorCode.EXTERNAL_SERVICE_ERROR: 502,
    ErrorCode.KAFKA_PUBLISH_ERROR: 503,
}


def status_for(error_detail: ErrorDetail) -> int:
    return ERROR_CODE_TO_STATUS.get(error_detail.error_code, 500)


def create_error_response(error_detail: ErrorDetail) -> tuple[Response, int]:
    """Render an ErrorDetail as a JSON response with its mapped status."""
    return jsonify(ClinicServiceError(error_detail).to_dict()), status_for(error_detail)


def register_error_handlers(app: Quart, service_name: str) -> None:
    """Install the ClinicServiceError and catch-all handlers."""

    @app.errorhandler(ClinicServiceError)
    async def handle_clinic_error(error: ClinicServiceError) -> tuple[Response, int]:
        logger.warning(f"Business error: {error}", service=service_name)
        return create_error_response(error.error_detail)

    @app.errorhandler(Exception)
    async def handle_exception(e: Exception) -> tuple[dict[str, Any], int]:
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return {
            "error": "Internal server error",
            "message": "An unexpected error occurred",
            "service": service_name,
        }, 500
