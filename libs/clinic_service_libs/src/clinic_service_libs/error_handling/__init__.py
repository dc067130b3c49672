"""Structured error handling for clinic services."""

from .clinic_error import ClinicServiceError
from .error_detail_factory import create_error_detail_with_context
from .factories import (
    raise_authorization_error,
    raise_external_service_error,
    raise_invalid_request,
    raise_invalid_status_transition,
    raise_kafka_publish_error,
    raise_processing_error,
    raise_resource_not_found,
    raise_scheduling_conflict,
    raise_validation_error,
)

__all__ = [
    "ClinicServiceError",
    "create_error_detail_with_context",
    "raise_authorization_error",
    "raise_external_service_error",
    "raise_invalid_request",
    "raise_invalid_status_transition",
    "raise_kafka_publish_error",
    "raise_processing_error",
    "raise_resource_not_found",
    "raise_scheduling_conflict",
    "raise_validation_error",
]
