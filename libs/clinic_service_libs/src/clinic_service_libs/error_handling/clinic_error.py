"""
Core exception carrying a structured ErrorDetail.
"""

from __future__ import annotations

from typing import Any

from common_core.models.error_models import ErrorDetail


class ClinicServiceError(Exception):
    """Exception raised by clinic services.

    Wraps an immutable :class:`ErrorDetail` so that error code, originating
    service and operation travel with the exception up to whichever boundary
    renders or logs it.
    """

    def __init__(self, error_detail: ErrorDetail) -> None:
        super().__init__(f"[{error_detail.error_code.value}] {error_detail.message}")
        self.error_detail = error_detail

    @property
    def error_code(self) -> str:
        return self.error_detail.error_code.value

    @property
    def message(self) -> str:
        return self.error_detail.message

    @property
    def correlation_id(self) -> str:
        return str(self.error_detail.correlation_id)

    @property
    def service(self) -> str:
        return self.error_detail.service

    @property
    def operation(self) -> str:
        return self.error_detail.operation

    def to_dict(self) -> dict[str, Any]:
        """Serializable error body for HTTP responses."""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "correlation_id": self.correlation_id,
                "service": self.service,
                "operation": self.operation,
                "details": self.error_detail.details,
                "timestamp": self.error_detail.timestamp.isoformat(),
            }
        }

    def __repr__(self) -> str:
        return (
            f"ClinicServiceError(error_code={self.error_code!r}, "
            f"message={self.message!r}, service={self.service!r}, "
            f"operation={self.operation!r})"
        )
