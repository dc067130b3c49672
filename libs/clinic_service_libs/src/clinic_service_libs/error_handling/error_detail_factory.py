"""
Factory for ErrorDetail instances with automatic context capture.
"""

from __future__ import annotations

import traceback
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from common_core.error_enums import ErrorCode, SchedulingErrorCode
from common_core.models.error_models import ErrorDetail


def create_error_detail_with_context(
    error_code: ErrorCode | SchedulingErrorCode,
    message: str,
    service: str,
    operation: str,
    correlation_id: UUID | None = None,
    details: dict[str, Any] | None = None,
    capture_stack: bool = True,
) -> ErrorDetail:
    """
    Build an ErrorDetail, generating a correlation id when none is given.

    Args:
        error_code: Code classifying the error
        message: Human readable message
        service: Service raising the error
        operation: Operation that failed
        correlation_id: Correlation id of the request or event, if known
        details: Extra structured context
        capture_stack: Whether to attach the current stack trace

    Returns:
        A frozen ErrorDetail
    """
    stack_trace = "".join(traceback.format_stack()[:-1]) if capture_stack else None

    return ErrorDetail(
        error_code=error_code,
        message=message,
        correlation_id=correlation_id or uuid4(),
        timestamp=datetime.now(UTC),
        service=service,
        operation=operation,
        details=details or {},
        stack_trace=stack_trace,
    )
