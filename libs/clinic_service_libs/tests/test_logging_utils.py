"""
Unit tests for structlog configuration helpers.
"""

from __future__ import annotations

import structlog
from structlog.contextvars import clear_contextvars, get_contextvars

from clinic_service_libs.logging_utils import (
    add_service_context,
    bind_record_context,
    configure_service_logging,
    create_service_logger,
)


class TestLoggingUtils:
    def teardown_method(self) -> None:
        clear_contextvars()
        structlog.reset_defaults()

    def test_add_service_context_reads_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("SERVICE_NAME", "history_service")
        monkeypatch.setenv("ENVIRONMENT", "testing")

        event_dict = add_service_context(None, "info", {"event": "hello"})

        assert event_dict["service.name"] == "history_service"
        assert event_dict["deployment.environment"] == "testing"

    def test_configure_and_create_logger(self, monkeypatch) -> None:
        monkeypatch.setenv("LOG_FORMAT", "json")

        configure_service_logging("scheduler_service", environment="testing", log_level="DEBUG")
        logger = create_service_logger("scheduler_service.outbox_relay")

        logger.info("relay tick")

    def test_bind_record_context_sets_coordinates(self, make_record) -> None:
        record = make_record({"appointmentId": "a-1"}, partition=2, offset=11, key=b"a-1")

        bind_record_context(record, event_id="e-1")

        context = get_contextvars()
        assert context["topic"] == "appointment-events"
        assert context["partition"] == 2
        assert context["offset"] == 11
        assert context["record_key"] == "a-1"
        assert context["event_id"] == "e-1"
