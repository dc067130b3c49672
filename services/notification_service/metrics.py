"""Prometheus metrics for Notification Service."""

from __future__ import annotations

from typing import Any

from clinic_service_libs.logging_utils import create_service_logger
from prometheus_client import REGISTRY, Counter

logger = create_service_logger("notification_service.metrics")

_metrics: dict[str, Any] = {}


def _create_metrics() -> dict[str, Any]:
    try:
        metrics = {
            "notifications_sent_total": Counter(
                "notifications_sent_total",
                "Notifications delivered",
                ["type"],
                registry=REGISTRY,
            ),
            "notifications_failed_total": Counter(
                "notifications_failed_total",
                "Failed notification send attempts",
                ["type"],
                registry=REGISTRY,
            ),
            "notifications_skipped_total": Counter(
                "notifications_skipped_total",
                "Inbound events that did not lead to a send",
                ["reason"],
                registry=REGISTRY,
            ),
            "dead_letter_records_total": Counter(
                "dead_letter_records_total",
                "Records read from the dead-letter topic",
                registry=REGISTRY,
            ),
        }
        logger.info("Successfully created Notification Service metrics")
        return metrics
    except ValueError as e:
        if "Duplicated timeseries" in str(e):
            logger.warning(f"Metrics already exist in registry: {e}")
            return _get_existing_metrics()
        raise


def _get_existing_metrics() -> dict[str, Any]:
    names = {
        "notifications_sent",
        "notifications_failed",
        "notifications_skipped",
        "dead_letter_records",
    }
    existing: dict[str, Any] = {}
    for collector in list(REGISTRY._collector_to_names.keys()):
        name = getattr(collector, "_name", None)
        if name in names:
            existing[f"{name}_total"] = collector
    return existing


def get_metrics() -> dict[str, Any]:
    """Get or create Notification Service metrics."""
    global _metrics

    if not _metrics:
        _metrics = _create_metrics()
    return _metrics
