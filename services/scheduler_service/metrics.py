"""Prometheus metrics for Scheduler Service."""

from __future__ import annotations

from typing import Any

from clinic_service_libs.logging_utils import create_service_logger
from prometheus_client import REGISTRY, Counter, Histogram

logger = create_service_logger("scheduler_service.metrics")

# Global metrics dictionary to avoid re-creation
_metrics: dict[str, Any] = {}


def _create_metrics() -> dict[str, Any]:
    try:
        metrics = {
            "outbox_events_relayed_total": Counter(
                "outbox_events_relayed_total",
                "Outbox rows published and marked processed",
                registry=REGISTRY,
            ),
            "outbox_relay_failures_total": Counter(
                "outbox_relay_failures_total",
                "Relay polls rolled back because a publish failed",
                registry=REGISTRY,
            ),
            "outbox_relay_lock_skipped_total": Counter(
                "outbox_relay_lock_skipped_total",
                "Relay ticks skipped because another instance held the lock",
                registry=REGISTRY,
            ),
            "outbox_relay_duration_seconds": Histogram(
                "outbox_relay_duration_seconds",
                "Duration of one relay poll in seconds",
                buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10),
                registry=REGISTRY,
            ),
            "appointment_reminders_queued_total": Counter(
                "appointment_reminders_queued_total",
                "Reminder events written to the outbox",
                registry=REGISTRY,
            ),
        }
        logger.info("Successfully created Scheduler Service metrics")
        return metrics
    except ValueError as e:
        if "Duplicated timeseries" in str(e):
            logger.warning(f"Metrics already exist in registry: {e}")
            return _get_existing_metrics()
        raise


def _get_existing_metrics() -> dict[str, Any]:
    names = {
        "outbox_events_relayed",
        "outbox_relay_failures",
        "outbox_relay_lock_skipped",
        "outbox_relay_duration_seconds",
        "appointment_reminders_queued",
    }
    existing: dict[str, Any] = {}
    for collector in list(REGISTRY._collector_to_names.keys()):
        name = getattr(collector, "_name", None)
        if name in names:
            key = name if name.endswith("_seconds") else f"{name}_total"
            existing[key] = collector
    return existing


def get_metrics() -> dict[str, Any]:
    """Get or create Scheduler Service metrics."""
    global _metrics

    if not _metrics:
        _metrics = _create_metrics()
    return _metrics
