"""Prometheus metrics for History Service."""

from __future__ import annotations

from typing import Any

from clinic_service_libs.logging_utils import create_service_logger
from prometheus_client import REGISTRY, Counter

logger = create_service_logger("history_service.metrics")

_metrics: dict[str, Any] = {}


def _create_metrics() -> dict[str, Any]:
    try:
        metrics = {
            "history_events_applied_total": Counter(
                "history_events_applied_total",
                "Events applied to the appointment history projection",
                registry=REGISTRY,
            ),
            "history_events_dropped_total": Counter(
                "history_events_dropped_total",
                "Events dropped without touching the projection",
                ["reason"],
                registry=REGISTRY,
            ),
            "history_events_duplicate_total": Counter(
                "history_events_duplicate_total",
                "Events skipped because they were already applied",
                registry=REGISTRY,
            ),
        }
        logger.info("Successfully created History Service metrics")
        return metrics
    except ValueError as e:
        if "Duplicated timeseries" in str(e):
            logger.warning(f"Metrics already exist in registry: {e}")
            return _get_existing_metrics()
        raise


def _get_existing_metrics() -> dict[str, Any]:
    names = {"history_events_applied", "history_events_dropped", "history_events_duplicate"}
    existing: dict[str, Any] = {}
    for collector in list(REGISTRY._collector_to_names.keys()):
        name = getattr(collector, "_name", None)
        if name in names:
            existing[f"{name}_total"] = collector
    return existing


def get_metrics() -> dict[str, Any]:
    """Get or create History Service metrics."""
    global _metrics

    if not _metrics:
        _metrics = _create_metrics()
    return _metrics
