"""Observability helpers (Prometheus metrics) for thread lifecycle operations."""

from .metrics import (
    configure_metrics,
    metrics_enabled,
    observe_cache_refresh,
    record_guard_rejection,
    record_sanitizer_hits,
)

__all__ = [
    "configure_metrics",
    "metrics_enabled",
    "observe_cache_refresh",
    "record_guard_rejection",
    "record_sanitizer_hits",
]
