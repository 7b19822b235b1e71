"""Prometheus metrics for the thread lifecycle layer.

Key Responsibilities:
    - Count guard rejections (throttle, moderation) by guard name
    - Count words removed by the content sanitizer
    - Time cache refreshes

Coordinator attempt/failure/duration metrics live with the coordinator
base in :mod:`forum_threads.coordinators.base`.

Thread Safety:
    - Thread-safe: Prometheus client metrics are atomic
"""

# ==============================================================================
# IMPORTS
# ==============================================================================

from prometheus_client import Counter, Histogram

from forum_threads.config.settings import MetricsSettings

# ==============================================================================
# METRIC DEFINITIONS
# ==============================================================================

GUARD_REJECTIONS_TOTAL = Counter(
    "forum_thread_guard_rejections_total",
    "Thread saves rejected before persistence",
    ["guard"],
)

SANITIZER_HITS_TOTAL = Counter(
    "forum_thread_sanitizer_hits_total",
    "Disallowed terms removed from thread text",
    ["sanitizer"],
)

CACHE_REFRESH_SECONDS = Histogram(
    "forum_thread_cache_refresh_seconds",
    "Duration of thread cache snapshot recomputation",
    buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0],
)

# ==============================================================================
# RECORDING HELPERS
# ==============================================================================

_enabled = True


def configure_metrics(settings: MetricsSettings) -> None:
    """Turn recording on or off for the whole process."""
    global _enabled
    _enabled = settings.enabled


def metrics_enabled() -> bool:
    return _enabled


def record_guard_rejection(guard: str) -> None:
    """Record that ``guard`` rejected a save."""
    if _enabled:
        GUARD_REJECTIONS_TOTAL.labels(guard=guard).inc()


def record_sanitizer_hits(sanitizer: str, hits: int) -> None:
    if _enabled and hits > 0:
        SANITIZER_HITS_TOTAL.labels(sanitizer=sanitizer).inc(hits)


def observe_cache_refresh(duration: float) -> None:
    if _enabled:
        CACHE_REFRESH_SECONDS.observe(duration)


__all__ = [
    "CACHE_REFRESH_SECONDS",
    "GUARD_REJECTIONS_TOTAL",
    "SANITIZER_HITS_TOTAL",
    "configure_metrics",
    "metrics_enabled",
    "observe_cache_refresh",
    "record_guard_rejection",
    "record_sanitizer_hits",
]
