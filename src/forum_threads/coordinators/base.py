"""Base coordinator abstractions shared by thread lifecycle operations.

Key Components:
    - CoordinatorMetrics: Prometheus attempt/failure/duration metrics bound to
      one coordinator name
    - BaseCoordinator: wraps each public operation with structured logging
      and metrics, and translates storage exceptions into
      :class:`~forum_threads.errors.PersistenceFailure`

Architecture:
    - Concrete coordinators run every public operation inside
      ``self._instrumented(<operation>)`` and every storage call inside
      ``self._storage(<step>)``
    - Nothing here retries: lifecycle errors are terminal for the request
      and the caller owns retry policy for persistence failures

Thread Safety:
    - Stateless apart from metric handles; safe to share between threads
"""
from __future__ import annotations

# ============================================================================
# IMPORTS
# ============================================================================
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import structlog
from prometheus_client import Counter, Histogram

from forum_threads.errors import PersistenceFailure, ThreadLifecycleError
from forum_threads.observability.metrics import metrics_enabled

logger = structlog.get_logger(__name__)


# ============================================================================
# METRICS
# ============================================================================

_ATTEMPTS = Counter(
    "forum_coordinator_attempts_total",
    "Total coordinator operation invocations",
    labelnames=["coordinator", "operation"],
)
_FAILURES = Counter(
    "forum_coordinator_failures_total",
    "Coordinator operations that ended in an error",
    labelnames=["coordinator", "operation", "error"],
)
_DURATION = Histogram(
    "forum_coordinator_duration_seconds",
    "Coordinator operation duration",
    labelnames=["coordinator", "operation"],
)

_METRICS_CACHE: dict[str, CoordinatorMetrics] = {}


@dataclass(slots=True, frozen=True)
class CoordinatorMetrics:
    """Metric handles for one coordinator.

    Example:
        >>> metrics = CoordinatorMetrics.create("threads")
        >>> metrics is CoordinatorMetrics.create("threads")
        True
    """

    name: str

    @classmethod
    def create(cls, name: str) -> CoordinatorMetrics:
        """Create or retrieve the cached metrics instance for ``name``."""
        try:
            return _METRICS_CACHE[name]
        except KeyError:
            metrics = _METRICS_CACHE[name] = cls(name=name)
            return metrics

    def observe(self, operation: str, duration: float, error: Exception | None = None) -> None:
        if not metrics_enabled():
            return
        _ATTEMPTS.labels(coordinator=self.name, operation=operation).inc()
        _DURATION.labels(coordinator=self.name, operation=operation).observe(duration)
        if error is not None:
            _FAILURES.labels(
                coordinator=self.name, operation=operation, error=type(error).__name__
            ).inc()


# ============================================================================
# BASE COORDINATOR
# ============================================================================


class BaseCoordinator:
    """Shared instrumentation for lifecycle coordinators."""

    name: str = "coordinator"

    def __init__(self, *, metrics: CoordinatorMetrics | None = None) -> None:
        self.metrics = metrics or CoordinatorMetrics.create(self.name)

    @contextmanager
    def _instrumented(self, operation: str, **fields: Any) -> Iterator[None]:
        """Log and time one public operation, recording its outcome."""
        logger.debug(
            f"threads.{operation}.invoke",
            coordinator=self.name,
            operation=operation,
            **fields,
        )
        start = time.perf_counter()
        try:
            yield
        except Exception as exc:
            duration = time.perf_counter() - start
            self.metrics.observe(operation, duration, exc)
            logger.warning(
                f"threads.{operation}.failed",
                coordinator=self.name,
                operation=operation,
                error=type(exc).__name__,
                detail=str(exc),
                duration=duration,
                **fields,
            )
            raise
        duration = time.perf_counter() - start
        self.metrics.observe(operation, duration)
        logger.info(
            f"threads.{operation}.completed",
            coordinator=self.name,
            operation=operation,
            duration=duration,
            **fields,
        )

    @contextmanager
    def _storage(self, step: str) -> Iterator[None]:
        """Translate storage exceptions raised inside the block."""
        try:
            yield
        except ThreadLifecycleError:
            raise
        except Exception as exc:
            raise PersistenceFailure(
                f"Storage failure during {step}", detail=str(exc), extra={"step": step}
            ) from exc


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ["BaseCoordinator", "CoordinatorMetrics"]
