"""Coordinators sequencing the forum thread lifecycle."""

from .base import BaseCoordinator, CoordinatorMetrics
from .cache import CacheAggregator
from .publication import PublicationState, PublicationStateMachine, is_truthy
from .thread_lifecycle import (
    PUBLISHED_ACTION,
    PUBLISHED_DESCRIPTION,
    ThreadLifecycleCoordinator,
    build_coordinator,
)

__all__ = [
    "PUBLISHED_ACTION",
    "PUBLISHED_DESCRIPTION",
    "BaseCoordinator",
    "CacheAggregator",
    "CoordinatorMetrics",
    "PublicationState",
    "PublicationStateMachine",
    "ThreadLifecycleCoordinator",
    "build_coordinator",
    "is_truthy",
]
