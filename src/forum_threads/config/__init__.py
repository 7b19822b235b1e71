"""Configuration package exports."""

from __future__ import annotations

from .settings import (
    ActivitySettings,
    AppSettings,
    Environment,
    LoggingSettings,
    MetricsSettings,
    PopularitySettings,
    RewardSettings,
    SanitizerSettings,
    ThrottleSettings,
    get_settings,
    load_settings,
)

__all__ = [
    "ActivitySettings",
    "AppSettings",
    "Environment",
    "LoggingSettings",
    "MetricsSettings",
    "PopularitySettings",
    "RewardSettings",
    "SanitizerSettings",
    "ThrottleSettings",
    "get_settings",
    "load_settings",
]
