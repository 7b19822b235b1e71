"""Configuration system for the thread lifecycle layer."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from enum import Enum
from functools import lru_cache
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    """Deployment environments supported by the forum."""

    DEV = "dev"
    STAGING = "staging"
    PROD = "prod"


class LoggingSettings(BaseModel):
    """Structured logging configuration."""

    level: str = Field(default="INFO", description="Log level for application output")
    scrub_fields: Sequence[str] = Field(
        default_factory=lambda: ["password", "token", "secret", "authorization"],
        description="Fields that should be redacted in logs",
    )


class MetricsSettings(BaseModel):
    """Prometheus metrics configuration."""

    enabled: bool = True


class ThrottleSettings(BaseModel):
    """Creation cooldown applied per user."""

    thread_create_cooldown_seconds: float = Field(
        default=60.0,
        ge=0.0,
        description="Minimum seconds between two threads created by the same user",
    )
    message: str = Field(
        default="Posting too frequently, please wait before creating another thread",
        description="Message surfaced verbatim to throttled users",
    )


class RewardSettings(BaseModel):
    """Energy points granted for thread activity."""

    thread_create_energy: int = Field(
        default=10, description="Energy added to the owner on every successful thread save"
    )


class SanitizerSettings(BaseModel):
    """Word-list sanitizer configuration."""

    banned_words: Sequence[str] = Field(
        default_factory=list, description="Words blanked out of titles and bodies"
    )
    replacement: str = Field(default="", description="Text substituted for each banned word")


class PopularitySettings(BaseModel):
    """Thresholds at which a thread is promoted to popular."""

    likes_count: int = Field(default=15, ge=1)
    views_count: int = Field(default=200, ge=1)
    comments_count: int = Field(default=10, ge=1)


class ActivitySettings(BaseModel):
    """Activity record shaping."""

    excerpt_length: int = Field(
        default=200, ge=1, description="Characters of plain-text body kept in activity records"
    )


class AppSettings(BaseSettings):
    """Top level settings object for the forum thread services."""

    environment: Environment = Environment.DEV
    system_actor_id: int = Field(
        default=1, ge=1, description="Owner assigned to threads created outside a request"
    )
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    throttle: ThrottleSettings = Field(default_factory=ThrottleSettings)
    rewards: RewardSettings = Field(default_factory=RewardSettings)
    sanitizer: SanitizerSettings = Field(default_factory=SanitizerSettings)
    popularity: PopularitySettings = Field(default_factory=PopularitySettings)
    activity: ActivitySettings = Field(default_factory=ActivitySettings)

    model_config = SettingsConfigDict(env_prefix="FT_", env_nested_delimiter="__")


ENVIRONMENT_DEFAULTS: Mapping[Environment, dict[str, Any]] = {
    Environment.DEV: {
        "logging": {"level": "DEBUG"},
    },
    Environment.STAGING: {
        "logging": {"level": "INFO"},
    },
    Environment.PROD: {
        "logging": {"level": "WARNING"},
    },
}


def _deep_update(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    for key, value in updates.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            target[key] = _deep_update(dict(current), value)
        else:
            target[key] = value
    return target


def _explicit_overrides(settings: AppSettings) -> dict[str, Any]:
    """Return only the values that were set explicitly (environment or init)."""
    return settings.model_dump(exclude_unset=True)


def load_settings(environment: str | None = None) -> AppSettings:
    """Load settings with environment specific defaults applied.

    Explicit ``FT_*`` values are re-applied after the environment defaults so
    an operator can still override a dev default.
    """
    env_value = (environment or os.getenv("FT_ENV", "dev")).lower()
    env = Environment(env_value)
    try:
        base_settings = AppSettings()
    except ValidationError as err:
        raise RuntimeError(f"Invalid configuration: {err}") from err
    merged = base_settings.model_dump()
    merged = _deep_update(merged, ENVIRONMENT_DEFAULTS.get(env, {}))
    merged = _deep_update(merged, _explicit_overrides(base_settings))
    merged["environment"] = env
    return AppSettings.model_validate(merged)


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Cached accessor used by production code."""
    return load_settings()
