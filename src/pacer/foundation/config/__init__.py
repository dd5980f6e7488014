"""Configuration management using pydantic-settings.

Provides environment-based configuration with type safety and validation.
"""

from .settings import (
    GuardSettings,
    LoggingSettings,
    PacerSettings,
    RetrySettings,
    SchedulerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "GuardSettings",
    "LoggingSettings",
    "PacerSettings",
    "RetrySettings",
    "SchedulerSettings",
    "clear_settings_cache",
    "get_settings",
]
