"""Environment-based configuration using pydantic-settings.

Provides type-safe, validated configuration from environment variables
with sensible defaults. Supports .env files and nested configuration.

Example:
    >>> from pacer.foundation.config import get_settings
    >>> settings = get_settings()
    >>> settings.retry.max_attempts
    3
    >>> settings.logging.level
    'INFO'

    # Or with environment variables:
    # PACER_RETRY_MAX_ATTEMPTS=5
    # PACER_LOG_LEVEL=DEBUG
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import (
    Field,
    NonNegativeFloat,
    PositiveFloat,
    PositiveInt,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

_CPU_COUNT = os.cpu_count() or 1


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PACER_LOG_",
        extra="ignore",
    )

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json", "none"] = "console"

    @field_validator("level", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v


class RetrySettings(BaseSettings):
    """Default retry policy configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PACER_RETRY_",
        extra="ignore",
    )

    max_attempts: PositiveInt = Field(default=3, description="Total invocations, first attempt included")
    base_delay: NonNegativeFloat = Field(default=0.1, description="Delay before the first retry in seconds")
    max_delay: PositiveFloat | None = Field(default=30.0, description="Cap on any single delay in seconds")
    multiplier: Annotated[float, Field(ge=1.0)] = Field(default=2.0, description="Backoff growth factor")
    jitter: Literal["none", "full", "half"] = "none"
    deadline: PositiveFloat | None = Field(default=None, description="Overall budget across attempts in seconds")

    @model_validator(mode="after")
    def _check_cap(self) -> RetrySettings:
        if self.max_delay is not None and self.base_delay > self.max_delay:
            raise ValueError("base_delay must not exceed max_delay")
        return self


class SchedulerSettings(BaseSettings):
    """Worker pool configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PACER_SCHEDULER_",
        extra="ignore",
    )

    workers: PositiveInt = Field(default=_CPU_COUNT, description="Number of non-blocking worker threads")
    thread_name_prefix: str = "pacer-worker-"


class GuardSettings(BaseSettings):
    """Blocking-call guard configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PACER_GUARD_",
        extra="ignore",
    )

    enabled: bool = Field(default=False, description="Install the guard on pool worker threads")


class PacerSettings(BaseSettings):
    """Root settings for pacer.

    Loads configuration from environment variables with PACER_ prefix.
    Supports nested configuration and .env files.

    Example environment variables:
        PACER_LOG_LEVEL=DEBUG
        PACER_RETRY_MAX_ATTEMPTS=5
        PACER_RETRY_JITTER=full
        PACER_SCHEDULER_WORKERS=4
        PACER_GUARD_ENABLED=true
    """

    model_config = SettingsConfigDict(
        env_prefix="PACER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    guard: GuardSettings = Field(default_factory=GuardSettings)


@lru_cache(maxsize=1)
def get_settings() -> PacerSettings:
    """Get the global settings instance (cached)."""
    return PacerSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing).

    After calling this, the next get_settings() call will
    reload configuration from environment.
    """
    get_settings.cache_clear()
