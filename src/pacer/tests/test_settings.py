"""Tests for environment-based configuration."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from pacer.foundation.config import (
    LoggingSettings,
    PacerSettings,
    RetrySettings,
    SchedulerSettings,
    clear_settings_cache,
    get_settings,
)


def test_defaults() -> None:
    settings = get_settings()
    assert settings.logging.level == "INFO"
    assert settings.logging.format == "console"
    assert settings.retry.max_attempts == 3
    assert settings.retry.jitter == "none"
    assert settings.scheduler.workers >= 1
    assert settings.guard.enabled is False


def test_cached_until_cleared(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    assert get_settings() is first
    monkeypatch.setenv("PACER_RETRY_MAX_ATTEMPTS", "7")
    assert get_settings() is first
    clear_settings_cache()
    assert get_settings().retry.max_attempts == 7


def test_env_prefixes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PACER_LOG_LEVEL", "debug")
    monkeypatch.setenv("PACER_LOG_FORMAT", "json")
    monkeypatch.setenv("PACER_RETRY_BASE_DELAY", "0.25")
    monkeypatch.setenv("PACER_SCHEDULER_WORKERS", "6")
    monkeypatch.setenv("PACER_GUARD_ENABLED", "true")
    settings = PacerSettings()
    assert settings.logging.level == "DEBUG"
    assert settings.logging.format == "json"
    assert settings.retry.base_delay == 0.25
    assert settings.scheduler.workers == 6
    assert settings.guard.enabled is True


@pytest.mark.parametrize(("cls", "env", "value"), [
    (RetrySettings, "PACER_RETRY_MAX_ATTEMPTS", "0"),
    (RetrySettings, "PACER_RETRY_MULTIPLIER", "0.5"),
    (RetrySettings, "PACER_RETRY_JITTER", "sometimes"),
    (LoggingSettings, "PACER_LOG_FORMAT", "xml"),
    (SchedulerSettings, "PACER_SCHEDULER_WORKERS", "0"),
])
def test_invalid_values_rejected(monkeypatch: pytest.MonkeyPatch, cls: type, env: str, value: str) -> None:
    monkeypatch.setenv(env, value)
    with pytest.raises(ValidationError):
        cls()


def test_base_delay_must_not_exceed_cap() -> None:
    with pytest.raises(ValidationError):
        RetrySettings(base_delay=10.0, max_delay=1.0)
