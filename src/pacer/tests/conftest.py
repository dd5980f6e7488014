"""Shared fixtures: silent, capturable logging and fresh settings per test."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from pacer.foundation.config import clear_settings_cache
from pacer.runtime.observability import CaptureRenderer, NoOpRenderer, configure_logging


@pytest.fixture(autouse=True)
def captured_logs() -> Iterator[CaptureRenderer]:
    """Route all structured logs into memory for the duration of a test."""
    renderer = CaptureRenderer()
    configure_logging(format="none", level="DEBUG", renderer=renderer)
    yield renderer
    configure_logging(format="none", level="INFO", renderer=NoOpRenderer())


@pytest.fixture(autouse=True)
def fresh_settings() -> Iterator[None]:
    """Reload settings from the environment before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
