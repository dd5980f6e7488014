"""Foundation - Building blocks for pacer.

Contains: error handling, configuration, testing utilities.
"""

from __future__ import annotations

__all__ = [
    # Errors
    "ErrorCode", "PacerError", "RetriesExhausted", "BlockingOperationDetected", "SchedulerClosed",
    "Result", "Ok", "Err",
    # Config
    "PacerSettings", "get_settings", "clear_settings_cache",
    "LoggingSettings", "RetrySettings", "SchedulerSettings", "GuardSettings",
    # Testing
    "StubOperation", "Invocation", "VirtualScheduler",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("ErrorCode", "PacerError", "RetriesExhausted", "BlockingOperationDetected", "SchedulerClosed",
                "Result", "Ok", "Err"):
        from . import errors
        return getattr(errors, name)

    if name in ("PacerSettings", "get_settings", "clear_settings_cache",
                "LoggingSettings", "RetrySettings", "SchedulerSettings", "GuardSettings"):
        from . import config
        return getattr(config, name)

    if name in ("StubOperation", "Invocation", "VirtualScheduler"):
        from . import testing
        return getattr(testing, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
