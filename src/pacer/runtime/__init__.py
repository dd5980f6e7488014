"""Runtime - Execution, retry control and observability.

Contains: concurrency (schedulers, pool, guard), retry, observability.
"""

from __future__ import annotations

__all__ = [
    # Concurrency
    "Task", "Clock", "MonotonicClock", "HandleState", "CancellationHandle",
    "Scheduler", "LoopScheduler", "WorkerContext", "WorkerPool",
    "BlockingCall", "BlockingCallGuard", "Detection", "allow_blocking", "is_guarded",
    # Retry
    "Jitter", "RetryPolicy", "Attempt", "Retry", "GiveUp", "GiveUpReason", "NO_RETRY",
    "RetryOutcome", "Succeeded", "Exhausted",
    "RetryController", "RetryHandle", "ControllerState", "retry", "cancel", "retrying",
    # Observability
    "BoundLogger", "configure_logging", "get_logger", "log_context",
]


def __getattr__(name: str):
    """Lazy imports to avoid circular dependencies."""
    if name in ("Task", "Clock", "MonotonicClock", "HandleState", "CancellationHandle",
                "Scheduler", "LoopScheduler", "WorkerContext", "WorkerPool",
                "BlockingCall", "BlockingCallGuard", "Detection", "allow_blocking", "is_guarded"):
        from . import concurrency
        return getattr(concurrency, name)

    if name in ("Jitter", "RetryPolicy", "Attempt", "Retry", "GiveUp", "GiveUpReason", "NO_RETRY",
                "RetryOutcome", "Succeeded", "Exhausted",
                "RetryController", "RetryHandle", "ControllerState", "retry", "cancel", "retrying"):
        from . import retry as retry_module
        return getattr(retry_module, name)

    if name in ("BoundLogger", "configure_logging", "get_logger", "log_context"):
        from . import observability
        return getattr(observability, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
