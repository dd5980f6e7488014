"""Pacer - Async retry-and-backoff on non-blocking schedulers.

Retries a fallible async operation under a bounded policy (fixed or
exponential delay, optional cap and jitter) without ever blocking a worker
thread, and reports either the eventual value or the last error once the
policy gives up. A blocking-call guard enforces the non-blocking contract
on worker threads.

Quick Start:
    >>> from pacer import RetryPolicy, retry
    >>>
    >>> policy = RetryPolicy.fixed(delay=0.01, max_attempts=5)
    >>> outcome = await retry(fetch_quote, policy)
    >>> outcome.unwrap()  # value, or raises RetriesExhausted

Decorator:
    >>> from pacer import retrying, Jitter
    >>>
    >>> @retrying(RetryPolicy.exponential(0.05, 2.0, max_delay=1.0, max_attempts=4, jitter=Jitter.FULL))
    ... async def fetch_quote(symbol: str) -> float:
    ...     ...

Worker Pool + Guard:
    >>> from pacer import BlockingCallGuard, WorkerPool
    >>>
    >>> async with WorkerPool(size=4, guard=BlockingCallGuard()) as pool:
    ...     outcome = await retry(fetch_quote, policy, scheduler=pool)

Failure by Value:
    >>> from pacer import Err, Ok
    >>>
    >>> async def poll() -> Result[str, str]:
    ...     return Ok("ready") if job.done else Err("pending")
"""

from __future__ import annotations

__version__ = "0.1.0"

# Errors
from .foundation.errors import (
    BlockingOperationDetected,
    Err,
    ErrorCode,
    Ok,
    PacerError,
    Result,
    RetriesExhausted,
    SchedulerClosed,
)

# Config
from .foundation.config import PacerSettings, clear_settings_cache, get_settings

# Logging
from .runtime.observability import configure_logging, get_logger, log_context

# Concurrency
from .runtime.concurrency import (
    BlockingCallGuard,
    CancellationHandle,
    LoopScheduler,
    Scheduler,
    WorkerContext,
    WorkerPool,
    allow_blocking,
)

# Retry
from .runtime.retry import (
    NO_RETRY,
    Attempt,
    ControllerState,
    Exhausted,
    GiveUp,
    GiveUpReason,
    Jitter,
    Retry,
    RetryController,
    RetryDecision,
    RetryHandle,
    RetryOutcome,
    RetryPolicy,
    Succeeded,
    cancel,
    retry,
    retrying,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "ErrorCode",
    "PacerError",
    "RetriesExhausted",
    "BlockingOperationDetected",
    "SchedulerClosed",
    "Result",
    "Ok",
    "Err",
    # Config
    "PacerSettings",
    "get_settings",
    "clear_settings_cache",
    # Logging
    "configure_logging",
    "get_logger",
    "log_context",
    # Concurrency
    "Scheduler",
    "LoopScheduler",
    "CancellationHandle",
    "WorkerContext",
    "WorkerPool",
    "BlockingCallGuard",
    "allow_blocking",
    # Retry
    "RetryPolicy",
    "Jitter",
    "Attempt",
    "Retry",
    "GiveUp",
    "GiveUpReason",
    "RetryDecision",
    "NO_RETRY",
    "RetryOutcome",
    "Succeeded",
    "Exhausted",
    "RetryController",
    "RetryHandle",
    "ControllerState",
    "retry",
    "cancel",
    "retrying",
]
