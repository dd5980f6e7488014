"""Retry-and-backoff controller.

Example:
    >>> from pacer.runtime.retry import RetryPolicy, Jitter, retry
    >>>
    >>> policy = RetryPolicy.exponential(
    ...     base_delay=0.05, multiplier=2.0, max_delay=2.0, max_attempts=5, jitter=Jitter.HALF,
    ... )
    >>> outcome = await retry(fetch_quote, policy)
    >>> if outcome.is_success:
    ...     print(outcome.value, "after", outcome.attempts_used, "attempts")
"""

from .backoff import DELAY_CEILING, Jitter, backoff_delay
from .controller import (
    Cancellable,
    ControllerState,
    OnRetry,
    Operation,
    RetryController,
    RetryHandle,
    cancel,
    retry,
    retrying,
)
from .outcome import Exhausted, RetryOutcome, Succeeded
from .policy import NO_RETRY, Attempt, GiveUp, GiveUpReason, Retry, RetryDecision, RetryPolicy

__all__ = [
    # Backoff
    "Jitter", "backoff_delay", "DELAY_CEILING",
    # Policy
    "RetryPolicy", "Attempt", "Retry", "GiveUp", "GiveUpReason", "RetryDecision", "NO_RETRY",
    # Outcome
    "RetryOutcome", "Succeeded", "Exhausted",
    # Controller
    "RetryController", "RetryHandle", "ControllerState", "Operation", "OnRetry", "Cancellable",
    "retry", "cancel", "retrying",
]
