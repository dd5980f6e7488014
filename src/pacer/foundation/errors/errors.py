"""Standardized error types for the retry runtime.

Provides error codes and the exception hierarchy surfaced to callers.
Transient operation failures are never wrapped here: the controller keeps
them by value and only hands them over inside RetriesExhausted.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCode(StrEnum):
    """Machine-readable classification of library errors."""
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    BLOCKING_CALL = "BLOCKING_CALL"
    SCHEDULER_CLOSED = "SCHEDULER_CLOSED"
    UNKNOWN = "UNKNOWN"


class PacerError(Exception):
    """Base class for all errors raised by pacer."""

    code: ErrorCode = ErrorCode.UNKNOWN


class RetriesExhausted(PacerError):
    """Terminal failure: the policy declined any further attempt.

    Attributes:
        last_error: Failure observed on the final attempt (exception or Err value)
        attempts_used: Total number of operation invocations
    """

    code = ErrorCode.RETRIES_EXHAUSTED

    def __init__(self, last_error: object, attempts_used: int) -> None:
        self.last_error = last_error
        self.attempts_used = attempts_used
        noun = "attempt" if attempts_used == 1 else "attempts"
        super().__init__(f"Retries exhausted after {attempts_used} {noun}: {last_error!r}")


class BlockingOperationDetected(PacerError):
    """A blocking call was made on a non-blocking worker.

    Signals a programming error, not a transient condition: it is never
    retried and must not be swallowed.

    Attributes:
        call: Qualified name of the blocking API (e.g. ``time.sleep``)
        thread: Name of the guarded thread the call was made on
    """

    code = ErrorCode.BLOCKING_CALL

    def __init__(self, call: str, thread: str) -> None:
        self.call = call
        self.thread = thread
        super().__init__(f"Blocking call {call}() detected on non-blocking thread {thread!r}")


class SchedulerClosed(PacerError):
    """Work was submitted to a scheduler that is not running."""

    code = ErrorCode.SCHEDULER_CLOSED
