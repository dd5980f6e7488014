"""Terminal result of a retry loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

from pacer.foundation.errors import RetriesExhausted

from .policy import GiveUpReason

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Succeeded(Generic[T]):
    """An attempt produced a value."""

    value: T
    attempts_used: int = 1

    @property
    def is_success(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True, slots=True)
class Exhausted:
    """The policy declined further attempts.

    Attributes:
        last_error: Failure of the final attempt (exception or Err value)
        attempts_used: Total operation invocations
        reason: Why the policy gave up
    """

    last_error: object
    attempts_used: int
    reason: GiveUpReason = GiveUpReason.ATTEMPTS

    @property
    def is_success(self) -> bool:
        return False

    def unwrap(self) -> object:
        """Raise RetriesExhausted, chained from the last error when it is an exception."""
        cause = self.last_error if isinstance(self.last_error, BaseException) else None
        raise RetriesExhausted(self.last_error, self.attempts_used) from cause

    def unwrap_or(self, default: T) -> T:
        return default


RetryOutcome = Succeeded[T] | Exhausted
