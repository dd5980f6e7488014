"""Retry policy: decides, per failed attempt, whether and when to try again.

The policy is a frozen value. ``decide()`` is pure given the policy, the
attempt record and the injected random source; the controller owns all
mutable loop state.

Optimizations:
- Frozen for immutability and hashability
- Durations validated once (floats in seconds, timedelta accepted)
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Callable

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    PositiveFloat,
    field_validator,
    model_validator,
)

from .backoff import Jitter, backoff_delay

if TYPE_CHECKING:
    from pacer.foundation.config import RetrySettings

Duration = float | timedelta


@dataclass(frozen=True, slots=True)
class Attempt:
    """One failed invocation, as seen by the policy.

    Attributes:
        index: 0-based attempt number
        error: Exception raised, or Err value returned, by this attempt
        elapsed: Seconds since the retry loop started
    """

    index: int
    error: object
    elapsed: float = 0.0


class GiveUpReason(StrEnum):
    """Why a retry loop stopped."""
    ATTEMPTS = "attempts"            # max_attempts reached
    NOT_RETRYABLE = "not_retryable"  # should_retry rejected the error
    DEADLINE = "deadline"            # next attempt would start past the deadline


@dataclass(frozen=True, slots=True)
class Retry:
    """Try again after ``delay`` seconds."""
    delay: float


@dataclass(frozen=True, slots=True)
class GiveUp:
    """Stop retrying."""
    reason: GiveUpReason = GiveUpReason.ATTEMPTS


RetryDecision = Retry | GiveUp


def _seconds(v: object) -> object:
    return v.total_seconds() if isinstance(v, timedelta) else v


class RetryPolicy(BaseModel):
    """Configurable retry policy.

    ``max_attempts`` counts total invocations, first attempt included: a
    policy with ``max_attempts=5`` invokes the operation at most five times
    and schedules at most four delays.

    Attributes:
        max_attempts: Total invocations allowed (1 = never retry)
        base_delay: Delay after the first failure, in seconds
        max_delay: Cap on any single delay (None = uncapped)
        multiplier: Growth per attempt; 1 = fixed delay, >1 = exponential
        jitter: Randomization applied after capping
        should_retry: Error classifier consulted before delay computation
        deadline: Overall budget in seconds across all attempts

    Example:
        >>> policy = RetryPolicy.exponential(0.01, 10, max_delay=1.0, max_attempts=5)
        >>> policy.delay_schedule()
        [0.01, 0.1, 1.0, 1.0]
    """

    model_config = ConfigDict(
        frozen=True,
        validate_default=True,
        extra="forbid",
        revalidate_instances="never",
        json_schema_extra={
            "title": "Retry Policy",
            "description": "Attempt budget, backoff and jitter for a retry loop",
            "examples": [{"max_attempts": 5, "base_delay": 0.01, "max_delay": 1.0, "multiplier": 10.0}],
        },
    )

    max_attempts: Annotated[int, Field(ge=1)] = 3
    base_delay: NonNegativeFloat = 0.1
    max_delay: NonNegativeFloat | None = None
    multiplier: Annotated[float, Field(ge=1.0)] = 1.0
    jitter: Jitter = Jitter.NONE
    should_retry: Callable[[object], bool] | None = Field(default=None, exclude=True, repr=False)
    deadline: PositiveFloat | None = None

    @field_validator("base_delay", "max_delay", "deadline", mode="before")
    @classmethod
    def _accept_timedelta(cls, v: object) -> object:
        return _seconds(v)

    @model_validator(mode="after")
    def _check_cap(self) -> RetryPolicy:
        if self.max_delay is not None and self.base_delay > self.max_delay:
            raise ValueError(f"base_delay ({self.base_delay}) must not exceed max_delay ({self.max_delay})")
        return self

    # ─── Constructors ──────────────────────────────────────────────────

    @classmethod
    def fixed(cls, delay: Duration, max_attempts: int, **kw: object) -> RetryPolicy:
        """Constant delay between attempts."""
        return cls(max_attempts=max_attempts, base_delay=delay, multiplier=1.0, **kw)

    @classmethod
    def exponential(
        cls,
        base_delay: Duration,
        multiplier: float = 2.0,
        max_delay: Duration | None = None,
        max_attempts: int = 3,
        jitter: Jitter | str = Jitter.NONE,
        **kw: object,
    ) -> RetryPolicy:
        """Delay grows by ``multiplier`` per attempt, capped at ``max_delay``."""
        return cls(
            max_attempts=max_attempts, base_delay=base_delay, multiplier=multiplier,
            max_delay=max_delay, jitter=jitter, **kw,
        )

    @classmethod
    def from_settings(cls, settings: RetrySettings | None = None, **kw: object) -> RetryPolicy:
        """Build from RetrySettings (PACER_RETRY_*); keyword overrides win."""
        if settings is None:
            from pacer.foundation.config import get_settings
            settings = get_settings().retry
        return cls(**{**settings.model_dump(), **kw})

    # ─── Decisions ─────────────────────────────────────────────────────

    @property
    def is_fixed(self) -> bool:
        return self.multiplier == 1.0

    def backoff_delay(self, index: int) -> float:
        """Pre-jitter delay after the attempt at ``index`` failed."""
        return backoff_delay(index, self.base_delay, self.multiplier, self.max_delay)

    def delay_schedule(self) -> list[float]:
        """Pre-jitter delays for a loop that exhausts every attempt."""
        return [self.backoff_delay(i) for i in range(self.max_attempts - 1)]

    def decide(self, attempt: Attempt, rng: random.Random | None = None) -> RetryDecision:
        """Decide what follows the failed ``attempt``.

        Args:
            attempt: Record of the attempt that just failed
            rng: Random source for jitter; a fresh unseeded one when omitted

        Returns:
            Retry(delay) or GiveUp(reason)
        """
        if attempt.index + 1 >= self.max_attempts:
            return GiveUp(GiveUpReason.ATTEMPTS)
        if self.should_retry is not None and not self.should_retry(attempt.error):
            return GiveUp(GiveUpReason.NOT_RETRYABLE)
        delay = self.backoff_delay(attempt.index)
        if self.jitter is not Jitter.NONE:
            delay = self.jitter.apply(delay, rng or random.Random())
        if self.deadline is not None and attempt.elapsed + delay > self.deadline:
            return GiveUp(GiveUpReason.DEADLINE)
        return Retry(delay)


# Singleton for no-retry policy
NO_RETRY = RetryPolicy(max_attempts=1, base_delay=0.0)
