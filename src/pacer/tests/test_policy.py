"""Tests for RetryPolicy validation and decisions."""

from __future__ import annotations

import random
from datetime import timedelta

import pytest
from pydantic import ValidationError

from pacer.runtime.retry import NO_RETRY, Attempt, GiveUp, GiveUpReason, Jitter, Retry, RetryPolicy


def fail(index: int, elapsed: float = 0.0, error: object = None) -> Attempt:
    return Attempt(index=index, error=error or RuntimeError("boom"), elapsed=elapsed)


# ═════════════════════════════════════════════════════════════════════════════
# Construction & Validation
# ═════════════════════════════════════════════════════════════════════════════


class TestConstruction:
    def test_fixed(self) -> None:
        policy = RetryPolicy.fixed(0.01, max_attempts=5)
        assert policy.max_attempts == 5
        assert policy.base_delay == 0.01
        assert policy.multiplier == 1.0
        assert policy.is_fixed

    def test_exponential_positional_order(self) -> None:
        policy = RetryPolicy.exponential(0.01, 10.0, 1.0, 5, Jitter.FULL)
        assert (policy.base_delay, policy.multiplier, policy.max_delay, policy.max_attempts) == (0.01, 10.0, 1.0, 5)
        assert policy.jitter is Jitter.FULL
        assert not policy.is_fixed

    def test_accepts_timedelta(self) -> None:
        policy = RetryPolicy.exponential(
            timedelta(milliseconds=10), 2.0, timedelta(seconds=1), 4, deadline=timedelta(seconds=5),
        )
        assert policy.base_delay == pytest.approx(0.01)
        assert policy.max_delay == 1.0
        assert policy.deadline == 5.0

    def test_jitter_from_string(self) -> None:
        assert RetryPolicy.exponential(0.1, jitter="half").jitter is Jitter.HALF

    @pytest.mark.parametrize("kw", [
        {"max_attempts": 0},
        {"base_delay": -0.1},
        {"multiplier": 0.5},
        {"base_delay": 2.0, "max_delay": 1.0},
        {"deadline": 0},
        {"unknown": 1},
    ])
    def test_rejects_invalid(self, kw: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(**kw)

    def test_frozen(self) -> None:
        policy = RetryPolicy.fixed(0.1, 3)
        with pytest.raises(ValidationError):
            policy.max_attempts = 10  # type: ignore[misc]

    def test_classifier_not_serialized(self) -> None:
        policy = RetryPolicy.fixed(0.1, 3, should_retry=lambda e: True)
        assert "should_retry" not in policy.model_dump()

    def test_no_retry_singleton(self) -> None:
        assert NO_RETRY.decide(fail(0)) == GiveUp(GiveUpReason.ATTEMPTS)


# ═════════════════════════════════════════════════════════════════════════════
# Decisions
# ═════════════════════════════════════════════════════════════════════════════


class TestDecide:
    def test_gives_up_when_attempts_used(self) -> None:
        policy = RetryPolicy.fixed(0.01, max_attempts=3)
        assert policy.decide(fail(0)) == Retry(0.01)
        assert policy.decide(fail(1)) == Retry(0.01)
        assert policy.decide(fail(2)) == GiveUp(GiveUpReason.ATTEMPTS)

    def test_single_attempt_never_retries(self) -> None:
        assert RetryPolicy.fixed(0.01, max_attempts=1).decide(fail(0)) == GiveUp(GiveUpReason.ATTEMPTS)

    def test_exponential_schedule(self) -> None:
        policy = RetryPolicy.exponential(0.01, 10.0, max_delay=1.0, max_attempts=5)
        assert policy.delay_schedule() == pytest.approx([0.01, 0.1, 1.0, 1.0])
        decisions = [policy.decide(fail(i)) for i in range(4)]
        assert [d.delay for d in decisions] == pytest.approx([0.01, 0.1, 1.0, 1.0])  # type: ignore[union-attr]

    def test_uncapped_exponential_is_exact(self) -> None:
        policy = RetryPolicy.exponential(0.5, 2.0, max_attempts=6)
        assert policy.delay_schedule() == [0.5, 1.0, 2.0, 4.0, 8.0]

    def test_cap_never_exceeded_at_large_index(self) -> None:
        policy = RetryPolicy.exponential(1.0, 10.0, max_delay=60.0, max_attempts=100_000)
        assert policy.backoff_delay(5_000) == 60.0
        assert policy.decide(fail(5_000)) == Retry(60.0)

    def test_classifier_consulted_before_delay(self) -> None:
        seen: list[object] = []

        def should_retry(error: object) -> bool:
            seen.append(error)
            return not isinstance(error, ValueError)

        policy = RetryPolicy.fixed(0.01, 5, should_retry=should_retry)
        assert policy.decide(fail(0, error=ValueError("bad"))) == GiveUp(GiveUpReason.NOT_RETRYABLE)
        assert policy.decide(fail(0, error=TimeoutError())) == Retry(0.01)
        assert len(seen) == 2

    def test_classifier_skipped_on_last_attempt(self) -> None:
        calls: list[object] = []
        policy = RetryPolicy.fixed(0.01, 2, should_retry=lambda e: calls.append(e) or True)
        assert policy.decide(fail(1)) == GiveUp(GiveUpReason.ATTEMPTS)
        assert calls == []

    def test_deadline(self) -> None:
        policy = RetryPolicy.fixed(0.01, 10, deadline=0.025)
        assert policy.decide(fail(1, elapsed=0.01)) == Retry(0.01)
        assert policy.decide(fail(2, elapsed=0.02)) == GiveUp(GiveUpReason.DEADLINE)

    def test_jitter_uses_injected_rng(self) -> None:
        policy = RetryPolicy.exponential(0.1, 2.0, max_delay=1.0, max_attempts=10, jitter=Jitter.FULL)
        first = [policy.decide(fail(i), random.Random(3)) for i in range(5)]
        second = [policy.decide(fail(i), random.Random(3)) for i in range(5)]
        assert first == second
        for i, decision in enumerate(first):
            assert isinstance(decision, Retry)
            assert 0.0 <= decision.delay <= policy.backoff_delay(i) <= 1.0

    def test_half_jitter_lower_bound(self) -> None:
        policy = RetryPolicy.fixed(1.0, 3, jitter=Jitter.HALF)
        rng = random.Random(0)
        delays = [policy.decide(fail(0), rng).delay for _ in range(200)]  # type: ignore[union-attr]
        assert min(delays) >= 0.5
        assert max(delays) <= 1.0


# ═════════════════════════════════════════════════════════════════════════════
# Settings
# ═════════════════════════════════════════════════════════════════════════════


def test_from_settings_defaults() -> None:
    policy = RetryPolicy.from_settings()
    assert policy.max_attempts == 3
    assert policy.base_delay == 0.1
    assert policy.max_delay == 30.0
    assert policy.multiplier == 2.0


def test_from_settings_env_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    from pacer.foundation.config import clear_settings_cache

    monkeypatch.setenv("PACER_RETRY_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("PACER_RETRY_JITTER", "full")
    clear_settings_cache()
    policy = RetryPolicy.from_settings(base_delay=0.5)
    assert policy.max_attempts == 7
    assert policy.jitter is Jitter.FULL
    assert policy.base_delay == 0.5
