"""Tests for backoff arithmetic and jitter."""

from __future__ import annotations

import random

import pytest

from pacer.runtime.retry import DELAY_CEILING, Jitter, backoff_delay


# ═════════════════════════════════════════════════════════════════════════════
# backoff_delay
# ═════════════════════════════════════════════════════════════════════════════


def test_fixed_delay_ignores_index() -> None:
    assert [backoff_delay(i, 0.25) for i in range(5)] == [0.25] * 5


def test_exponential_is_exact_before_cap() -> None:
    """Delay before attempt i equals base * multiplier ** i."""
    assert [backoff_delay(i, 0.5, 2.0) for i in range(6)] == [0.5, 1.0, 2.0, 4.0, 8.0, 16.0]


def test_exponential_respects_cap() -> None:
    delays = [backoff_delay(i, 0.01, 10.0, cap=1.0) for i in range(10)]
    assert delays[:3] == pytest.approx([0.01, 0.1, 1.0])
    assert all(d <= 1.0 for d in delays)


def test_cap_below_base_clamps_fixed_delay() -> None:
    assert backoff_delay(0, 5.0, 1.0, cap=2.0) == 2.0


def test_overflow_saturates_at_cap() -> None:
    assert backoff_delay(10_000, 1.0, 10.0, cap=30.0) == 30.0


def test_overflow_without_cap_saturates_at_ceiling() -> None:
    assert backoff_delay(10_000, 1.0, 10.0) == DELAY_CEILING


def test_zero_base_stays_zero() -> None:
    assert backoff_delay(50, 0.0, 3.0) == 0.0


# ═════════════════════════════════════════════════════════════════════════════
# Jitter
# ═════════════════════════════════════════════════════════════════════════════


def test_no_jitter_keeps_delay() -> None:
    assert Jitter.NONE.apply(1.5, random.Random(1)) == 1.5


@pytest.mark.parametrize(("jitter", "low"), [(Jitter.FULL, 0.0), (Jitter.HALF, 0.5)])
def test_jitter_bounds(jitter: Jitter, low: float) -> None:
    rng = random.Random(7)
    samples = [jitter.apply(1.0, rng) for _ in range(500)]
    assert all(low <= s <= 1.0 for s in samples)
    assert len(set(samples)) > 1


def test_jitter_is_reproducible_with_seed() -> None:
    rng_a, rng_b = random.Random(42), random.Random(42)
    a = [Jitter.FULL.apply(2.0, rng_a) for _ in range(10)]
    b = [Jitter.FULL.apply(2.0, rng_b) for _ in range(10)]
    assert a == b


def test_jitter_parses_from_string() -> None:
    assert Jitter("half") is Jitter.HALF
