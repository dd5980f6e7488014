"""Backoff arithmetic and jitter strategies.

Delay before retry ``i`` (0-indexed, the index of the attempt that just
failed) is ``min(cap, base * multiplier ** i)``. A multiplier of 1 gives a
fixed delay. Growth saturates at the cap instead of overflowing.

Jitter strategies:
- NONE: delay unchanged
- FULL: uniform in [0, delay]
- HALF: uniform in [delay / 2, delay]

Randomness always comes from an injected ``random.Random`` so that decisions
are reproducible under a fixed seed.
"""

from __future__ import annotations

import random
import sys
from enum import StrEnum

# Saturation point when no cap is configured
DELAY_CEILING: float = sys.float_info.max


class Jitter(StrEnum):
    """Randomized perturbation applied to a computed delay."""
    NONE = "none"
    FULL = "full"
    HALF = "half"

    def apply(self, delay: float, rng: random.Random) -> float:
        """Perturb ``delay``; the result never exceeds it and is never negative."""
        match self:
            case Jitter.NONE:
                return delay
            case Jitter.FULL:
                return rng.uniform(0.0, delay)
            case Jitter.HALF:
                return rng.uniform(delay / 2, delay)


def backoff_delay(index: int, base: float, multiplier: float = 1.0, cap: float | None = None) -> float:
    """Pre-jitter delay after the attempt at ``index`` failed.

    Args:
        index: 0-indexed attempt number
        base: Delay after the first failure in seconds
        multiplier: Growth factor per attempt (>= 1)
        cap: Upper bound in seconds; None saturates at DELAY_CEILING

    Returns:
        Delay in seconds, in [0, cap]
    """
    limit = DELAY_CEILING if cap is None else cap
    if multiplier == 1.0 or base == 0.0:
        return min(base, limit)
    try:
        return min(base * multiplier ** index, limit)
    except OverflowError:
        return limit
