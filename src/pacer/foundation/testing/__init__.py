"""Testing utilities for retry loops.

- StubOperation: Scripted operation recording every invocation
- VirtualScheduler: Deterministic scheduler with a virtual clock
"""

from .stub import Invocation, StubOperation
from .virtual import VirtualScheduler

__all__ = ["Invocation", "StubOperation", "VirtualScheduler"]
