"""Non-blocking execution: timers, schedulers, worker pools and the blocking-call guard.

Key Components:
    - CancellationHandle: Cancellable unit of scheduled work
    - Scheduler: Protocol consumed by retry controllers (submit / schedule / now)
    - LoopScheduler: One asyncio event loop as one worker
    - WorkerPool: Fixed pool of guarded worker threads, round-robin dispatch
    - BlockingCallGuard: Fail-fast detection of blocking calls on workers

Example:
    >>> from pacer.runtime.concurrency import BlockingCallGuard, WorkerPool
    >>> async with WorkerPool(size=4, guard=BlockingCallGuard()) as pool:
    ...     await pool.run(lambda: parse(payload))
"""

from __future__ import annotations

from .guard import (
    DEFAULT_BLOCKING_CALLS,
    BlockingCall,
    BlockingCallGuard,
    Detection,
    allow_blocking,
    is_guarded,
)
from .pool import DEFAULT_WORKERS, WorkerContext, WorkerPool
from .scheduler import LoopScheduler, Scheduler
from .timer import CancellationHandle, Clock, HandleState, MonotonicClock, Task

__all__ = [
    # Timer
    "Task", "Clock", "MonotonicClock", "HandleState", "CancellationHandle",
    # Scheduler
    "Scheduler", "LoopScheduler",
    # Pool
    "WorkerContext", "WorkerPool", "DEFAULT_WORKERS",
    # Guard
    "BlockingCall", "BlockingCallGuard", "Detection", "DEFAULT_BLOCKING_CALLS", "allow_blocking", "is_guarded",
]
