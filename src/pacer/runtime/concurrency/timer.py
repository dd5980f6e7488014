"""Clock and cancellable task handles.

A ``CancellationHandle`` wraps one unit of scheduled work. Its state moves
exactly once out of PENDING, either to RUNNING (the scheduler claimed it) or
to CANCELLED. That single transition is what guarantees a cancelled task
never starts and a started task runs exactly once.

Example:
    >>> handle = CancellationHandle(lambda: print("fired"), delay=0.5)
    >>> handle.cancel()
    True
    >>> handle.begin()  # scheduler side: refuses to start a cancelled task
    False
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future
from enum import StrEnum
from typing import Callable, Protocol, runtime_checkable

# A unit of work: zero-arg callable, optionally returning an awaitable
Task = Callable[[], object]


@runtime_checkable
class Clock(Protocol):
    """Monotonic time source in seconds."""

    def now(self) -> float: ...


class MonotonicClock:
    """Clock backed by ``time.monotonic``; matches asyncio's loop.time()."""

    __slots__ = ()

    def now(self) -> float:
        return time.monotonic()


class HandleState(StrEnum):
    """Scheduled task lifecycle states."""
    PENDING = "pending"      # Not yet started
    RUNNING = "running"      # Claimed by a worker
    COMPLETED = "completed"  # Finished successfully
    FAILED = "failed"        # Raised exception
    CANCELLED = "cancelled"  # Cancelled before start


class CancellationHandle:
    """Handle to a submitted or delayed task.

    ``cancel()`` is safe from any thread and never blocks beyond a short
    internal critical section. The task's result or exception is published
    on ``future`` (a thread-safe ``concurrent.futures.Future``).
    """

    __slots__ = ("task", "delay", "name", "_state", "_lock", "_future", "_release")

    def __init__(self, task: Task, *, delay: float = 0.0, name: str | None = None) -> None:
        self.task = task
        self.delay = delay
        self.name = name or getattr(task, "__qualname__", None) or repr(task)
        self._state = HandleState.PENDING
        self._lock = threading.Lock()
        self._future: Future[object] = Future()
        self._release: list[Callable[[], None]] = []

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def cancelled(self) -> bool:
        return self._state is HandleState.CANCELLED

    @property
    def started(self) -> bool:
        return self._state in (HandleState.RUNNING, HandleState.COMPLETED, HandleState.FAILED)

    @property
    def done(self) -> bool:
        return self._state in (HandleState.COMPLETED, HandleState.FAILED, HandleState.CANCELLED)

    @property
    def future(self) -> Future[object]:
        """Completion of the task; cancelled if the task never started."""
        return self._future

    def cancel(self) -> bool:
        """Prevent the task from starting.

        Returns:
            True if the task was still pending, False if it already started,
            finished or was cancelled before
        """
        with self._lock:
            if self._state is not HandleState.PENDING:
                return False
            self._state = HandleState.CANCELLED
            release, self._release = self._release, []
        self._future.cancel()
        for fn in release:
            fn()
        return True

    def on_cancel(self, fn: Callable[[], None]) -> None:
        """Register a resource release hook (e.g. the loop timer) run on cancel.

        Runs immediately when the handle is already cancelled.
        """
        with self._lock:
            if self._state is HandleState.PENDING:
                self._release.append(fn)
                return
            run_now = self._state is HandleState.CANCELLED
        if run_now:
            fn()

    # ─── Scheduler side ───────────────────────────────────────────────

    def abandon(self, exc: BaseException) -> bool:
        """Fail a task that will never start because its scheduler shut down.

        Returns:
            True if the task was still pending
        """
        with self._lock:
            if self._state is not HandleState.PENDING:
                return False
            self._state = HandleState.FAILED
            self._release = []
        self._future.set_exception(exc)
        return True

    def begin(self) -> bool:
        """Claim the task for execution. False means it must not run."""
        with self._lock:
            if self._state is not HandleState.PENDING:
                return False
            if not self._future.set_running_or_notify_cancel():
                self._state = HandleState.CANCELLED
                return False
            self._state = HandleState.RUNNING
            self._release = []
        return True

    def set_result(self, result: object) -> None:
        self._state = HandleState.COMPLETED
        self._future.set_result(result)

    def set_exception(self, exc: BaseException) -> None:
        self._state = HandleState.FAILED
        self._future.set_exception(exc)

    def __repr__(self) -> str:
        return f"CancellationHandle({self.name}, delay={self.delay}, state={self._state.value})"
