"""Non-blocking scheduling contract and the asyncio-loop implementation.

A scheduler accepts tasks (zero-arg callables) and runs each one exactly
once on a worker, asynchronously relative to the caller. When a task
returns an awaitable, the scheduler drives it to completion on the same
worker's event loop. Neither ``submit`` nor ``schedule`` ever blocks.

Key Features:
    - Scheduler protocol: now / submit / schedule, injected into consumers
    - LoopScheduler: one asyncio event loop acting as one worker
    - Thread-safe dispatch via call_soon_threadsafe
    - Timer waits are loop timers, never thread sleeps

Example:
    >>> scheduler = LoopScheduler.current()
    >>> handle = scheduler.schedule(lambda: print("later"), 0.5)
    >>> handle.cancel()  # never prints
    True
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import threading
from typing import Protocol, runtime_checkable

from pacer.foundation.errors import SchedulerClosed
from pacer.runtime.observability import get_logger

from .timer import CancellationHandle, Clock, Task

__all__ = ["Scheduler", "LoopScheduler"]


@runtime_checkable
class Scheduler(Clock, Protocol):
    """Contract for non-blocking task execution.

    Implementations must be safe for concurrent use by many producers;
    internal synchronization is owned by the scheduler.
    """

    def submit(self, task: Task) -> None:
        """Run task as soon as a worker is free (delay = 0)."""
        ...

    def schedule(self, task: Task, delay: float) -> CancellationHandle:
        """Run task after ``delay`` seconds unless cancelled first."""
        ...


class LoopScheduler:
    """Scheduler backed by a single asyncio event loop.

    The loop is the worker: tasks run on the loop's thread and delayed tasks
    use ``loop.call_later``. Safe to call from any thread.

    Attributes:
        name: Label used in logs (worker thread name for pool workers)
    """

    __slots__ = ("_loop", "name", "_tasks", "_waiting", "_waiting_lock", "_log")

    def __init__(self, loop: asyncio.AbstractEventLoop, *, name: str = "loop") -> None:
        self._loop = loop
        self.name = name
        self._tasks: set[asyncio.Future[object]] = set()  # Strong refs until done
        self._waiting: set[CancellationHandle] = set()  # Accepted, not yet started
        self._waiting_lock = threading.Lock()
        self._log = get_logger("pacer.scheduler", worker=name)

    @classmethod
    def current(cls) -> LoopScheduler:
        """Wrap the running event loop. Raises RuntimeError outside a loop."""
        return cls(asyncio.get_running_loop())

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    @property
    def pending(self) -> int:
        """Number of awaitables still being driven on this loop."""
        return len(self._tasks)

    @property
    def waiting(self) -> int:
        """Number of accepted tasks and timers that have not started yet."""
        return len(self._waiting)

    def now(self) -> float:
        return self._loop.time()

    def submit(self, task: Task) -> None:
        self.spawn(task)

    def spawn(self, task: Task) -> CancellationHandle:
        """Like submit(), returning the handle whose future carries the outcome."""
        handle = CancellationHandle(task)
        self._call(self._execute, handle)
        return handle

    def schedule(self, task: Task, delay: float) -> CancellationHandle:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        handle = CancellationHandle(task, delay=delay)
        self._call(self._arm, handle)
        return handle

    def abandon_waiting(self) -> int:
        """Fail every accepted, unstarted task with SchedulerClosed.

        Called once the loop has stopped for good, so that nothing waiting
        on a dropped timer hangs. Returns the number of tasks abandoned.
        """
        with self._waiting_lock:
            waiting, self._waiting = self._waiting, set()
        closed = SchedulerClosed(f"Scheduler {self.name!r} shut down before the task started")
        abandoned = sum(handle.abandon(closed) for handle in waiting)
        if abandoned:
            self._log.debug("pending tasks abandoned", count=abandoned)
        return abandoned

    # ─── Loop-thread side ──────────────────────────────────────────────

    def _call(self, fn: object, handle: CancellationHandle) -> None:
        with self._waiting_lock:
            self._waiting.add(handle)
        handle.on_cancel(functools.partial(self._forget, handle))
        try:
            self._loop.call_soon_threadsafe(fn, handle)  # type: ignore[arg-type]
        except RuntimeError as e:
            self._forget(handle)
            raise SchedulerClosed(f"Scheduler {self.name!r} is closed") from e

    def _forget(self, handle: CancellationHandle) -> None:
        with self._waiting_lock:
            self._waiting.discard(handle)

    def _arm(self, handle: CancellationHandle) -> None:
        if handle.done:
            return
        timer = self._loop.call_later(handle.delay, self._execute, handle)
        handle.on_cancel(functools.partial(self._disarm, timer))

    def _disarm(self, timer: asyncio.TimerHandle) -> None:
        try:
            self._loop.call_soon_threadsafe(timer.cancel)
        except RuntimeError:
            pass  # Loop closed: its timers are gone with it

    def _execute(self, handle: CancellationHandle) -> None:
        self._forget(handle)
        if not handle.begin():
            return
        try:
            result = handle.task()
        except Exception as exc:
            self._fail(handle, exc)
            return
        if not inspect.isawaitable(result):
            handle.set_result(result)
            return
        fut = asyncio.ensure_future(result, loop=self._loop)
        self._tasks.add(fut)
        fut.add_done_callback(functools.partial(self._settle, handle))

    def _settle(self, handle: CancellationHandle, fut: asyncio.Future[object]) -> None:
        self._tasks.discard(fut)
        if fut.cancelled():
            handle.set_exception(asyncio.CancelledError())
        elif (exc := fut.exception()) is not None:
            self._fail(handle, exc)
        else:
            handle.set_result(fut.result())

    def _fail(self, handle: CancellationHandle, exc: BaseException) -> None:
        handle.set_exception(exc)
        self._log.warning("task failed", task=handle.name, error=repr(exc), error_type=type(exc).__name__)

    def __repr__(self) -> str:
        return f"LoopScheduler({self.name!r})"
