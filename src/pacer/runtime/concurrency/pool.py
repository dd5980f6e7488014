"""Pool of non-blocking worker threads, each running its own event loop.

Every WorkerContext owns one thread and one asyncio loop. Work is dispatched
round-robin; a submitted task runs on exactly one worker and any awaitable
it returns is driven on that worker's loop. Workers never migrate state:
each scheduled task is a fresh submission.

Key Features:
    - Implements the Scheduler protocol (submit / schedule / now)
    - Optional BlockingCallGuard on every worker thread
    - Context manager support (sync and async) for start/shutdown
    - run(): await a task's result from any event loop

Example:
    >>> async with WorkerPool(size=4, guard=BlockingCallGuard()) as pool:
    ...     outcome = await retry(fetch_quote, policy, scheduler=pool)
    ...     value = await pool.run(lambda: compute(outcome.unwrap()))
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pacer.foundation.errors import SchedulerClosed
from pacer.runtime.observability import get_logger

from .guard import BlockingCallGuard, allow_blocking
from .scheduler import LoopScheduler
from .timer import CancellationHandle, Clock, MonotonicClock, Task

if TYPE_CHECKING:
    from types import TracebackType

    from pacer.foundation.config import PacerSettings

__all__ = ["WorkerContext", "WorkerPool", "DEFAULT_WORKERS"]

DEFAULT_WORKERS = 4

_log = get_logger("pacer.pool")


class WorkerContext(LoopScheduler):
    """One non-blocking execution slot: a thread serving an event loop.

    Created at pool start, destroyed at pool shutdown. The loop's selector
    wait is the only place the thread idles.
    """

    __slots__ = ("index", "_guard", "_thread", "_ready")

    def __init__(self, index: int, *, name: str, guard: BlockingCallGuard | None = None) -> None:
        super().__init__(asyncio.new_event_loop(), name=name)
        self.index = index
        self._guard = guard
        self._thread = threading.Thread(target=self._serve, name=name, daemon=True)
        self._ready = threading.Event()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive()

    @property
    def thread(self) -> threading.Thread:
        return self._thread

    def start(self) -> None:
        self._thread.start()
        self._ready.wait()

    def stop(self, wait: bool = True) -> None:
        """Stop the loop; running tasks are cancelled, unstarted ones fail with SchedulerClosed."""
        if not self._thread.is_alive():
            return
        try:
            self._loop.call_soon_threadsafe(self._loop.stop)
        except RuntimeError:
            return  # Loop already closed
        if wait:
            self._thread.join()

    def _serve(self) -> None:
        asyncio.set_event_loop(self._loop)
        if self._guard is not None:
            self._guard.guard_thread()
        self._ready.set()
        try:
            self._loop.run_forever()
        finally:
            with allow_blocking():
                self._teardown()

    def _teardown(self) -> None:
        loop = self._loop
        pending = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.run_until_complete(loop.shutdown_asyncgens())
        loop.close()
        self.abandon_waiting()
        if self._guard is not None:
            self._guard.release_thread()


@dataclass(slots=True)
class WorkerPool:
    """Fixed-size pool of guarded, non-blocking workers.

    Safe for concurrent use by many retry controllers: dispatch only touches
    a round-robin counter and each worker's thread-safe loop queue.

    Attributes:
        size: Number of worker threads (>= 1)
        guard: Installed on start and applied to every worker thread
        thread_name_prefix: Worker threads are named prefix + index
        clock: Source for now(); defaults to the monotonic clock the worker loops use
    """

    size: int = DEFAULT_WORKERS
    guard: BlockingCallGuard | None = None
    thread_name_prefix: str = "pacer-worker-"
    clock: Clock = field(default_factory=MonotonicClock, repr=False)
    _workers: list[WorkerContext] = field(default_factory=list, repr=False)
    _counter: itertools.count[int] = field(default_factory=itertools.count, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError("size must be >= 1")

    @classmethod
    def from_settings(cls, settings: PacerSettings | None = None) -> WorkerPool:
        """Build from SchedulerSettings / GuardSettings (PACER_SCHEDULER_*, PACER_GUARD_*)."""
        if settings is None:
            from pacer.foundation.config import get_settings
            settings = get_settings()
        return cls(
            size=settings.scheduler.workers,
            guard=BlockingCallGuard() if settings.guard.enabled else None,
            thread_name_prefix=settings.scheduler.thread_name_prefix,
        )

    @property
    def running(self) -> bool:
        return bool(self._workers)

    @property
    def workers(self) -> tuple[WorkerContext, ...]:
        return tuple(self._workers)

    def start(self) -> WorkerPool:
        """Spin up worker threads. Idempotent."""
        with self._lock:
            if self._workers:
                return self
            if self.guard is not None:
                self.guard.install()
            workers = [
                WorkerContext(i, name=f"{self.thread_name_prefix}{i}", guard=self.guard)
                for i in range(self.size)
            ]
            for worker in workers:
                worker.start()
            self._workers = workers
        _log.debug("worker pool started", size=self.size, guarded=self.guard is not None)
        return self

    def shutdown(self, wait: bool = True) -> None:
        """Stop all workers and remove guard instrumentation."""
        with self._lock:
            workers, self._workers = self._workers, []
        if not workers:
            return
        for worker in workers:
            worker.stop(wait=wait)
        if self.guard is not None:
            self.guard.uninstall()
        _log.debug("worker pool stopped", size=len(workers))

    def _pick(self) -> WorkerContext:
        workers = self._workers
        if not workers:
            raise SchedulerClosed("WorkerPool is not running")
        return workers[next(self._counter) % len(workers)]

    # ─── Scheduler protocol ────────────────────────────────────────────

    def now(self) -> float:
        return self.clock.now()

    def submit(self, task: Task) -> None:
        self._pick().submit(task)

    def schedule(self, task: Task, delay: float) -> CancellationHandle:
        return self._pick().schedule(task, delay)

    def spawn(self, task: Task) -> CancellationHandle:
        """Submit and return the handle whose future carries the outcome."""
        return self._pick().spawn(task)

    async def run(self, task: Task) -> object:
        """Run task on a worker and await its result from the calling loop.

        Raises whatever the task raised, including BlockingOperationDetected.
        """
        return await asyncio.wrap_future(self.spawn(task).future)

    # ─── Context managers ──────────────────────────────────────────────

    def __enter__(self) -> WorkerPool:
        return self.start()

    def __exit__(self, *_: object) -> None:
        self.shutdown(wait=True)

    async def __aenter__(self) -> WorkerPool:
        return self.start()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.shutdown(wait=True)
