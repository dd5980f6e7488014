"""Deterministic scheduler with a virtual clock.

Nothing runs until the test drives it: ``run_until_idle()`` fires every
queued task, jumping the clock straight to each timer's due time, and
``advance(seconds)`` fires only what falls due within the window. Delays
passed to ``schedule()`` are recorded so tests can assert exact backoff
sequences without waiting in real time.

Example:
    >>> scheduler = VirtualScheduler()
    >>> task = asyncio.ensure_future(retry(op, RetryPolicy.fixed(0.01, 5), scheduler=scheduler))
    >>> await scheduler.run_until_idle()
    >>> scheduler.delays
    [0.01, 0.01, 0.01, 0.01]
"""

from __future__ import annotations

import asyncio
import functools
import heapq
import inspect
import itertools

from pacer.runtime.concurrency import CancellationHandle, Task

__all__ = ["VirtualScheduler"]


class VirtualScheduler:
    """In-memory Scheduler for tests: single worker, virtual time.

    Tasks run on the calling event loop when the test drives the scheduler;
    awaitables they return are tracked and awaited before the next task
    fires, so attempts observe the same ordering a real worker gives them.

    Attributes:
        delays: Every delay passed to schedule(), in call order
        executed: Number of tasks that actually ran
    """

    __slots__ = ("_now", "_queue", "_seq", "_tasks", "delays", "executed")

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, CancellationHandle]] = []
        self._seq = itertools.count()
        self._tasks: set[asyncio.Future[object]] = set()
        self.delays: list[float] = []
        self.executed = 0

    # ─── Scheduler protocol ────────────────────────────────────────────

    def now(self) -> float:
        return self._now

    def submit(self, task: Task) -> None:
        self.spawn(task)

    def spawn(self, task: Task) -> CancellationHandle:
        handle = CancellationHandle(task)
        self._push(self._now, handle)
        return handle

    def schedule(self, task: Task, delay: float) -> CancellationHandle:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self.delays.append(delay)
        handle = CancellationHandle(task, delay=delay)
        self._push(self._now + delay, handle)
        return handle

    # ─── Driving ───────────────────────────────────────────────────────

    @property
    def pending(self) -> int:
        """Queued tasks that are neither started nor cancelled."""
        return sum(1 for _, _, h in self._queue if not h.done)

    async def run_until_idle(self) -> None:
        """Fire everything queued, including tasks queued while draining.

        Hangs if a tracked awaitable never completes.
        """
        await self._drain(until=None)

    async def advance(self, seconds: float) -> None:
        """Move the clock forward, firing tasks due within the window."""
        target = self._now + seconds
        await self._drain(until=target)
        self._now = max(self._now, target)

    async def _drain(self, until: float | None) -> None:
        while True:
            await self._quiesce()
            if (handle := self._pop_due(until)) is None:
                return
            self._run(handle)

    async def _quiesce(self) -> None:
        await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)
            await asyncio.sleep(0)

    def _pop_due(self, until: float | None) -> CancellationHandle | None:
        while self._queue:
            when, _, handle = self._queue[0]
            if handle.done:
                heapq.heappop(self._queue)
                continue
            if until is not None and when > until:
                return None
            heapq.heappop(self._queue)
            self._now = max(self._now, when)
            return handle
        return None

    def _push(self, when: float, handle: CancellationHandle) -> None:
        heapq.heappush(self._queue, (when, next(self._seq), handle))

    def _run(self, handle: CancellationHandle) -> None:
        if not handle.begin():
            return
        self.executed += 1
        try:
            result = handle.task()
        except Exception as exc:
            handle.set_exception(exc)
            return
        if not inspect.isawaitable(result):
            handle.set_result(result)
            return
        fut = asyncio.ensure_future(result)
        self._tasks.add(fut)
        fut.add_done_callback(functools.partial(self._settle, handle))

    def _settle(self, handle: CancellationHandle, fut: asyncio.Future[object]) -> None:
        self._tasks.discard(fut)
        if fut.cancelled():
            handle.set_exception(asyncio.CancelledError())
        elif (exc := fut.exception()) is not None:
            handle.set_exception(exc)
        else:
            handle.set_result(fut.result())

    def __repr__(self) -> str:
        return f"VirtualScheduler(now={self._now}, pending={self.pending})"
