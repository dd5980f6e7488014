"""Retry controller: drives an operation through a policy on a scheduler.

State machine::

    idle ──start()──▶ running ──success──▶ succeeded
                        │  ▲
                failure │  │ timer fires (index + 1)
                        ▼  │
                    policy.decide ──GiveUp──▶ exhausted
                        │
      cancel() from idle/running ──▶ cancelled
      BlockingOperationDetected  ──▶ failed

Each attempt is a fresh task submitted to the scheduler; the delay between
attempts is a scheduler timer, never a blocking sleep. Attempts of one
controller never overlap: attempt N+1 is only scheduled from attempt N's
failure path. All transitions happen under a short internal lock so that
``cancel()`` is safe from any thread.

Example:
    >>> policy = RetryPolicy.exponential(0.05, 2.0, max_delay=1.0, max_attempts=4)
    >>> outcome = await retry(fetch_quote, policy)
    >>> outcome.unwrap()
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import inspect
import random
import threading
from enum import StrEnum
from typing import TYPE_CHECKING, Awaitable, Callable, Generator, Generic, Protocol, TypeVar, runtime_checkable

from pacer.foundation.errors import BlockingOperationDetected, Result, SchedulerClosed
from pacer.runtime.concurrency import LoopScheduler
from pacer.runtime.observability import get_logger

from .outcome import Exhausted, RetryOutcome, Succeeded
from .policy import Attempt, GiveUp, Retry, RetryPolicy

if TYPE_CHECKING:
    from pacer.runtime.concurrency import CancellationHandle, Scheduler

__all__ = [
    "ControllerState",
    "RetryController",
    "RetryHandle",
    "Cancellable",
    "Operation",
    "OnRetry",
    "retry",
    "cancel",
    "retrying",
]

T = TypeVar("T")

# Zero-arg callable; its awaited value (or Ok/Err result) is one attempt's outcome
Operation = Callable[[], Awaitable[T] | T]
OnRetry = Callable[[Attempt, float], object]


class ControllerState(StrEnum):
    """Retry loop lifecycle states."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    FAILED = "failed"        # Fatal error (blocking call, failing hook)


_LIVE = (ControllerState.IDLE, ControllerState.RUNNING)


def _blocking_cause(error: object) -> BlockingOperationDetected | None:
    """Find a guard detection in error or anywhere in its cause/context chain."""
    seen: set[int] = set()
    while isinstance(error, BaseException) and id(error) not in seen:
        if isinstance(error, BlockingOperationDetected):
            return error
        seen.add(id(error))
        error = error.__cause__ or error.__context__
    return None


class RetryController(Generic[T]):
    """One retry loop over one operation.

    The controller owns its attempt counter and its current timer handle;
    it shares nothing with other controllers except the scheduler.

    Args:
        operation: Zero-arg callable invoked once per attempt
        policy: Decides whether and when to retry
        scheduler: Where attempts and timers run
        rng: Random source for jitter (reproducible when seeded)
        name: Label for logs; defaults to the operation's qualified name
        on_retry: Called with (attempt, delay) before each retry is scheduled
    """

    __slots__ = (
        "name", "_operation", "_policy", "_scheduler", "_rng", "_on_retry", "_state", "_lock",
        "_future", "_timer", "_invocations", "_history", "_started_at", "_log",
    )

    def __init__(
        self,
        operation: Operation[T],
        policy: RetryPolicy,
        *,
        scheduler: Scheduler,
        rng: random.Random | None = None,
        name: str | None = None,
        on_retry: OnRetry | None = None,
    ) -> None:
        self.name = name or getattr(operation, "__qualname__", None) or repr(operation)
        self._operation = operation
        self._policy = policy
        self._scheduler = scheduler
        self._rng = rng or random.Random()
        self._on_retry = on_retry
        self._state = ControllerState.IDLE
        self._lock = threading.Lock()
        self._future: concurrent.futures.Future[RetryOutcome[T]] = concurrent.futures.Future()
        self._future.add_done_callback(self._on_future_done)
        self._timer: CancellationHandle | None = None
        self._invocations = 0
        self._history: list[Attempt] = []
        self._started_at = 0.0
        self._log = get_logger("pacer.retry", operation=self.name)

    # ─── Introspection ─────────────────────────────────────────────────

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def attempts(self) -> int:
        """Number of times the operation has been invoked."""
        return self._invocations

    @property
    def history(self) -> tuple[Attempt, ...]:
        """Failed attempts, oldest first."""
        return tuple(self._history)

    @property
    def future(self) -> concurrent.futures.Future[RetryOutcome[T]]:
        """Thread-safe channel carrying the outcome."""
        return self._future

    @property
    def done(self) -> bool:
        return self._state not in _LIVE

    # ─── Control ───────────────────────────────────────────────────────

    def start(self) -> RetryHandle[T]:
        """Submit attempt 0 and return a handle to await or cancel."""
        with self._lock:
            if self._state is not ControllerState.IDLE:
                raise RuntimeError(f"RetryController {self.name!r} already {self._state}")
            self._state = ControllerState.RUNNING
            self._started_at = self._scheduler.now()
        self._log.debug("retry loop started", max_attempts=self._policy.max_attempts)
        try:
            self._scheduler.submit(functools.partial(self._launch, 0))
        except Exception as exc:
            self._abort(exc)
            raise
        return RetryHandle(self)

    def cancel(self) -> bool:
        """Stop the loop: cancel the pending timer and discard any in-flight result.

        Idempotent and non-blocking. Returns False when the loop had already
        finished or been cancelled.
        """
        with self._lock:
            if self._state not in _LIVE:
                return False
            self._state = ControllerState.CANCELLED
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        self._future.cancel()
        self._log.info("retry loop cancelled", attempts=self._invocations)
        return True

    # ─── Attempts (run on the scheduler) ───────────────────────────────

    def _launch(self, index: int) -> Awaitable[None] | None:
        with self._lock:
            if self._state is not ControllerState.RUNNING:
                return None
            self._timer = None
            self._invocations += 1
        return self._attempt(index)

    async def _attempt(self, index: int) -> None:
        try:
            value = self._operation()
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            self.cancel()
            raise
        except Exception as exc:
            error: object = exc
        else:
            if not isinstance(value, Result):
                self._succeed(index, value)
                return
            if value.is_ok():
                self._succeed(index, value.unwrap())
                return
            error = value.unwrap_err()
        if (detected := _blocking_cause(error)) is not None:
            self._abort(detected)
            return
        try:
            self._handle_failure(index, error)
        except Exception as exc:
            self._abort(exc)

    def _succeed(self, index: int, value: T) -> None:
        if not self._transition(ControllerState.SUCCEEDED):
            self._log.debug("late result discarded", attempt=index, state=self._state.value)
            return
        self._log.debug("retry loop succeeded", attempts=index + 1)
        self._publish(Succeeded(value, index + 1))

    def _handle_failure(self, index: int, error: object) -> None:
        elapsed = self._scheduler.now() - self._started_at
        with self._lock:
            if self._state is not ControllerState.RUNNING:
                late = True
            else:
                late = False
                attempt = Attempt(index, error, elapsed)
                self._history.append(attempt)
        if late:
            self._log.debug("late failure discarded", attempt=index, error=repr(error))
            return
        self._log.debug("attempt failed", attempt=index, error=repr(error), elapsed=round(elapsed, 6))

        match self._policy.decide(attempt, self._rng):
            case GiveUp(reason=reason):
                if not self._transition(ControllerState.EXHAUSTED):
                    return
                self._log.warning("retries exhausted", attempts=index + 1, reason=reason.value, error=repr(error))
                self._publish(Exhausted(error, index + 1, reason))
            case Retry(delay=delay):
                if self._on_retry is not None:
                    self._on_retry(attempt, delay)
                with self._lock:
                    if self._state is not ControllerState.RUNNING:
                        return
                    # Replace, never accumulate, the timer handle
                    timer = self._timer = self._scheduler.schedule(functools.partial(self._launch, index + 1), delay)
                timer.future.add_done_callback(self._on_timer_done)
                self._log.debug("retry scheduled", attempt=index + 1, delay=delay)

    def _abort(self, exc: BaseException) -> None:
        if not self._transition(ControllerState.FAILED):
            return
        self._log.error("retry loop failed", error=repr(exc), error_type=type(exc).__name__)
        try:
            self._future.set_exception(exc)
        except concurrent.futures.InvalidStateError:
            pass  # Cancelled concurrently

    # ─── Helpers ───────────────────────────────────────────────────────

    def _transition(self, state: ControllerState) -> bool:
        with self._lock:
            if self._state is not ControllerState.RUNNING:
                return False
            self._state = state
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
        return True

    def _publish(self, outcome: RetryOutcome[T]) -> None:
        try:
            self._future.set_result(outcome)
        except concurrent.futures.InvalidStateError:
            pass  # Cancelled concurrently

    def _on_future_done(self, fut: concurrent.futures.Future[RetryOutcome[T]]) -> None:
        if fut.cancelled():
            self.cancel()

    def _on_timer_done(self, fut: concurrent.futures.Future[object]) -> None:
        # Scheduler shut down with the next attempt still pending
        if not fut.cancelled() and isinstance(exc := fut.exception(), SchedulerClosed):
            self._abort(exc)

    def __repr__(self) -> str:
        return f"RetryController({self.name!r}, state={self._state.value}, attempts={self._invocations})"


class RetryHandle(Generic[T]):
    """Awaitable, cancellable view of a running controller.

    Awaiting yields the RetryOutcome, raises BlockingOperationDetected for a
    fatal guard error, or raises asyncio.CancelledError once cancelled.
    Cancelling the awaiting task cancels the loop.
    """

    __slots__ = ("_controller",)

    def __init__(self, controller: RetryController[T]) -> None:
        self._controller = controller

    @property
    def controller(self) -> RetryController[T]:
        return self._controller

    @property
    def state(self) -> ControllerState:
        return self._controller.state

    @property
    def attempts(self) -> int:
        return self._controller.attempts

    def done(self) -> bool:
        return self._controller.done

    def cancel(self) -> bool:
        return self._controller.cancel()

    def __await__(self) -> Generator[object, None, RetryOutcome[T]]:
        return asyncio.wrap_future(self._controller.future).__await__()

    def __repr__(self) -> str:
        return f"RetryHandle({self._controller!r})"


@runtime_checkable
class Cancellable(Protocol):
    def cancel(self) -> bool: ...


# ─────────────────────────────────────────────────────────────────────────────
# Public API
# ─────────────────────────────────────────────────────────────────────────────


async def retry(
    operation: Operation[T],
    policy: RetryPolicy,
    *,
    scheduler: Scheduler | None = None,
    rng: random.Random | None = None,
    name: str | None = None,
    on_retry: OnRetry | None = None,
) -> RetryOutcome[T]:
    """Retry ``operation`` under ``policy`` and return the terminal outcome.

    Runs on the caller's event loop unless a scheduler (e.g. a WorkerPool) is
    given. Cancelling the awaiting task cancels the loop.

    Returns:
        Succeeded(value, attempts_used) or Exhausted(last_error, attempts_used, reason)

    Raises:
        BlockingOperationDetected: An attempt made a blocking call on a guarded worker
    """
    controller = RetryController(
        operation, policy, scheduler=scheduler or LoopScheduler.current(), rng=rng, name=name, on_retry=on_retry,
    )
    return await controller.start()


def cancel(handle: Cancellable) -> bool:
    """Best-effort cancel of a RetryHandle, RetryController or CancellationHandle."""
    return handle.cancel()


def retrying(
    policy: RetryPolicy | None = None,
    *,
    scheduler: Scheduler | None = None,
    rng: random.Random | None = None,
    on_retry: OnRetry | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator: retry an async function, returning its value or raising RetriesExhausted.

    Without a policy, one is built from RetrySettings at call time.

    Example:
        >>> @retrying(RetryPolicy.fixed(0.1, max_attempts=3))
        ... async def fetch_quote(symbol: str) -> float: ...
    """
    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(fn)
        async def wrapper(*args: object, **kwargs: object) -> T:
            outcome = await retry(
                functools.partial(fn, *args, **kwargs),
                policy if policy is not None else RetryPolicy.from_settings(),
                scheduler=scheduler, rng=rng, name=fn.__qualname__, on_retry=on_retry,
            )
            return outcome.unwrap()  # type: ignore[return-value]
        return wrapper
    return decorator
