"""Scripted test double for retried operations.

StubOperation replaces a real fallible operation with controlled outcomes:
- Scripted per-call results (values, exceptions, Err results)
- A default outcome once the script runs out
- Recording of every invocation for verification
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from pacer.foundation.errors import Result

if TYPE_CHECKING:
    from pacer.runtime.concurrency import Clock

T = TypeVar("T")

_UNSET = object()


@dataclass(slots=True)
class Invocation:
    """Record of a single operation call."""
    index: int
    at: float | None
    result: object = None
    exception: Exception | None = None

    @property
    def failed(self) -> bool:
        return self.exception is not None or (isinstance(self.result, Result) and self.result.is_err())


@dataclass
class StubOperation(Generic[T]):
    """Async zero-arg operation returning scripted outcomes.

    Each call consumes the next ``script`` entry: an exception instance or
    class is raised, anything else (including ``Ok``/``Err``) is returned.
    Once the script is exhausted ``default`` is used, or the last entry is
    repeated when no default is given.

    Example:
        >>> op = StubOperation([ConnectionError("down"), ConnectionError("down"), "ok"])
        >>> outcome = await retry(op, RetryPolicy.fixed(0.0, max_attempts=5))
        >>> op.assert_called_times(3)
    """
    script: list[object] = field(default_factory=list)
    default: object = _UNSET
    side_effect: Callable[[int], object] | None = None
    gate: asyncio.Event | None = None
    clock: Clock | None = None
    name: str = "stub_operation"
    invocations: list[Invocation] = field(default_factory=list)

    @classmethod
    def failing(cls, error: Exception | type[Exception] = RuntimeError, **kw: object) -> StubOperation[T]:
        """Fail on every call."""
        return cls(default=error, **kw)  # type: ignore[arg-type]

    @classmethod
    def succeeding_after(
        cls, failures: int, value: T, error: Exception | type[Exception] = RuntimeError, **kw: object,
    ) -> StubOperation[T]:
        """Fail ``failures`` times, then return ``value`` forever."""
        return cls(script=[error] * failures, default=value, **kw)  # type: ignore[arg-type]

    @property
    def call_count(self) -> int:
        return len(self.invocations)

    @property
    def called(self) -> bool:
        return self.call_count > 0

    @property
    def last_call(self) -> Invocation | None:
        return self.invocations[-1] if self.invocations else None

    @property
    def call_times(self) -> list[float | None]:
        return [i.at for i in self.invocations]

    def assert_called(self) -> None:
        if not self.called:
            raise AssertionError("Expected operation to be called")

    def assert_not_called(self) -> None:
        if self.called:
            raise AssertionError(f"Operation called {self.call_count} times")

    def assert_called_times(self, n: int) -> None:
        if self.call_count != n:
            raise AssertionError(f"Expected {n} calls, got {self.call_count}")

    def _next(self, index: int) -> object:
        if self.side_effect is not None:
            return self.side_effect(index)
        if index < len(self.script):
            return self.script[index]
        if self.default is not _UNSET:
            return self.default
        if self.script:
            return self.script[-1]
        return None

    async def __call__(self) -> T:
        index = len(self.invocations)
        record = Invocation(index=index, at=self.clock.now() if self.clock else None)
        self.invocations.append(record)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self._next(index)
        if isinstance(outcome, type) and issubclass(outcome, Exception):
            outcome = outcome(f"{self.name} failed on call {index}")
        if isinstance(outcome, Exception):
            record.exception = outcome
            raise outcome
        record.result = outcome
        return outcome  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"StubOperation({self.name!r}, calls={self.call_count})"
