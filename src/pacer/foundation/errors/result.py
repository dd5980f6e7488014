"""Ok/Err values for operations that report failure without raising.

The retry controller treats an ``Err`` exactly like a raised exception:
the wrapped error becomes the attempt's failure. An ``Ok`` is unwrapped
and counts as success.

Example:
    >>> async def poll_job() -> Result[str, str]:
    ...     return Ok("ready") if job.done else Err("pending")
"""

from __future__ import annotations

from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


class Result(Generic[T, E]):
    """Either a success value (Ok) or an error value (Err)."""

    __slots__ = ("_value", "_is_ok")
    __match_args__ = ("_value",)

    def __init__(self, value: T | E, is_ok: bool) -> None:
        self._value = value
        self._is_ok = is_ok

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    def unwrap(self) -> T:
        """Success value. Raises RuntimeError on Err."""
        if not self._is_ok:
            raise RuntimeError(f"unwrap() called on {self!r}")
        return self._value  # type: ignore[return-value]

    def unwrap_err(self) -> E:
        """Error value. Raises RuntimeError on Ok."""
        if self._is_ok:
            raise RuntimeError(f"unwrap_err() called on {self!r}")
        return self._value  # type: ignore[return-value]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        return self._is_ok == other._is_ok and self._value == other._value

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"{'Ok' if self._is_ok else 'Err'}({self._value!r})"


def Ok(value: T) -> Result[T, E]:  # noqa: N802
    return Result(value, True)


def Err(error: E) -> Result[T, E]:  # noqa: N802
    return Result(error, False)
