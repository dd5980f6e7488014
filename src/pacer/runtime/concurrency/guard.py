"""Blocking-call detection for non-blocking worker threads.

While a guard is installed, known blocking APIs are wrapped. A call made on
a guarded thread fails immediately with ``BlockingOperationDetected``
instead of stalling the worker's event loop. Unguarded threads (the main
thread, executor threads used for ``loop.getaddrinfo`` and the like) pass
straight through to the original function.

Instrumented by default:
    - ``time.sleep`` with a positive duration
    - ``builtins.open``
    - blocking-mode ``socket.socket`` I/O: recv, recv_into, recvfrom, send,
      sendall, accept, connect; plus ``socket.getaddrinfo``
    - ``threading.Event.wait``, ``threading.Condition.wait``,
      ``threading.Semaphore.acquire``, ``threading.Thread.join``
    - ``queue.Queue.get`` / ``queue.Queue.put`` in blocking mode
    - ``concurrent.futures.Future.result`` on an unfinished future
    - ``subprocess.Popen.wait`` on a live process

Calls that cannot block pass: ``sleep(0)``, sockets in non-blocking mode,
``block=False``, zero timeouts, already-set events and finished futures.
The event loop's own selector wait is not instrumented, so timers and
``asyncio.sleep`` on a worker are never flagged.

Limitations:
    This is advisory instrumentation, not a sandbox. It does not detect
    busy-spin loops; native blocking such as ``_thread.lock.acquire``,
    ``select.select`` or calls made inside C extensions; references bound
    before installation (``from time import sleep``); or subclasses that
    override an instrumented method (``ssl.SSLSocket.recv``).

Example:
    >>> guard = BlockingCallGuard()
    >>> with guard, guard.guarded():
    ...     time.sleep(0.1)
    Traceback (most recent call last):
    BlockingOperationDetected: Blocking call time.sleep() detected ...
"""

from __future__ import annotations

import builtins
import concurrent.futures
import functools
import queue
import socket
import subprocess
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable

from pacer.foundation.errors import BlockingOperationDetected
from pacer.runtime.observability import get_logger

__all__ = [
    "BlockingCall",
    "BlockingCallGuard",
    "Detection",
    "DEFAULT_BLOCKING_CALLS",
    "allow_blocking",
    "is_guarded",
]

_local = threading.local()


@dataclass(frozen=True, slots=True)
class BlockingCall:
    """A blocking API to instrument.

    Attributes:
        owner: Module or class holding the attribute
        attribute: Attribute name on owner
        label: Name reported in diagnostics
        allows: Predicate over the call arguments; True when this particular
            invocation cannot block
    """

    owner: object
    attribute: str
    label: str
    allows: Callable[..., bool] | None = field(default=None, compare=False)

    @property
    def key(self) -> tuple[int, str]:
        return (id(self.owner), self.attribute)


@dataclass(frozen=True, slots=True)
class Detection:
    """Record of one blocked call."""

    call: str
    thread: str
    timestamp: float


def _nonblocking_socket(sock: socket.socket, *_: object, **__: object) -> bool:
    return sock.gettimeout() == 0.0


def _zero_timeout(timeout: float | None) -> bool:
    return timeout is not None and timeout <= 0


DEFAULT_BLOCKING_CALLS: tuple[BlockingCall, ...] = (
    BlockingCall(time, "sleep", "time.sleep", lambda seconds: seconds <= 0),
    BlockingCall(builtins, "open", "open"),
    *(
        BlockingCall(socket.socket, name, f"socket.{name}", _nonblocking_socket)
        for name in ("recv", "recv_into", "recvfrom", "send", "sendall", "accept", "connect")
    ),
    BlockingCall(socket, "getaddrinfo", "socket.getaddrinfo"),
    BlockingCall(threading.Event, "wait", "threading.Event.wait",
                 lambda self, timeout=None: self.is_set() or _zero_timeout(timeout)),
    BlockingCall(threading.Condition, "wait", "threading.Condition.wait",
                 lambda self, timeout=None: _zero_timeout(timeout)),
    BlockingCall(threading.Semaphore, "acquire", "threading.Semaphore.acquire",
                 lambda self, blocking=True, timeout=None: not blocking or _zero_timeout(timeout)),
    BlockingCall(threading.Thread, "join", "threading.Thread.join",
                 lambda self, timeout=None: not self.is_alive() or _zero_timeout(timeout)),
    BlockingCall(queue.Queue, "get", "queue.Queue.get",
                 lambda self, block=True, timeout=None: not block or _zero_timeout(timeout)),
    BlockingCall(queue.Queue, "put", "queue.Queue.put",
                 lambda self, item, block=True, timeout=None: not block or _zero_timeout(timeout)),
    BlockingCall(concurrent.futures.Future, "result", "concurrent.futures.Future.result",
                 lambda self, timeout=None: self.done() or _zero_timeout(timeout)),
    BlockingCall(subprocess.Popen, "wait", "subprocess.Popen.wait",
                 lambda self, timeout=None: self.returncode is not None or _zero_timeout(timeout)),
)


# ─────────────────────────────────────────────────────────────────────────────
# Thread state
# ─────────────────────────────────────────────────────────────────────────────


def _active_guard() -> BlockingCallGuard | None:
    if getattr(_local, "allowed", 0):
        return None
    return getattr(_local, "guard", None)


def is_guarded() -> bool:
    """Whether blocking calls on the current thread are currently rejected."""
    return _active_guard() is not None


@contextmanager
def allow_blocking() -> Iterator[None]:
    """Permit blocking calls on the current thread for the enclosed block.

    Used by scheduler internals (loop teardown) and diagnostics rendering.
    """
    _local.allowed = getattr(_local, "allowed", 0) + 1
    try:
        yield
    finally:
        _local.allowed -= 1


# ─────────────────────────────────────────────────────────────────────────────
# Patching (reference counted across guards)
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(slots=True)
class _Patch:
    call: BlockingCall
    original: object
    owned: bool  # Defined on owner itself rather than inherited
    refs: int = 1


_patches: dict[tuple[int, str], _Patch] = {}
_patch_lock = threading.Lock()


def _instrument(call: BlockingCall, original: Callable[..., object]) -> Callable[..., object]:
    key = call.key

    @functools.wraps(original)
    def wrapper(*args: object, **kwargs: object) -> object:
        guard = _active_guard()
        if guard is not None and key in guard._keys and not (call.allows and call.allows(*args, **kwargs)):
            guard._detected(call)
        return original(*args, **kwargs)

    return wrapper


def _patch(call: BlockingCall) -> None:
    if (patch := _patches.get(call.key)) is not None:
        patch.refs += 1
        return
    original = getattr(call.owner, call.attribute)
    owned = call.attribute in vars(call.owner)
    setattr(call.owner, call.attribute, _instrument(call, original))
    _patches[call.key] = _Patch(call, original, owned)


def _unpatch(call: BlockingCall) -> None:
    if (patch := _patches.get(call.key)) is None:
        return
    patch.refs -= 1
    if patch.refs == 0:
        if patch.owned:
            setattr(call.owner, call.attribute, patch.original)
        else:
            delattr(call.owner, call.attribute)
        del _patches[call.key]


# ─────────────────────────────────────────────────────────────────────────────
# Guard
# ─────────────────────────────────────────────────────────────────────────────


class BlockingCallGuard:
    """Fail-fast detector for blocking calls on non-blocking threads.

    ``install()`` wraps the configured APIs process-wide; only threads marked
    with ``guard_thread()`` (or code inside ``guarded()``) are checked. Every
    detection is recorded, logged, reported to ``on_detect`` and raised as
    ``BlockingOperationDetected`` so the enclosing task fails observably.

    Example:
        >>> guard = BlockingCallGuard(on_detect=print)
        >>> async with WorkerPool(size=2, guard=guard) as pool:
        ...     await pool.run(lambda: time.sleep(1))  # raises BlockingOperationDetected
    """

    __slots__ = ("_calls", "_keys", "_detections", "_on_detect", "_installed", "_log")

    def __init__(
        self,
        calls: tuple[BlockingCall, ...] = DEFAULT_BLOCKING_CALLS,
        *,
        on_detect: Callable[[Detection], None] | None = None,
    ) -> None:
        self._calls = tuple(calls)
        self._keys = frozenset(c.key for c in self._calls)
        self._detections: list[Detection] = []
        self._on_detect = on_detect
        self._installed = False
        self._log = get_logger("pacer.guard")

    @property
    def calls(self) -> tuple[BlockingCall, ...]:
        return self._calls

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def detections(self) -> tuple[Detection, ...]:
        return tuple(self._detections)

    def clear(self) -> None:
        self._detections.clear()

    def install(self) -> BlockingCallGuard:
        """Instrument the configured blocking APIs. Idempotent."""
        with _patch_lock:
            if not self._installed:
                for call in self._calls:
                    _patch(call)
                self._installed = True
        return self

    def uninstall(self) -> None:
        """Remove this guard's instrumentation; originals return when no guard needs them."""
        with _patch_lock:
            if self._installed:
                for call in self._calls:
                    _unpatch(call)
                self._installed = False

    def guard_thread(self) -> None:
        """Mark the current thread as a non-blocking worker for its lifetime."""
        _local.guard = self

    def release_thread(self) -> None:
        if getattr(_local, "guard", None) is self:
            _local.guard = None

    @contextmanager
    def guarded(self) -> Iterator[BlockingCallGuard]:
        """Check blocking calls on the current thread within the block."""
        previous = getattr(_local, "guard", None)
        _local.guard = self
        try:
            yield self
        finally:
            _local.guard = previous

    allow_blocking = staticmethod(allow_blocking)

    def _detected(self, call: BlockingCall) -> None:
        thread = threading.current_thread().name
        detection = Detection(call=call.label, thread=thread, timestamp=time.time())
        self._detections.append(detection)
        with allow_blocking():
            self._log.error("blocking call detected", call=call.label, thread=thread)
            if self._on_detect is not None:
                self._on_detect(detection)
        raise BlockingOperationDetected(call.label, thread)

    def __enter__(self) -> BlockingCallGuard:
        return self.install()

    def __exit__(self, *_: object) -> None:
        self.uninstall()

    def __repr__(self) -> str:
        return f"BlockingCallGuard(calls={len(self._calls)}, installed={self._installed})"
