"""Cancellable, timeoutable run context.

A ``RunContext`` is handed to ``ProjectionWorker.run()`` and on to every
collaborator call. It is the only way to stop a running worker: either by
calling ``cancel()`` or by letting a deadline pass. The context remembers
*why* it is done so callers can tell voluntary cancellation apart from a
deadline.

Contexts form a tree. Cancelling a parent cancels every child; a child's
deadline is never later than its parent's.

Example:
    >>> from esprojector.foundation.domain import RunContext
    >>> ctx = RunContext.with_timeout(5.0)
    >>> ctx.done()
    False
    >>> ctx.cancel()
    >>> ctx.err()
    CancelledError('context cancelled', context={})
"""

from __future__ import annotations

import threading
import time
from typing import TYPE_CHECKING

from esprojector.foundation.domain.exceptions import (
    CancelledError,
    ContextError,
    DeadlineExceededError,
)

if TYPE_CHECKING:
    from types import TracebackType


class RunContext:
    """Cooperative cancellation signal with an optional deadline.

    Thread-safe: ``cancel()`` may be called from any thread while a worker
    is blocked in ``wait()`` on another.

    Attributes:
        _parent: Parent context, if derived.
        _deadline: Absolute ``time.monotonic()`` deadline, or ``None``.
        _timeout: Timeout this context was created with, for error reporting.
        _done: Event set once the context is cancelled.
        _err: The first error that ended this context.
        _children: Derived contexts to cancel along with this one.
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        parent: RunContext | None = None,
    ) -> None:
        """Create a context.

        Prefer the ``background()`` / ``with_timeout()`` constructors and
        ``child()`` for derived contexts.

        Args:
            timeout: Seconds until the context expires. ``None`` for no
                deadline of its own.
            parent: Optional parent context.

        Raises:
            ValueError: If ``timeout`` is negative.
        """
        if timeout is not None and timeout < 0:
            msg = f"timeout must be non-negative, got {timeout}"
            raise ValueError(msg)
        self._parent = parent
        self._timeout = timeout
        self._deadline: float | None = None
        if timeout is not None:
            self._deadline = time.monotonic() + timeout
        if parent is not None and parent._deadline is not None:
            if self._deadline is None or parent._deadline < self._deadline:
                self._deadline = parent._deadline
                self._timeout = None
        self._done = threading.Event()
        self._err: ContextError | None = None
        self._lock = threading.Lock()
        self._children: list[RunContext] = []
        if parent is not None:
            parent._attach(self)

    @classmethod
    def background(cls) -> RunContext:
        """Return a context that only ends when cancelled."""
        return cls()

    @classmethod
    def with_timeout(cls, timeout: float) -> RunContext:
        """Return a root context that expires after ``timeout`` seconds."""
        return cls(timeout=timeout)

    def child(self, timeout: float | None = None) -> RunContext:
        """Derive a context that ends when this one ends, or earlier.

        Args:
            timeout: Optional timeout for the child, in seconds.
        """
        return RunContext(timeout=timeout, parent=self)

    def cancel(self) -> None:
        """Cancel this context and all of its children.

        Idempotent. A context that already expired keeps its
        ``DeadlineExceededError``.
        """
        if self.err() is None:
            self._finish(CancelledError())

    def done(self) -> bool:
        """Return ``True`` once the context is cancelled or expired."""
        return self.err() is not None

    def err(self) -> ContextError | None:
        """Return why the context is done, or ``None`` while it is live."""
        if self._err is None and self._deadline is not None and time.monotonic() >= self._deadline:
            self._finish(DeadlineExceededError(self._timeout))
        return self._err

    def remaining(self) -> float | None:
        """Seconds left until the deadline, ``None`` without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the context is done or ``timeout`` elapses.

        Args:
            timeout: Maximum seconds to wait. ``None`` waits until done.

        Returns:
            ``True`` if the context is done, ``False`` if the timeout won.
        """
        if self.done():
            return True
        remaining = self.remaining()
        if remaining is not None and (timeout is None or remaining < timeout):
            self._done.wait(remaining)
        else:
            self._done.wait(timeout)
        return self.done()

    def _attach(self, child: RunContext) -> None:
        with self._lock:
            err = self._err
            if err is None:
                self._children.append(child)
        if err is not None:
            child._finish(err)

    def _finish(self, err: ContextError) -> None:
        with self._lock:
            if self._err is not None:
                return
            self._err = err
            children, self._children = self._children, []
        self._done.set()
        for child in children:
            child._finish(err)
        if self._parent is not None:
            self._parent._detach(self)

    def _detach(self, child: RunContext) -> None:
        with self._lock:
            if child in self._children:
                self._children.remove(child)

    def __enter__(self) -> RunContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Cancel the context when leaving a ``with`` block."""
        self.cancel()

    def __repr__(self) -> str:
        state = type(self._err).__name__ if self._err is not None else "live"
        return f"{self.__class__.__name__}(state={state}, remaining={self.remaining()!r})"
