"""Port interfaces consumed and exposed by the projection worker.

The worker talks to the outside world through exactly three seams:

- ``EventSourcePort``: where events come from (fetch) and where progress is
  reported back (commit).
- ``ApplyFunc``: the caller's projection, which also owns checkpointing.
- ``LogSink``: an optional diagnostic side channel.

Example:
    >>> from esprojector.foundation.domain.ports import EventSourcePort
    >>> def drain(source: EventSourcePort, ctx, cursor) -> int:
    ...     batch, _ = source.fetch(ctx, cursor, 100)
    ...     return len(batch)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias, runtime_checkable

if TYPE_CHECKING:
    from esprojector.foundation.domain.context import RunContext
    from esprojector.foundation.domain.envelope import Cursor, Envelope


@runtime_checkable
class EventSourcePort(Protocol):
    """Ordered, cursor-addressable source of events.

    Implementations adapt a concrete store (a notification log, an events
    table, a log-offset stream). They should honour ``ctx`` in blocking
    calls and return promptly once it is done.
    """

    def fetch(
        self,
        ctx: RunContext,
        cursor: Cursor,
        limit: int,
    ) -> tuple[Sequence[Envelope], Cursor]:
        """Return up to ``limit`` envelopes strictly after ``cursor``.

        Must not change the source's durable state, so repeated calls with
        the same cursor are safe.

        Args:
            ctx: Run context of the calling worker.
            cursor: Position to read after. ``b""`` reads from the beginning.
            limit: Maximum number of envelopes to return.

        Returns:
            The envelopes in stream order and the cursor positioned after
            the last of them. An empty sequence (not an exception) when
            there is nothing new.
        """
        ...

    def commit(self, ctx: RunContext, cursor: Cursor) -> None:
        """Record that everything up to ``cursor`` was applied downstream.

        Sources whose events are already durable may implement this as a
        no-op; offset-based sources advance their consumer position here.
        """
        ...


ApplyFunc: TypeAlias = Callable[["RunContext", Sequence["Envelope"], "Cursor"], None]
"""Caller projection: ``apply(ctx, batch, next_cursor)``.

Persists the read-model changes for ``batch`` and, if the caller keeps one,
the ``next_cursor`` checkpoint, ideally in a single transaction. Delivery is
at-least-once, so it must be idempotent. Raise to stop the worker.
"""

LogSink: TypeAlias = Callable[..., Any]
"""Diagnostic sink: ``sink(msg, **kv)``. Must not block and should not raise."""
