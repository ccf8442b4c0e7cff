"""In-memory event source.

An append-only, thread-safe stream held in process memory. Useful for
tests, demos and single-process pipelines. ``commit`` records the committed
cursor the way an offset-based broker tracks a consumer group, so callers
can observe how far the worker got.

Example:
    >>> source = InMemoryEventSource()
    >>> source.append("product.tag_added", b'{"tag": "books"}')
    Envelope(event_id='1', type='product.tag_added', ...)
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from esprojector.foundation.domain import BEGINNING, Envelope
from esprojector.infra.eventsourcing.sources.positions import decode_position, encode_position

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from esprojector.foundation.domain import Cursor, RunContext


class InMemoryEventSource:
    """Append-only in-memory stream implementing ``EventSourcePort``.

    Attributes:
        _events: Envelopes in stream order; position ``n`` is ``_events[n - 1]``.
        _committed: Last committed cursor.
        _lock: Guards both of the above.
    """

    def __init__(self, envelopes: Sequence[Envelope] = ()) -> None:
        """Create a source, optionally pre-populated.

        Args:
            envelopes: Initial envelopes, in stream order.
        """
        self._events: list[Envelope] = list(envelopes)
        self._committed: Cursor = BEGINNING
        self._lock = threading.Lock()

    def append(
        self,
        type: str,  # noqa: A002
        data: bytes = b"",
        metadata: Mapping[str, str] | None = None,
        event_id: str | None = None,
    ) -> Envelope:
        """Append one event and return its envelope.

        Args:
            type: Event type tag.
            data: Opaque payload.
            metadata: Optional string metadata.
            event_id: Event identifier. Defaults to the stream position.
        """
        with self._lock:
            position = len(self._events) + 1
            envelope = Envelope(
                event_id=event_id or str(position),
                type=type,
                data=data,
                metadata=metadata or {},
            )
            self._events.append(envelope)
        return envelope

    def fetch(
        self,
        ctx: RunContext,
        cursor: Cursor,
        limit: int,
    ) -> tuple[list[Envelope], Cursor]:
        """Return up to ``limit`` envelopes after ``cursor``.

        Raises:
            InvalidCursorError: If ``cursor`` was not issued by this source.
            ValueError: If ``limit`` is not positive.
        """
        if limit <= 0:
            msg = f"limit must be positive, got {limit}"
            raise ValueError(msg)
        position = decode_position(cursor)
        with self._lock:
            batch = self._events[position : position + limit]
        if not batch:
            return [], cursor
        return batch, encode_position(position + len(batch))

    def commit(self, ctx: RunContext, cursor: Cursor) -> None:
        """Record ``cursor`` as the committed position."""
        decode_position(cursor)
        with self._lock:
            self._committed = cursor

    @property
    def committed(self) -> Cursor:
        """Last committed cursor (``b""`` before any commit)."""
        with self._lock:
            return self._committed

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
