"""SQL events table: append side and worker-facing source.

One table holds every stream. Each row has a global, monotonically
increasing ``position`` that totally orders the table; the cursor handed
to the worker is that position in ASCII decimal.

Columns::

    position        integer primary key, autoincrement
    stream_id       text, unique together with version
    version         integer, 1-based within the stream
    event_id        text, unique
    event_type      text
    event_data      bytes
    event_metadata  JSON text (nullable)
    created_at      timestamp, server default now

``SqlEventStore`` appends to the table (the producer side). ``SqlEventSource``
implements ``EventSourcePort`` over it. Its ``commit`` is a no-op because
rows are durable once inserted.

Positions must become visible in order, or a reader could checkpoint past a
position whose transaction has not committed yet. On PostgreSQL, where
sequence values are handed out before commit, ``append`` takes an
``EXCLUSIVE`` table lock so appends commit one at a time. SQLite already
serializes writers. Rows inserted by other writers must follow the same
rule.

Both take a SQLAlchemy session factory, so they work against PostgreSQL in
production and SQLite in tests.

Example::

    from sqlalchemy import create_engine
    from sqlalchemy.orm import sessionmaker

    engine = create_engine("sqlite://")
    store = SqlEventStore(sessionmaker(engine))
    store.create_table()
    store.append("product-123", [PendingEvent("product.tag_added", b'{"tag": "books"}')])

    source = SqlEventSource(sessionmaker(engine))
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Integer,
    LargeBinary,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    func,
    select,
    text,
)

from esprojector.foundation.domain import Envelope
from esprojector.infra.eventsourcing.sources.positions import decode_position, encode_position

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from sqlalchemy.engine import Row
    from sqlalchemy.orm import Session

    from esprojector.foundation.domain import Cursor, RunContext

logger = logging.getLogger(__name__)

DEFAULT_TABLE_NAME = "events"

STREAM_ID = "stream_id"
STREAM_VERSION = "stream_version"

_TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}$")


def events_table(name: str = DEFAULT_TABLE_NAME, metadata: MetaData | None = None) -> Table:
    """Build the events ``Table`` definition.

    Args:
        name: Table name.
        metadata: Optional ``MetaData`` to register the table in.

    Raises:
        ValueError: If ``name`` is not a plain SQL identifier.
    """
    if not _TABLE_NAME_PATTERN.match(name):
        msg = f"Invalid events table name: {name!r}"
        raise ValueError(msg)
    return Table(
        name,
        metadata if metadata is not None else MetaData(),
        Column(
            "position",
            BigInteger().with_variant(Integer, "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
        Column("stream_id", Text, nullable=False),
        Column("version", Integer, nullable=False),
        Column("event_id", Text, nullable=False, unique=True),
        Column("event_type", Text, nullable=False, index=True),
        Column("event_data", LargeBinary, nullable=False),
        Column("event_metadata", Text, nullable=True),
        Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
        UniqueConstraint("stream_id", "version", name=f"uq_{name}_stream_version"),
    )


@dataclass(frozen=True, slots=True)
class PendingEvent:
    """An event not yet appended to a stream.

    Attributes:
        type: Event type tag.
        data: Opaque payload bytes.
        metadata: Optional string metadata.
        event_id: Identifier; a random UUID is assigned when empty.
    """

    type: str
    data: bytes = b""
    metadata: Mapping[str, str] = field(default_factory=dict)
    event_id: str = ""


class SqlEventStore:
    """Appends events to the SQL events table.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
        table_name: Events table name.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        table_name: str = DEFAULT_TABLE_NAME,
    ) -> None:
        self._session_factory = session_factory
        self._table = events_table(table_name)

    @property
    def table(self) -> Table:
        return self._table

    @property
    def session_factory(self) -> Callable[[], Session]:
        return self._session_factory

    def create_table(self) -> None:
        """Create the events table if it does not exist.

        In production, prefer migrations; this is for tests and demos.
        """
        with self._session_factory() as session:
            self._table.create(session.connection(), checkfirst=True)
            session.commit()
        logger.info("events_table_ensured: %s", self._table.name)

    def append(self, stream_id: str, events: Sequence[PendingEvent]) -> list[Envelope]:
        """Append ``events`` to the end of ``stream_id`` in one transaction.

        Versions continue from the stream's current maximum. On PostgreSQL
        the table is locked in ``EXCLUSIVE`` mode for the transaction, so
        positions commit in the order they are assigned. Elsewhere a
        concurrent writer on the same stream makes this fail with
        SQLAlchemy's ``IntegrityError`` on the (stream_id, version) constraint.

        Args:
            stream_id: Stream to append to.
            events: Events in order.

        Returns:
            Envelopes for the appended events, as a source would deliver them.
        """
        if not events:
            return []
        table = self._table
        rows: list[dict[str, Any]] = []
        with self._session_factory() as session, session.begin():
            if session.connection().dialect.name == "postgresql":
                session.execute(text(f"LOCK TABLE {table.name} IN EXCLUSIVE MODE"))
            current = session.execute(
                select(func.coalesce(func.max(table.c.version), 0)).where(
                    table.c.stream_id == stream_id
                )
            ).scalar_one()
            for offset, event in enumerate(events, start=1):
                rows.append(
                    {
                        "stream_id": stream_id,
                        "version": current + offset,
                        "event_id": event.event_id or str(uuid.uuid4()),
                        "event_type": event.type,
                        "event_data": event.data,
                        "event_metadata": (
                            json.dumps(dict(event.metadata)) if event.metadata else None
                        ),
                    }
                )
            session.execute(table.insert(), rows)
        logger.debug("Appended %d event(s) to stream %s", len(rows), stream_id)
        return [
            Envelope(
                event_id=row["event_id"],
                type=row["event_type"],
                data=row["event_data"],
                metadata=_envelope_metadata(row["event_metadata"], stream_id, row["version"]),
            )
            for row in rows
        ]


class SqlEventSource:
    """``EventSourcePort`` over the SQL events table.

    Args:
        session_factory: Callable returning a SQLAlchemy Session context manager.
        table_name: Events table name.
        event_types: Optional event type filter; empty delivers every event.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        table_name: str = DEFAULT_TABLE_NAME,
        event_types: Sequence[str] = (),
    ) -> None:
        self._session_factory = session_factory
        self._table = events_table(table_name)
        self._event_types = tuple(event_types)

    def fetch(
        self,
        ctx: RunContext,
        cursor: Cursor,
        limit: int,
    ) -> tuple[list[Envelope], Cursor]:
        """Return up to ``limit`` events with a position after ``cursor``.

        Raises:
            InvalidCursorError: If ``cursor`` is not a decimal position.
        """
        position = decode_position(cursor)
        table = self._table
        stmt = (
            select(
                table.c.position,
                table.c.stream_id,
                table.c.version,
                table.c.event_id,
                table.c.event_type,
                table.c.event_data,
                table.c.event_metadata,
            )
            .where(table.c.position > position)
            .order_by(table.c.position)
            .limit(limit)
        )
        if self._event_types:
            stmt = stmt.where(table.c.event_type.in_(self._event_types))
        with self._session_factory() as session:
            rows = session.execute(stmt).fetchall()
        if not rows:
            return [], cursor
        return [_to_envelope(row) for row in rows], encode_position(rows[-1].position)

    def commit(self, ctx: RunContext, cursor: Cursor) -> None:
        """No-op: rows are durable once inserted."""
        logger.debug("SQL event source commit at %r (no-op)", cursor)


def _to_envelope(row: Row[Any]) -> Envelope:
    return Envelope(
        event_id=row.event_id,
        type=row.event_type,
        data=bytes(row.event_data),
        metadata=_envelope_metadata(row.event_metadata, row.stream_id, row.version),
    )


def _envelope_metadata(raw: str | None, stream_id: str, version: int) -> dict[str, str]:
    metadata: dict[str, str] = {}
    if raw:
        metadata.update({str(k): str(v) for k, v in json.loads(raw).items()})
    metadata[STREAM_ID] = stream_id
    metadata[STREAM_VERSION] = str(version)
    return metadata
