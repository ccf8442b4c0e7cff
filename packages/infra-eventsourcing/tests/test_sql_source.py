"""Tests for SqlEventStore and SqlEventSource against SQLite."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from esprojector.foundation.domain import (
    BEGINNING,
    EventSourcePort,
    InvalidCursorError,
    RunContext,
)
from esprojector.infra.eventsourcing.sources.sql import (
    PendingEvent,
    SqlEventSource,
    SqlEventStore,
    events_table,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(engine)


@pytest.fixture
def store(session_factory: sessionmaker) -> SqlEventStore:
    store = SqlEventStore(session_factory)
    store.create_table()
    return store


@pytest.fixture
def ctx() -> RunContext:
    return RunContext.background()


@pytest.mark.unit
class TestEventsTable:
    def test_default_name(self) -> None:
        assert events_table().name == "events"

    def test_columns(self) -> None:
        table = events_table("projector_events")
        assert set(table.c.keys()) == {
            "position",
            "stream_id",
            "version",
            "event_id",
            "event_type",
            "event_data",
            "event_metadata",
            "created_at",
        }

    @pytest.mark.parametrize("name", ["", "1events", "events; DROP TABLE x", "a-b"])
    def test_invalid_name_rejected(self, name: str) -> None:
        with pytest.raises(ValueError, match="Invalid events table name"):
            events_table(name)


@pytest.mark.integration
class TestSqlEventStore:
    def test_create_table_is_idempotent(self, engine: Engine, store: SqlEventStore) -> None:
        store.create_table()
        assert inspect(engine).has_table("events")

    def test_append_assigns_versions(self, store: SqlEventStore) -> None:
        envelopes = store.append(
            "product-1",
            [PendingEvent("tag_added", b"a"), PendingEvent("tag_added", b"b")],
        )
        more = store.append("product-1", [PendingEvent("tag_removed", b"a")])

        assert [e.metadata["stream_version"] for e in envelopes + more] == ["1", "2", "3"]
        assert all(e.metadata["stream_id"] == "product-1" for e in envelopes)

    def test_append_generates_event_ids(self, store: SqlEventStore) -> None:
        envelopes = store.append("s", [PendingEvent("t"), PendingEvent("t")])
        assert all(e.event_id for e in envelopes)
        assert envelopes[0].event_id != envelopes[1].event_id

    def test_append_keeps_explicit_event_id(self, store: SqlEventStore) -> None:
        (envelope,) = store.append("s", [PendingEvent("t", event_id="evt-1")])
        assert envelope.event_id == "evt-1"

    def test_append_nothing(self, store: SqlEventStore) -> None:
        assert store.append("s", []) == []

    def test_duplicate_event_id_rolls_back_batch(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        store.append("s", [PendingEvent("t", event_id="dup")])
        with pytest.raises(IntegrityError):
            store.append("s", [PendingEvent("t", event_id="new"), PendingEvent("t", event_id="dup")])

        batch, _ = SqlEventSource(session_factory).fetch(ctx, BEGINNING, 10)
        assert [e.event_id for e in batch] == ["dup"]


@pytest.mark.integration
class TestSqlEventSource:
    def test_satisfies_port(self, session_factory: sessionmaker) -> None:
        assert isinstance(SqlEventSource(session_factory), EventSourcePort)

    def test_fetch_in_position_order(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        store.append("a", [PendingEvent("t", b"1")])
        store.append("b", [PendingEvent("t", b"2")])
        store.append("a", [PendingEvent("t", b"3")])

        batch, cursor = SqlEventSource(session_factory).fetch(ctx, BEGINNING, 10)

        assert [e.data for e in batch] == [b"1", b"2", b"3"]
        assert cursor == b"3"

    def test_fetch_pages_by_cursor(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        store.append("a", [PendingEvent("t", str(i).encode()) for i in range(5)])
        source = SqlEventSource(session_factory)

        first, cursor = source.fetch(ctx, BEGINNING, 2)
        second, cursor = source.fetch(ctx, cursor, 2)
        third, cursor = source.fetch(ctx, cursor, 2)
        empty, final = source.fetch(ctx, cursor, 2)

        assert [e.data for e in first + second + third] == [b"0", b"1", b"2", b"3", b"4"]
        assert empty == []
        assert final == cursor == b"5"

    def test_metadata_round_trip(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        store.append("a", [PendingEvent("t", metadata={"tenant": "acme"})])

        (envelope,), _ = SqlEventSource(session_factory).fetch(ctx, BEGINNING, 10)

        assert envelope.metadata == {
            "tenant": "acme",
            "stream_id": "a",
            "stream_version": "1",
        }

    def test_event_type_filter(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        store.append("a", [PendingEvent("keep"), PendingEvent("skip"), PendingEvent("keep")])
        source = SqlEventSource(session_factory, event_types=["keep"])

        batch, cursor = source.fetch(ctx, BEGINNING, 10)

        assert [e.type for e in batch] == ["keep", "keep"]
        assert cursor == b"3"

    def test_invalid_cursor_rejected(
        self, ctx: RunContext, session_factory: sessionmaker, store: SqlEventStore
    ) -> None:
        with pytest.raises(InvalidCursorError):
            SqlEventSource(session_factory).fetch(ctx, b"not-a-position", 10)

    def test_commit_is_noop(self, ctx: RunContext, session_factory: sessionmaker) -> None:
        SqlEventSource(session_factory).commit(ctx, b"3")


def _session_factory_for(dialect: str) -> tuple[MagicMock, MagicMock]:
    session = MagicMock()
    session.connection.return_value.dialect.name = dialect
    session.execute.return_value.scalar_one.return_value = 0
    factory = MagicMock()
    factory.return_value.__enter__.return_value = session
    return factory, session


@pytest.mark.unit
class TestSqlEventStoreAppendOrdering:
    def test_postgresql_locks_table_before_reading_versions(self) -> None:
        factory, session = _session_factory_for("postgresql")
        store = SqlEventStore(factory, table_name="product_events")

        store.append("s", [PendingEvent("t")])

        first_statement = session.execute.call_args_list[0].args[0]
        assert str(first_statement) == "LOCK TABLE product_events IN EXCLUSIVE MODE"
        assert session.execute.call_count == 3

    def test_sqlite_does_not_lock(self) -> None:
        factory, session = _session_factory_for("sqlite")
        store = SqlEventStore(factory)

        store.append("s", [PendingEvent("t")])

        statements = [str(call.args[0]) for call in session.execute.call_args_list]
        assert not any("LOCK TABLE" in statement for statement in statements)
        assert session.execute.call_count == 2
