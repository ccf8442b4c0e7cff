"""Shared fixtures for integration tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from examples.product_tags.repository import ProductTagsRepository
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from esprojector.infra.eventsourcing import SqlEventSource, SqlEventStore

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine


def _memory_engine() -> Engine:
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture()
def eventstore_engine() -> Iterator[Engine]:
    """In-memory event store database shared across threads."""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture()
def projection_engine() -> Iterator[Engine]:
    """In-memory projection database, separate from the event store."""
    engine = _memory_engine()
    yield engine
    engine.dispose()


@pytest.fixture()
def event_store(eventstore_engine: Engine) -> SqlEventStore:
    store = SqlEventStore(sessionmaker(eventstore_engine))
    store.create_table()
    return store


@pytest.fixture()
def event_source(eventstore_engine: Engine) -> SqlEventSource:
    return SqlEventSource(sessionmaker(eventstore_engine))


@pytest.fixture()
def repository(projection_engine: Engine) -> ProductTagsRepository:
    repo = ProductTagsRepository(sessionmaker(projection_engine))
    repo.create_tables()
    return repo
