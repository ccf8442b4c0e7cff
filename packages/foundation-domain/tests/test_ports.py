"""Tests for port protocol conformance."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from esprojector.foundation.domain.ports import EventSourcePort

if TYPE_CHECKING:
    from collections.abc import Sequence

    from esprojector.foundation.domain import Cursor, Envelope, RunContext


class _FakeSource:
    """Fake source that conforms to EventSourcePort protocol."""

    def fetch(
        self,
        ctx: RunContext,
        cursor: Cursor,
        limit: int,
    ) -> tuple[Sequence[Envelope], Cursor]:
        return [], cursor

    def commit(self, ctx: RunContext, cursor: Cursor) -> None:
        return None


class _FetchOnly:
    def fetch(self, ctx: object, cursor: bytes, limit: int) -> tuple[list[object], bytes]:
        return [], cursor


@pytest.mark.unit
class TestEventSourcePort:
    def test_conforming_class_is_instance(self) -> None:
        assert isinstance(_FakeSource(), EventSourcePort)

    def test_missing_commit_is_not_instance(self) -> None:
        assert not isinstance(_FetchOnly(), EventSourcePort)
