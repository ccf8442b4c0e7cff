"""Tests for Envelope and cursor primitives."""

from __future__ import annotations

import dataclasses

import pytest

from esprojector.foundation.domain import BEGINNING, Envelope


@pytest.mark.unit
class TestEnvelope:
    def test_minimal_envelope(self) -> None:
        env = Envelope(event_id="1", type="test.event")
        assert env.data == b""
        assert dict(env.metadata) == {}

    def test_metadata_is_read_only(self) -> None:
        env = Envelope(event_id="1", type="test.event", metadata={"source": "svc"})
        with pytest.raises(TypeError):
            env.metadata["source"] = "other"  # type: ignore[index]

    def test_metadata_is_copied(self) -> None:
        meta = {"source": "svc"}
        env = Envelope(event_id="1", type="test.event", metadata=meta)
        meta["source"] = "changed"
        assert env.metadata["source"] == "svc"

    def test_is_frozen(self) -> None:
        env = Envelope(event_id="1", type="test.event")
        with pytest.raises(dataclasses.FrozenInstanceError):
            env.type = "other"  # type: ignore[misc]

    def test_bytearray_data_is_normalised(self) -> None:
        env = Envelope(event_id="1", type="test.event", data=bytearray(b"abc"))
        assert env.data == b"abc"
        assert isinstance(env.data, bytes)

    def test_rejects_str_data(self) -> None:
        with pytest.raises(TypeError, match="bytes"):
            Envelope(event_id="1", type="test.event", data="abc")  # type: ignore[arg-type]

    def test_rejects_empty_event_id(self) -> None:
        with pytest.raises(ValueError, match="event_id"):
            Envelope(event_id="", type="test.event")

    def test_rejects_empty_type(self) -> None:
        with pytest.raises(ValueError, match="type"):
            Envelope(event_id="1", type="")

    def test_equality(self) -> None:
        a = Envelope(event_id="1", type="t", data=b"x", metadata={"k": "v"})
        b = Envelope(event_id="1", type="t", data=b"x", metadata={"k": "v"})
        assert a == b

    def test_hashable(self) -> None:
        env = Envelope(event_id="1", type="t", metadata={"k": "v"})
        assert env in {env}


@pytest.mark.unit
def test_beginning_is_empty_cursor() -> None:
    assert BEGINNING == b""
