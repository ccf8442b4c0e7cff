"""Event envelope and cursor primitives.

A ``Cursor`` is an opaque stream position. Only the event source that issued
it may interpret it; everything else threads it through unchanged.

An ``Envelope`` is one delivered event. The worker never looks inside it,
only the caller's apply function does.

Example:
    >>> from esprojector.foundation.domain import Envelope
    >>> env = Envelope(event_id="1", type="product.tag_added", data=b"{}")
    >>> env.metadata
    mappingproxy({})
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TypeAlias

Cursor: TypeAlias = bytes
"""Opaque stream position. ``b""`` means the beginning of the stream."""

BEGINNING: Cursor = b""


def _empty_metadata() -> Mapping[str, str]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class Envelope:
    """One delivered event record.

    Attributes:
        event_id: Unique identifier of the event within its source.
        type: Event type tag (e.g. ``"product.tag_added"``).
        data: Opaque payload bytes.
        metadata: Read-only string mapping. Defaults to empty.

    Raises:
        ValueError: If ``event_id`` or ``type`` is empty.
        TypeError: If ``data`` is not bytes.
    """

    event_id: str
    type: str
    data: bytes = b""
    metadata: Mapping[str, str] = field(default_factory=_empty_metadata, hash=False)

    def __post_init__(self) -> None:
        """Validate identity fields and freeze metadata."""
        if not self.event_id:
            msg = "Envelope event_id must be a non-empty string"
            raise ValueError(msg)
        if not self.type:
            msg = "Envelope type must be a non-empty string"
            raise ValueError(msg)
        if not isinstance(self.data, bytes | bytearray | memoryview):
            msg = f"Envelope data must be bytes, got {type(self.data).__name__}"
            raise TypeError(msg)
        if isinstance(self.data, bytearray | memoryview):
            object.__setattr__(self, "data", bytes(self.data))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))
