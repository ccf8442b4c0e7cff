"""Event source adapters implementing ``EventSourcePort``."""

from esprojector.infra.eventsourcing.sources.memory import InMemoryEventSource
from esprojector.infra.eventsourcing.sources.positions import decode_position, encode_position
from esprojector.infra.eventsourcing.sources.sql import (
    PendingEvent,
    SqlEventSource,
    SqlEventStore,
    events_table,
)

__all__ = [
    "InMemoryEventSource",
    "PendingEvent",
    "SqlEventSource",
    "SqlEventStore",
    "decode_position",
    "encode_position",
    "events_table",
]
