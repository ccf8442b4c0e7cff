"""esprojector Infra Eventsourcing -- projection worker, settings, event sources."""

from esprojector.infra.eventsourcing.projections import ProjectionWorker, WorkerHandle
from esprojector.infra.eventsourcing.settings import ProjectorSettings
from esprojector.infra.eventsourcing.sources import (
    InMemoryEventSource,
    PendingEvent,
    SqlEventSource,
    SqlEventStore,
)

__all__ = [
    "InMemoryEventSource",
    "PendingEvent",
    "ProjectionWorker",
    "ProjectorSettings",
    "SqlEventSource",
    "SqlEventStore",
    "WorkerHandle",
]
