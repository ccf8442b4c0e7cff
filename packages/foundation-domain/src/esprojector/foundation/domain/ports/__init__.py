"""Port interfaces for the projection worker.

Ports define the contracts the worker depends on. Adapters live in
infrastructure packages (``esprojector.infra.eventsourcing.sources``).
"""

from esprojector.foundation.domain.ports.event_source import ApplyFunc, EventSourcePort, LogSink

__all__ = ["ApplyFunc", "EventSourcePort", "LogSink"]
