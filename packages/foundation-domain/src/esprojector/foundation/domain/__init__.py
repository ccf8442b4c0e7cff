"""esprojector Foundation Domain -- pure Python projection primitives.

This package provides the building blocks shared by every esprojector
package: cursors and event envelopes, the cancellable run context, the
exception hierarchy, and the port interfaces the worker depends on.
"""

from esprojector.foundation.domain.context import RunContext
from esprojector.foundation.domain.envelope import BEGINNING, Cursor, Envelope
from esprojector.foundation.domain.exceptions import (
    CancelledError,
    ContextError,
    DeadlineExceededError,
    InvalidCursorError,
    ProjectorError,
    WorkerConfigurationError,
)
from esprojector.foundation.domain.ports import ApplyFunc, EventSourcePort, LogSink

__all__ = [
    "BEGINNING",
    "ApplyFunc",
    "CancelledError",
    "ContextError",
    "Cursor",
    "DeadlineExceededError",
    "Envelope",
    "EventSourcePort",
    "InvalidCursorError",
    "LogSink",
    "ProjectorError",
    "RunContext",
    "WorkerConfigurationError",
]
