"""esprojector Infra Observability -- structlog logging and worker log sinks."""

from __future__ import annotations

from esprojector.infra.observability.logging import (
    LoggingSettings,
    configure_logging,
    get_logger,
    stdlib_sink,
    structlog_sink,
)

__all__ = [
    "LoggingSettings",
    "configure_logging",
    "get_logger",
    "stdlib_sink",
    "structlog_sink",
]
