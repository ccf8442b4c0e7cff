"""Structured logging configuration using structlog.

This module provides environment-aware structured logging for projection
workers:
- JSON output for production environments
- Console output with colors for development
- Redaction of sensitive keys (credentials, raw event payloads)
- Adapters that turn a logger into the worker's diagnostic ``log_sink``

Usage:
    # During process startup
    from esprojector.infra.observability.logging import configure_logging
    configure_logging()

    # Wire the worker's diagnostic channel into structlog
    from esprojector.infra.observability import structlog_sink
    worker = ProjectionWorker(source=src, apply=apply, log_sink=structlog_sink())
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from collections.abc import Callable, MutableMapping

# Type alias for structlog processor
Processor = structlog.types.Processor

# Field names whose values never reach log output.
SENSITIVE_FIELDS: frozenset[str] = frozenset(
    {
        "password",
        "secret",
        "credential",
        "api_key",
        "dsn",
        "connection_string",
        "url",
        "payload",
        "data",
        "event_data",
        "event_metadata",
    }
)

# Substrings that mark compound names (db_password, eventstore_url, ...)
_SENSITIVE_PARTS: tuple[str, ...] = ("password", "token", "secret", "_url")

REDACTED_VALUE: str = "***REDACTED***"

_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


class LoggingSettings(BaseSettings):
    """Logging configuration settings from environment variables.

    Loads configuration from environment variables:
    - LOG_LEVEL: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    - ENVIRONMENT: Environment name (development, staging, production, test)

    Attributes:
        log_level: Minimum log level to output. Default: INFO
        environment: Environment name for format selection. Default: development

    Example:
        >>> settings = LoggingSettings(log_level="DEBUG", environment="production")
        >>> settings.use_json_logs
        True
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Minimum log level to output",
    )
    environment: str = Field(
        default="development",
        alias="ENVIRONMENT",
        description="Environment name for format selection",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> str:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return str(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level.

        Raises:
            ValueError: If log level is not a valid Python logging level.
        """
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v not in valid_levels:
            msg = f"log_level must be one of {valid_levels}"
            raise ValueError(msg)
        return v

    @property
    def use_json_logs(self) -> bool:
        """JSON logs in production, console rendering everywhere else."""
        return self.environment == "production"

    @property
    def log_level_int(self) -> int:
        """Convert log level string to logging module constant."""
        return getattr(logging, self.log_level, logging.INFO)


class SensitiveDataProcessor:
    """Structlog processor to redact sensitive fields from log context.

    Redacts values for fields matching:
    1. Exact field names in SENSITIVE_FIELDS (case-insensitive)
    2. Field names containing "password", "token", "secret" or "_url"
       (database URLs carry credentials)

    Example:
        >>> processor = SensitiveDataProcessor()
        >>> event_dict = {"event": "connect", "password": "secret123"}
        >>> processor(None, "info", event_dict)["password"]
        '***REDACTED***'
    """

    def __call__(
        self,
        logger: Any,
        method_name: str,
        event_dict: MutableMapping[str, Any],
    ) -> MutableMapping[str, Any]:
        """Redact sensitive fields in event_dict."""
        for key in list(event_dict.keys()):
            if self._is_sensitive(key):
                event_dict[key] = REDACTED_VALUE
        return event_dict

    def _is_sensitive(self, key: str) -> bool:
        key_lower = key.lower()
        if key_lower in SENSITIVE_FIELDS:
            return True
        return any(part in key_lower for part in _SENSITIVE_PARTS)


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached LoggingSettings instance.

    Clear cache with ``get_logging_settings.cache_clear()`` for testing.
    """
    return LoggingSettings()


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Configure structlog for structured logging.

    Configures structlog with:
    - Context variable merging (e.g. a ``projection`` name bound per worker)
    - Log level filtering
    - ISO 8601 timestamps (UTC)
    - Sensitive data redaction
    - Environment-aware rendering (JSON for production, console for development)

    Should be called once during process startup.

    Args:
        settings: Optional LoggingSettings instance. If not provided,
            settings are loaded from environment variables.
    """
    if settings is None:
        settings = get_logging_settings()

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        SensitiveDataProcessor(),
        structlog.processors.format_exc_info,
    ]

    if settings.use_json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level_int),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.typing.WrappedLogger:
    """Get a structlog logger bound to the given name.

    Args:
        name: Logger name (typically __name__ from calling module).
            If None, returns unbound logger.

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("worker_started", projection="product_tags")
    """
    logger = structlog.get_logger()
    if name is not None:
        logger = logger.bind(logger=name)
    return logger


def _level_number(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return _LEVELS[level.lower()]
    except KeyError:
        msg = f"Unknown log level {level!r}"
        raise ValueError(msg) from None


def structlog_sink(
    logger: Any | None = None,
    level: str | int = "debug",
) -> Callable[..., None]:
    """Adapt a structlog logger to the worker's ``log_sink`` contract.

    Each worker transition becomes one structured event whose name is the
    worker's message and whose keys are its key/value pairs.

    Args:
        logger: A structlog (bound) logger. Defaults to ``get_logger("esprojector.worker")``.
        level: Level name or number to emit at. Default: debug.

    Returns:
        A callable ``sink(msg, **kv)``.

    Raises:
        ValueError: If ``level`` is not a known level name or standard
            level number.
    """
    levelno = _level_number(level)
    names = {number: name for name, number in _LEVELS.items()}
    if levelno not in names:
        msg = f"Unknown log level {level!r}"
        raise ValueError(msg)
    target = logger if logger is not None else get_logger("esprojector.worker")
    method = getattr(target, names[levelno])

    def sink(msg: str, **kv: Any) -> None:
        method(msg, **kv)

    return sink


def stdlib_sink(
    logger: logging.Logger | None = None,
    level: str | int = logging.DEBUG,
) -> Callable[..., None]:
    """Adapt a stdlib ``logging.Logger`` to the worker's ``log_sink`` contract.

    Key/value pairs are rendered as ``key=value`` after the message and also
    passed through ``extra`` under ``kv`` for structured handlers.

    Args:
        logger: Target logger. Defaults to ``logging.getLogger("esprojector.worker")``.
        level: Level name or number to emit at. Default: DEBUG.
    """
    target = logger if logger is not None else logging.getLogger("esprojector.worker")
    levelno = _level_number(level)

    def sink(msg: str, **kv: Any) -> None:
        if not target.isEnabledFor(levelno):
            return
        if kv:
            rendered = " ".join(f"{k}={v!r}" for k, v in kv.items())
            target.log(levelno, "%s %s", msg, rendered, extra={"kv": kv})
        else:
            target.log(levelno, "%s", msg, extra={"kv": {}})

    return sink
