"""Projector exception hierarchy.

Every error raised by esprojector itself derives from ``ProjectorError``.
Exceptions carry a machine-readable error code and structured context so
callers can log them consistently and decide whether to restart a worker.

Errors raised by collaborators (event sources, apply functions) are never
wrapped: the worker re-raises the original exception object unchanged.

Example:
    >>> from esprojector.foundation.domain.exceptions import InvalidCursorError
    >>> raise InvalidCursorError(b"abc", reason="not a decimal position")
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CancelledError",
    "ContextError",
    "DeadlineExceededError",
    "InvalidCursorError",
    "ProjectorError",
    "WorkerConfigurationError",
]


class ProjectorError(Exception):
    """Base class for all projector errors.

    Attributes:
        error_code: Machine-readable error code.
        message: Human-readable error description.
        context: Structured debugging information.

    Example:
        >>> raise ProjectorError("Worker failed", context={"batch": 3})
        ProjectorError: Worker failed (batch=3)
    """

    error_code: str = "PROJECTOR_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize projector error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ContextError(ProjectorError):
    """Raised when a run context is done.

    Callers that only care whether a run stopped because of its context
    (rather than a collaborator failure) can catch this base class.
    """

    error_code: str = "CONTEXT_DONE"


class CancelledError(ContextError):
    """Raised when a run context was cancelled explicitly.

    Example:
        >>> raise CancelledError()
        CancelledError: context cancelled
    """

    error_code: str = "CONTEXT_CANCELLED"

    def __init__(self, message: str = "context cancelled", **context: Any) -> None:
        super().__init__(message, context)


class DeadlineExceededError(ContextError):
    """Raised when a run context passed its deadline.

    Attributes:
        timeout: The timeout, in seconds, the context was created with
            (``None`` when inherited from a parent).
    """

    error_code: str = "CONTEXT_DEADLINE_EXCEEDED"

    def __init__(self, timeout: float | None = None, **context: Any) -> None:
        self.timeout = timeout
        if timeout is not None:
            context = {"timeout": timeout, **context}
        super().__init__("context deadline exceeded", context)


class WorkerConfigurationError(ProjectorError):
    """Raised when a worker is run without a required collaborator.

    Attributes:
        error_code: "WORKER_CONFIGURATION_ERROR" (class constant).
        field: Name of the missing or invalid worker field.
        reason: Human-readable failure reason.

    Example:
        >>> raise WorkerConfigurationError("source", "an event source is required")
        WorkerConfigurationError: Invalid worker configuration for 'source': ...
    """

    error_code: str = "WORKER_CONFIGURATION_ERROR"

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        message = f"Invalid worker configuration for '{field}': {reason}"
        super().__init__(message, {"field": field, "reason": reason})


class InvalidCursorError(ProjectorError):
    """Raised by an event source that cannot interpret a cursor.

    Attributes:
        error_code: "INVALID_CURSOR" (class constant).
        cursor: The offending cursor value.
    """

    error_code: str = "INVALID_CURSOR"

    def __init__(self, cursor: bytes, reason: str, **extra_context: Any) -> None:
        self.cursor = cursor
        self.reason = reason
        message = f"Invalid cursor {cursor!r}: {reason}"
        context = {"cursor": cursor, "reason": reason, **extra_context}
        super().__init__(message, context)
