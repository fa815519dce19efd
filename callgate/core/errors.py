"""Library-level exception types.

This module defines the errors raised by throttles, debouncers and lock
adapters, enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional so each error only carries what applies to it.
    """

    code: str
    message: str
    field: str
    requested: int
    existing: int
    key_hash: str
    timeout_ms: float
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for library failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when input/config validation fails."""


class InvalidConfigurationError(ValidationAppError, ValueError):
    """Raised at construction when a throttle or debounce config is unusable."""


class ConfigurationMismatchError(AppError):
    """Raised when the state stored under a key disagrees with the caller's config."""


class LockServiceError(AppError):
    """Raised when the distributed lock collaborator fails."""


class LockTimeoutError(LockServiceError):
    """Raised when a lock cannot be acquired in time or its lease expires."""
