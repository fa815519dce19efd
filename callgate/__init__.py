"""Distributed throttle and debounce built on a shared lock service."""

from callgate.adapters.lock import AbstractDistributedLock, InMemoryDistributedLock
from callgate.core.errors import (
    AppError,
    ConfigurationMismatchError,
    InvalidConfigurationError,
    LockServiceError,
    LockTimeoutError,
    ValidationAppError,
)
from callgate.core.rates import per_hour, per_minute, per_second
from callgate.schemas.throttle import ThrottleConfiguration, ThrottleState
from callgate.services.debounce import Debounce, create_debouncer
from callgate.services.throttle import Throttle, create_throttler

__all__ = [
    "AbstractDistributedLock",
    "AppError",
    "ConfigurationMismatchError",
    "Debounce",
    "InMemoryDistributedLock",
    "InvalidConfigurationError",
    "LockServiceError",
    "LockTimeoutError",
    "Throttle",
    "ThrottleConfiguration",
    "ThrottleState",
    "ValidationAppError",
    "create_debouncer",
    "create_throttler",
    "per_hour",
    "per_minute",
    "per_second",
]

__version__ = "0.1.0"
