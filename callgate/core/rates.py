"""Helpers turning a human rate expression into a ThrottleConfiguration.

No validation happens here; Throttle validates at construction.
"""

from __future__ import annotations

from callgate.schemas.throttle import ThrottleConfiguration

SECOND_MS = 1_000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS


def per_second(executions: int, seconds: float = 1) -> ThrottleConfiguration:
    """``executions`` permits every ``seconds`` seconds."""
    return ThrottleConfiguration(executions=executions, interval_ms=int(seconds * SECOND_MS))


def per_minute(executions: int, minutes: float = 1) -> ThrottleConfiguration:
    """``executions`` permits every ``minutes`` minutes."""
    return ThrottleConfiguration(executions=executions, interval_ms=int(minutes * MINUTE_MS))


def per_hour(executions: int, hours: float = 1) -> ThrottleConfiguration:
    """``executions`` permits every ``hours`` hours."""
    return ThrottleConfiguration(executions=executions, interval_ms=int(hours * HOUR_MS))
