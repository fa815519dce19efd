"""Throttle configuration and the sliding-window state stored under a key.

The state is a fixed-size ring buffer of epoch-millisecond timestamps:
``timestamps[cursor]`` is always the oldest of the last ``executions``
recorded executions, so a single comparison decides whether the rolling
window has room.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Mapping

from callgate.core.errors import ConfigurationMismatchError, InvalidConfigurationError


@dataclass(frozen=True)
class ThrottleConfiguration:
    """At most ``executions`` permits per rolling ``interval_ms`` window.

    Attributes:
        executions: Maximum permitted executions per window.
        interval_ms: Window length in milliseconds.
    """

    executions: int
    interval_ms: int

    def validate(self) -> None:
        """Raise InvalidConfigurationError when either field is below 1."""
        if self.executions < 1:
            raise InvalidConfigurationError(
                code="invalid_configuration",
                message="Executions must be at least 1",
                details={"field": "executions", "requested": self.executions},
            )
        if self.interval_ms < 1:
            raise InvalidConfigurationError(
                code="invalid_configuration",
                message="Interval must be at least 1ms",
                details={"field": "interval_ms", "requested": self.interval_ms},
            )

    def is_compatible(self, other: ThrottleConfiguration) -> bool:
        return self.executions == other.executions and self.interval_ms == other.interval_ms

    def to_dict(self) -> dict[str, int]:
        return {"executions": self.executions, "interval_ms": self.interval_ms}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ThrottleConfiguration:
        return cls(executions=int(data["executions"]), interval_ms=int(data["interval_ms"]))


@dataclass(frozen=True)
class ThrottleState:
    """Opaque blob a throttle keeps under its key.

    Attributes:
        config: Configuration of the caller that created the state; authoritative.
        timestamps: Ring buffer of execution times, one slot per permitted execution.
        cursor: Index of the oldest slot.
    """

    config: ThrottleConfiguration
    timestamps: tuple[int, ...]
    cursor: int

    @classmethod
    def initial(cls, config: ThrottleConfiguration) -> ThrottleState:
        """Fresh state for a key nobody has used yet."""
        return cls(config=config, timestamps=(0,) * config.executions, cursor=0)

    @property
    def oldest(self) -> int:
        return self.timestamps[self.cursor]

    def record(self, now: int) -> ThrottleState:
        """Return a copy with the oldest slot replaced by ``now``."""
        timestamps = list(self.timestamps)
        timestamps[self.cursor] = now
        return replace(
            self,
            timestamps=tuple(timestamps),
            cursor=(self.cursor + 1) % self.config.executions,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary for backends that serialize state."""
        return {
            "config": self.config.to_dict(),
            "timestamps": list(self.timestamps),
            "cursor": self.cursor,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ThrottleState:
        """Create from dictionary.

        Raises:
            ValueError: If the buffer length or cursor disagree with the config.
        """
        config = ThrottleConfiguration.from_dict(data["config"])
        timestamps = tuple(int(ts) for ts in data["timestamps"])
        cursor = int(data["cursor"])
        if len(timestamps) != config.executions:
            raise ValueError(
                f"timestamps holds {len(timestamps)} slots, expected {config.executions}"
            )
        if not 0 <= cursor < config.executions:
            raise ValueError(f"cursor {cursor} outside [0, {config.executions})")
        return cls(config=config, timestamps=timestamps, cursor=cursor)


def _coerce_state(prior: Any) -> ThrottleState:
    if isinstance(prior, ThrottleState):
        return prior
    if isinstance(prior, Mapping):
        try:
            return ThrottleState.from_dict(prior)
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationMismatchError(
                code="configuration_mismatch",
                message=f"Configuration mismatch: stored state is not valid throttle state ({exc})",
            ) from exc
    raise ConfigurationMismatchError(
        code="configuration_mismatch",
        message=(
            "Configuration mismatch: key holds "
            f"{type(prior).__name__} state, not throttle state"
        ),
    )


def _ensure_compatible(requested: ThrottleConfiguration, existing: ThrottleConfiguration) -> None:
    if requested.executions != existing.executions:
        raise ConfigurationMismatchError(
            code="configuration_mismatch",
            message=(
                f"Configuration mismatch: requested {requested.executions} executions, "
                f"but existing config has {existing.executions}"
            ),
            details={
                "field": "executions",
                "requested": requested.executions,
                "existing": existing.executions,
            },
        )
    if requested.interval_ms != existing.interval_ms:
        raise ConfigurationMismatchError(
            code="configuration_mismatch",
            message=(
                f"Configuration mismatch: requested {requested.interval_ms}ms interval, "
                f"but existing config has {existing.interval_ms}ms"
            ),
            details={
                "field": "interval_ms",
                "requested": requested.interval_ms,
                "existing": existing.interval_ms,
            },
        )


def advance_window(
    prior: ThrottleState | Mapping[str, Any] | None,
    config: ThrottleConfiguration,
    now: int,
) -> tuple[ThrottleState, bool]:
    """Decide one throttle attempt against the stored state.

    Pure function: meant to run inside the lock's read-modify-write.

    Args:
        prior: State currently stored under the key, or None for a fresh key.
        config: Configuration of the caller making the attempt.
        now: Current time in epoch milliseconds.

    Returns:
        Tuple of (state to store, whether the attempt is permitted).

    Raises:
        ConfigurationMismatchError: If the stored state belongs to another config
            or is not throttle state at all.
    """
    if prior is None:
        state = ThrottleState.initial(config)
    else:
        state = _coerce_state(prior)
        _ensure_compatible(config, state.config)

    if now - state.oldest > config.interval_ms:
        return state.record(now), True
    return state, False
