"""Sliding-window throttle shared by every caller using the same key.

The counting decision runs inside the lock's read-modify-write; the user
function runs after the lock is released, so slow work never blocks other
callers' decisions. A permitted attempt consumes its slot even when the
user function then fails.
"""

from __future__ import annotations

import inspect
import logging
import time
from typing import Any, Awaitable, Callable

from callgate.adapters.lock.base import AbstractDistributedLock
from callgate.core.errors import ConfigurationMismatchError, InvalidConfigurationError
from callgate.core.logging import hash_key
from callgate.schemas.throttle import ThrottleConfiguration, ThrottleState, advance_window

logger = logging.getLogger(__name__)

CallTarget = Callable[[], Any]


def now_ms() -> int:
    """Wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class Throttle:
    """At most ``config.executions`` permits per rolling ``config.interval_ms``.

    The handle is a stateless facade: every decision reads and rewrites the
    ring buffer stored under ``key`` in the lock service.
    """

    def __init__(
        self,
        lock: AbstractDistributedLock,
        config: ThrottleConfiguration,
        key: str,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        """Initialize the throttle handle.

        Args:
            lock: Lock service holding the shared state.
            config: Executions per interval; must match any state already stored.
            key: Coordination key shared by all cooperating callers.
            clock: Time source returning epoch milliseconds.

        Raises:
            InvalidConfigurationError: If executions or interval_ms is below 1,
                or key is empty.
        """
        config.validate()
        if not key:
            raise InvalidConfigurationError(
                code="invalid_configuration",
                message="key must be a non-empty string",
                details={"field": "key"},
            )

        self._lock = lock
        self._config = config
        self._key = key
        self._clock = clock

    @property
    def config(self) -> ThrottleConfiguration:
        return self._config

    @property
    def key(self) -> str:
        return self._key

    @property
    def lease_timeout_ms(self) -> float:
        """Minimum spacing between slot replacements; bounds one decision's lock hold."""
        return self._config.interval_ms / self._config.executions

    async def acquire(self) -> bool:
        """Consume one slot of the rolling window if there is room.

        Returns:
            True if the attempt is permitted.

        Raises:
            ConfigurationMismatchError: If the key's stored config differs.
            LockServiceError: If the lock service fails.
        """
        permitted = False

        async def _mutate(prior: ThrottleState | None) -> ThrottleState:
            nonlocal permitted
            state, permitted = advance_window(prior, self._config, self._clock())
            return state

        try:
            await self._lock.with_lock(self._key, self.lease_timeout_ms, _mutate)
        except ConfigurationMismatchError as exc:
            logger.warning(
                "throttle.config_mismatch",
                extra={
                    "key_hash": hash_key(self._key),
                    "executions": self._config.executions,
                    "interval_ms": self._config.interval_ms,
                    "error_message": exc.message,
                },
            )
            raise

        logger.log(
            logging.DEBUG if permitted else logging.INFO,
            "throttle.permitted" if permitted else "throttle.rejected",
            extra={
                "key_hash": hash_key(self._key),
                "executions": self._config.executions,
                "interval_ms": self._config.interval_ms,
            },
        )
        return permitted

    async def attempt(self, fn: CallTarget) -> bool:
        """Run ``fn`` if the rolling window has room.

        ``fn`` may be a coroutine function or a plain callable; an awaitable
        result is awaited. It runs after the lock is released.

        Args:
            fn: Zero-argument callable to gate.

        Returns:
            True if ``fn`` was invoked.

        Raises:
            ConfigurationMismatchError: If the key's stored config differs.
            LockServiceError: If the lock service fails.
            Exception: Whatever ``fn`` raised; its slot stays consumed.
        """
        if not await self.acquire():
            return False

        result = fn()
        if inspect.isawaitable(result):
            await result
        return True


def create_throttler(
    lock: AbstractDistributedLock,
    key: str,
    config: ThrottleConfiguration,
) -> Callable[[CallTarget], Awaitable[bool]]:
    """Build a throttle for ``key`` and return its ``attempt`` callable."""
    return Throttle(lock, config, key).attempt
