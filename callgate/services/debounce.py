"""Latest-call-wins debounce shared by every caller using the same key.

Each ``schedule`` call registers a fresh token under the key, waits one
interval, then fires only if its token is still the one stored. Nothing is
ever cancelled: a superseded call simply finds a different token when its
check runs.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import Any, Callable

from callgate.adapters.lock.base import AbstractDistributedLock
from callgate.core.errors import InvalidConfigurationError
from callgate.core.logging import hash_key, set_call_id

logger = logging.getLogger(__name__)

CallTarget = Callable[[], Any]
ErrorHook = Callable[[BaseException], None]


def new_token() -> str:
    return uuid.uuid4().hex


class Debounce:
    """Run only the last of a burst of calls, ``interval_ms`` after it was made.

    Attributes:
        interval_ms: Quiet period a call must survive before it fires.
        key: Coordination key shared by all cooperating callers.
    """

    def __init__(
        self,
        lock: AbstractDistributedLock,
        interval_ms: int,
        key: str,
        *,
        on_error: ErrorHook | None = None,
        token_factory: Callable[[], str] = new_token,
    ) -> None:
        """Initialize the debounce handle.

        Args:
            lock: Lock service holding the shared token.
            interval_ms: Quiet period in milliseconds.
            key: Coordination key.
            on_error: Called with any failure of a scheduled call after it is logged.
            token_factory: Source of unique call tokens.

        Raises:
            InvalidConfigurationError: If interval_ms is below 1 or key is empty.
        """
        if interval_ms < 1:
            raise InvalidConfigurationError(
                code="invalid_configuration",
                message="Interval must be at least 1ms",
                details={"field": "interval_ms", "requested": interval_ms},
            )
        if not key:
            raise InvalidConfigurationError(
                code="invalid_configuration",
                message="key must be a non-empty string",
                details={"field": "key"},
            )

        self.interval_ms = interval_ms
        self.key = key
        self._lock = lock
        self._on_error = on_error
        self._token_factory = token_factory
        # asyncio only keeps weak references to tasks
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        """Number of scheduled calls whose check has not finished."""
        return len(self._tasks)

    def schedule(self, fn: CallTarget) -> None:
        """Register ``fn`` as the latest call and return immediately.

        Must be called from a running event loop. Later failures are
        reported through logging and ``on_error``, never raised here.
        """
        token = self._token_factory()
        task = asyncio.get_running_loop().create_task(
            self._run(token, fn), name=f"debounce:{hash_key(self.key)}:{token}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        """Wait until every call scheduled so far has fired or been superseded."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run(self, token: str, fn: CallTarget) -> None:
        # Task-local context: every log line below carries this call's token.
        set_call_id(token)
        key_hash = hash_key(self.key)

        try:
            await self._register(token)
        except Exception as exc:
            self._report("debounce.registration_failed", exc)
            return
        logger.debug("debounce.registered", extra={"key_hash": key_hash})

        await asyncio.sleep(self.interval_ms / 1000)

        try:
            fire = await self._is_latest(token)
        except Exception as exc:
            self._report("debounce.check_failed", exc)
            return

        if not fire:
            logger.debug("debounce.superseded", extra={"key_hash": key_hash})
            return

        logger.debug("debounce.fired", extra={"key_hash": key_hash})
        try:
            result = fn()
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._report("debounce.execution_failed", exc)

    async def _register(self, token: str) -> None:
        async def _overwrite(prior: str | None) -> str:
            return token

        await self._lock.with_lock(self.key, self.interval_ms, _overwrite)

    async def _is_latest(self, token: str) -> bool:
        latest = False

        async def _compare(current: str | None) -> str:
            nonlocal latest
            latest = current == token
            return token if current is None else current

        await self._lock.with_lock(self.key, self.interval_ms, _compare)
        return latest

    def _report(self, event: str, exc: Exception) -> None:
        logger.error(
            event,
            extra={
                "key_hash": hash_key(self.key),
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
        )
        if self._on_error is None:
            return
        try:
            self._on_error(exc)
        except Exception as hook_exc:
            logger.error(
                "debounce.error_hook_failed",
                extra={
                    "key_hash": hash_key(self.key),
                    "error_type": type(hook_exc).__name__,
                    "error_message": str(hook_exc),
                },
            )


def create_debouncer(
    lock: AbstractDistributedLock,
    key: str,
    interval_ms: int,
) -> Callable[[CallTarget], None]:
    """Build a debounce for ``key`` and return its ``schedule`` callable."""
    return Debounce(lock, interval_ms, key).schedule
