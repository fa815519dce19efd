"""In-memory distributed lock adapter.

Notes:
- Per-process only: callers in other processes do not see this state, so
  multi-process deployments need a shared backend behind the same interface.
- Single event loop: exclusivity comes from one asyncio.Lock per key.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from callgate.adapters.lock.base import AbstractDistributedLock, Mutator, S
from callgate.core.config import settings
from callgate.core.errors import LockTimeoutError
from callgate.core.logging import hash_key

logger = logging.getLogger(__name__)


class InMemoryDistributedLock(AbstractDistributedLock):
    """Lock and state store living in the current process.

    Acquisition is FIFO per key. The mutator runs under the lease timeout; if
    it overruns, it is cancelled, the key is released and nothing is stored,
    which is how a real lock service behaves when a holder stalls.
    """

    def __init__(
        self,
        *,
        namespace: str | None = None,
        acquire_timeout_ms: float | None = None,
    ) -> None:
        """Initialize the in-memory lock.

        Args:
            namespace: Prefix for every stored key; defaults to settings.gate.namespace.
            acquire_timeout_ms: Maximum wait for a busy key (None waits forever).

        Raises:
            ValueError: If acquire_timeout_ms is not positive.
        """
        if acquire_timeout_ms is not None and acquire_timeout_ms <= 0:
            raise ValueError("acquire_timeout_ms must be > 0")

        self._namespace = settings.gate.namespace if namespace is None else namespace
        self._acquire_timeout_ms = acquire_timeout_ms
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}
        self._store: dict[str, Any] = {}

    def _qualify(self, key: str) -> str:
        return f"{self._namespace}:{key}" if self._namespace else key

    def _checkout(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        self._users[name] = self._users.get(name, 0) + 1
        return lock

    def _checkin(self, name: str) -> None:
        # Forget the key once no caller holds or waits for it.
        remaining = self._users[name] - 1
        if remaining:
            self._users[name] = remaining
        else:
            del self._users[name]
            del self._locks[name]

    async def _acquire(self, lock: asyncio.Lock, name: str) -> None:
        if self._acquire_timeout_ms is None:
            await lock.acquire()
            return
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self._acquire_timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            raise LockTimeoutError(
                code="lock_acquire_timeout",
                message=f"Timed out after {self._acquire_timeout_ms}ms waiting for lock",
                details={"key_hash": hash_key(name), "timeout_ms": self._acquire_timeout_ms},
            ) from exc

    async def with_lock(
        self,
        key: str,
        lease_timeout_ms: float,
        mutator: Mutator[S],
    ) -> None:
        """Run ``mutator`` against the state stored under ``key``.

        Raises:
            ValueError: If key is empty or lease_timeout_ms is not positive.
            LockTimeoutError: If acquisition times out or the lease expires.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if lease_timeout_ms <= 0:
            raise ValueError("lease_timeout_ms must be > 0")

        name = self._qualify(key)
        lock = self._checkout(name)
        try:
            await self._acquire(lock, name)
            try:
                await self._update(name, lease_timeout_ms, mutator)
            finally:
                lock.release()
        finally:
            self._checkin(name)

    async def _update(self, name: str, lease_timeout_ms: float, mutator: Mutator[S]) -> None:
        prior = self._store.get(name)
        try:
            next_state = await asyncio.wait_for(mutator(prior), timeout=lease_timeout_ms / 1000)
        except asyncio.TimeoutError as exc:
            logger.warning(
                "lock.lease_expired",
                extra={"key_hash": hash_key(name), "lease_ms": lease_timeout_ms},
            )
            raise LockTimeoutError(
                code="lock_lease_expired",
                message=f"Lease of {lease_timeout_ms}ms expired before the update completed",
                details={"key_hash": hash_key(name), "timeout_ms": lease_timeout_ms},
            ) from exc
        self._store[name] = next_state

    def peek(self, key: str) -> Any:
        """Return the state stored under ``key`` without locking (None if absent)."""
        return self._store.get(self._qualify(key))

    def clear(self) -> None:
        """Drop all stored state."""
        self._store.clear()
