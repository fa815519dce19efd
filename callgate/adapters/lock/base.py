"""Distributed lock interface.

Throttles and debouncers depend on this abstraction (not a concrete backend)
so the process-local adapter can be swapped for a shared store (e.g., Redis
or NATS) without touching the gating logic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable, TypeVar

S = TypeVar("S")

Mutator = Callable[[S | None], Awaitable[S]]


class AbstractDistributedLock(ABC):
    """Atomic state exchange under an exclusive, lease-bounded lock."""

    @abstractmethod
    async def with_lock(
        self,
        key: str,
        lease_timeout_ms: float,
        mutator: Mutator[S],
    ) -> None:
        """Run a read-modify-write of the state stored under ``key``.

        Implementations must hold exclusive ownership of ``key`` while
        ``mutator`` runs, release it automatically once ``lease_timeout_ms``
        has elapsed, and store nothing when ``mutator`` fails.

        Args:
            key: Coordination key shared by every cooperating caller.
            lease_timeout_ms: Maximum time the key may stay locked.
            mutator: Receives the stored state (None when absent) and returns
                the state to store.

        Raises:
            LockServiceError: If the lock cannot be acquired or the lease expires.
            Exception: Whatever ``mutator`` raised, unchanged.
        """
        raise NotImplementedError
