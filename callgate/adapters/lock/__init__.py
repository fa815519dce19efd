"""Distributed lock adapters.

This package provides a small abstraction layer so throttles and debouncers
can start with the in-process lock and later run against Redis or another
shared store without changing the gating logic.
"""

from callgate.adapters.lock.base import AbstractDistributedLock
from callgate.adapters.lock.in_memory import InMemoryDistributedLock

__all__ = [
    "AbstractDistributedLock",
    "InMemoryDistributedLock",
]
