"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It selects the testing environment before settings are first imported.
"""

import os
import uuid

# CRITICAL: Set this before any imports that might load settings
os.environ["CALLGATE_ENV"] = "testing"
os.environ["CALLGATE_NAMESPACE"] = "test"

import pytest

from callgate.adapters.lock.in_memory import InMemoryDistributedLock


@pytest.fixture
def lock() -> InMemoryDistributedLock:
    return InMemoryDistributedLock()


@pytest.fixture
def key() -> str:
    return f"test-{uuid.uuid4()}"
