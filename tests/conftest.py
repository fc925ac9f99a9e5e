"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before anything imports app.core.config so
the settings object is built from test values.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ["TESTING"] = "true"
os.environ.pop("LLM_PROVIDER", None)
os.environ.setdefault("APP_STORE_BACKEND", "memory")
os.environ.setdefault("APP_RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.storage import InMemoryKeyValueStore
from app.services.memory_service import AssistantMemoryService


class FakeClock:
    """Deterministic millisecond clock used to test window boundaries."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.current = start

    def __call__(self) -> int:
        return self.current

    def advance(self, ms: int) -> None:
        self.current += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def memory_service(store: InMemoryKeyValueStore, clock: FakeClock) -> AssistantMemoryService:
    return AssistantMemoryService(store, clock=clock)
