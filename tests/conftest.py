"""
Pytest configuration and shared fixtures.

Test environment variables are set here, before any app module is imported,
and the settings cache is cleared so they take effect.
"""

import os
from datetime import datetime, timedelta, timezone

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_messages.db")
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("MESSAGE_STORE", "sql")

# Clear settings cache before any app imports to ensure test env vars are used
from app.config import get_settings
get_settings.cache_clear()

from app.logic import MessageLogic
from app.memory_store import InMemoryMessageStore


class FixedClock:
    """Deterministic clock; advance() moves it forward by whole seconds."""

    def __init__(self, start: datetime = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 1) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def logic(store, clock) -> MessageLogic:
    return MessageLogic(store, clock=clock)
