"""
Shared test fixtures and configuration.
"""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOCAL_STORAGE_PATH", os.path.join(tempfile.gettempdir(), "aigateway_test_data"))
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_API_REQUESTS", "false")

from aigateway.cache import MemoryCacheBackend, ResponseCache  # noqa: E402
from aigateway.core.context_window import ContextWindow  # noqa: E402
from aigateway.core.session_manager import SessionManager  # noqa: E402
from aigateway.storage import LocalStorage, SessionRepository  # noqa: E402


class FakeClock:
    """Monotonic seconds that only move when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDateClock:
    """Aware UTC datetimes that only move when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock()


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def repository(storage):
    return SessionRepository(storage)


@pytest.fixture
def cache_backend(clock):
    return MemoryCacheBackend(clock=clock)


@pytest.fixture
def response_cache(cache_backend):
    return ResponseCache(cache_backend)


@pytest.fixture
def context_window():
    return ContextWindow()


@pytest.fixture
def session_manager(repository, response_cache, context_window, date_clock):
    return SessionManager(repository, response_cache, context_window, clock=date_clock)
