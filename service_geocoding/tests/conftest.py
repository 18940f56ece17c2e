"""
Shared fixtures for geocoding service tests.
"""

from datetime import datetime, timedelta, timezone

import pytest

from service_geocoding.app.cache import CacheAside
from service_geocoding.app.store import InMemoryStore


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, start: float = 1_715_342_400.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeDateClock:
    """UTC datetime clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def date_clock():
    return FakeDateClock()


@pytest.fixture
def store(clock):
    return InMemoryStore(clock=clock)


@pytest.fixture
def cache(store, clock):
    return CacheAside(store, default_ttl=86400, clock=clock)
