"""Shared test fixtures for tradesignal."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from tradesignal.clock import Clock
from tradesignal.config import GovernorSettings, RetrySettings
from tradesignal.storage import ApiCallCounter, HistoryStore, MemoryStore

EPOCH = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeClock(Clock):
    """Virtual clock: time only moves when something sleeps or ``advance`` is called.

    ``sleep`` records the requested duration and yields to the event loop
    once, so concurrent coroutines still interleave.
    """

    def __init__(self, start: datetime = EPOCH) -> None:
        self._start = start
        self._elapsed = 0.0
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self._elapsed)

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self._elapsed += max(0.0, seconds)
        await asyncio.sleep(0)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def history(memory_store: MemoryStore) -> HistoryStore:
    return HistoryStore(memory_store, prefix="stock_price_history", max_days=90)


@pytest.fixture
def counter(memory_store: MemoryStore, clock: FakeClock) -> ApiCallCounter:
    return ApiCallCounter(memory_store, clock, prefix="api_calls")


@pytest.fixture
def governor_settings() -> GovernorSettings:
    """Finnhub-like limits: 30/min, 2s spacing, 60s TTL."""
    return GovernorSettings(
        cache_ttl_seconds=60.0,
        max_cache_size=50,
        max_calls_per_window=30,
        window_seconds=60.0,
        min_call_interval=2.0,
        daily_call_limit=None,
    )


@pytest.fixture
def retry_settings() -> RetrySettings:
    return RetrySettings(max_retries=2, retry_delay=5.0)
