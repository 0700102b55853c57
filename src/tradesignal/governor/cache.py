"""Bounded in-memory TTL cache for vendor responses.

Entries are valid while ``now - stored_at < ttl``. When the cache is full
the oldest-inserted entry is evicted. Lives for process uptime only.
"""

from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any

from tradesignal.clock import Clock
from tradesignal.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """A cached payload and the monotonic time it was stored."""

    key: Hashable
    payload: Any
    stored_at: float


class ResponseCache:
    """TTL cache keyed by (symbol, timeframe)-style tuples.

    Relies on dict insertion order: the first key is always the oldest
    inserted, and re-storing a key moves it to the end.
    """

    def __init__(self, clock: Clock, ttl_seconds: float, max_size: int) -> None:
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._clock = clock
        self._ttl = ttl_seconds
        self._max_size = max_size
        self._entries: dict[Hashable, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, key: Hashable) -> CacheEntry | None:
        """Return the valid entry for ``key``, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock.monotonic() - entry.stored_at < self._ttl:
            return entry
        del self._entries[key]
        logger.debug("cache_entry_expired", key=key)
        return None

    def store(self, key: Hashable, payload: Any) -> None:
        """Insert or replace ``key``, evicting the oldest entry when full."""
        self._entries.pop(key, None)
        while len(self._entries) >= self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("cache_entry_evicted", key=oldest)
        self._entries[key] = CacheEntry(
            key=key, payload=payload, stored_at=self._clock.monotonic()
        )

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
