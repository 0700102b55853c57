"""Per-day vendor call counter persisted in the key-value store.

Key format: ``{prefix}_{YYYY-MM-DD}``. A new day starts a new key, so the
count resets at UTC midnight without any cleanup job.

Updates to the stored count are serialized by an asyncio.Lock.
"""

import asyncio
from datetime import date

from tradesignal.clock import Clock
from tradesignal.logging import get_logger
from tradesignal.storage.kv import PersistentStore

logger = get_logger(__name__)


class ApiCallCounter:
    """Counts vendor calls per calendar day against an optional limit.

    Args:
        store: Durable key-value backend.
        clock: Supplies the current calendar day.
        prefix: Key prefix.
        daily_limit: Calls allowed per day. None = unlimited.
    """

    def __init__(
        self,
        store: PersistentStore,
        clock: Clock,
        prefix: str = "api_calls",
        daily_limit: int | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._prefix = prefix
        self._daily_limit = daily_limit
        self._lock = asyncio.Lock()

    @property
    def daily_limit(self) -> int | None:
        return self._daily_limit

    def _key(self, day: date | None = None) -> str:
        return f"{self._prefix}_{(day or self._clock.today()).isoformat()}"

    async def count(self, day: date | None = None) -> int:
        """Calls recorded for ``day`` (default today)."""
        raw = await self._store.get(self._key(day))
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("api_call_count_invalid", raw=raw)
            return 0

    async def increment(self) -> int:
        """Record one call today and return the new count."""
        async with self._lock:
            return await self._bump()

    async def try_reserve(self) -> bool:
        """Record one call today unless the daily limit is already reached.

        Returns False, without counting, when the limit is exhausted.
        """
        async with self._lock:
            if self._daily_limit is not None and await self.count() >= self._daily_limit:
                return False
            await self._bump()
            return True

    async def _bump(self) -> int:
        count = await self.count() + 1
        await self._store.set(self._key(), str(count))
        return count

    async def reset(self) -> None:
        """Set today's count back to zero."""
        async with self._lock:
            await self._store.set(self._key(), "0")

    async def is_exhausted(self) -> bool:
        """True when a daily limit is set and today's count has reached it."""
        if self._daily_limit is None:
            return False
        return await self.count() >= self._daily_limit

    async def remaining(self) -> int | None:
        """Calls left today, or None when unlimited."""
        if self._daily_limit is None:
            return None
        return max(0, self._daily_limit - await self.count())
