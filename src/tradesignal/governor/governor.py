"""RequestGovernor: the single gate for every outbound vendor call.

For a key, ``acquire`` resolves in this order:
1. Valid cache entry: returned immediately, no call, no rate-limit slot.
2. In-flight call for the same key: the caller joins it and observes the
   same outcome.
3. Otherwise a new call is registered, waits for rate admission, runs, is
   cached on success, and is removed from the in-flight map whether it
   succeeded or not, before any caller resumes.

The underlying call runs as its own task and callers await it through
``asyncio.shield``: a caller that gives up (cancellation) does not abort an
admitted call, whose result still lands in the cache.
"""

import asyncio
from collections.abc import Awaitable, Callable, Hashable
from typing import Any, TypeVar

from tradesignal.clock import Clock
from tradesignal.config import GovernorSettings
from tradesignal.governor.cache import ResponseCache
from tradesignal.governor.rate_limiter import RateLimiter
from tradesignal.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RequestGovernor:
    """Owns the response cache, the in-flight map and the rate limiter.

    Usage:
        governor = RequestGovernor(SystemClock(), settings.governor)
        quote = await governor.acquire(("quote", "AAPL"), lambda: client.fetch_quote("AAPL"))
    """

    def __init__(self, clock: Clock, settings: GovernorSettings) -> None:
        self._clock = clock
        self._cache = ResponseCache(
            clock, settings.cache_ttl_seconds, settings.max_cache_size
        )
        self._limiter = RateLimiter(
            clock,
            max_calls=settings.max_calls_per_window,
            window_seconds=settings.window_seconds,
            min_interval=settings.min_call_interval,
        )
        self._in_flight: dict[Hashable, asyncio.Task] = {}  # type: ignore[type-arg]

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    def is_in_flight(self, key: Hashable) -> bool:
        return key in self._in_flight

    async def acquire(self, key: Hashable, produce: Callable[[], Awaitable[T]]) -> T:
        """Return the payload for ``key``, calling ``produce`` at most once.

        Args:
            key: Cache and dedup key, e.g. ``("candles", "AAPL", "1h")``.
            produce: Zero-argument coroutine factory performing the vendor call.

        Returns:
            The cached or freshly produced payload.

        Raises:
            Whatever ``produce`` raises; every joined caller sees the same error.
        """
        entry = self._cache.lookup(key)
        if entry is not None:
            logger.debug("cache_hit", key=key)
            return entry.payload

        task = self._in_flight.get(key)
        if task is not None:
            logger.debug("request_deduplicated", key=key)
        else:
            task = asyncio.create_task(self._run(key, produce))
            task.add_done_callback(_consume_exception)
            self._in_flight[key] = task

        return await asyncio.shield(task)

    async def _run(self, key: Hashable, produce: Callable[[], Awaitable[Any]]) -> Any:
        try:
            await self._limiter.acquire()
            logger.debug("vendor_call_admitted", key=key)
            payload = await produce()
            self._cache.store(key, payload)
            return payload
        finally:
            # Only remove our own entry; a later call may already own the key.
            if self._in_flight.get(key) is asyncio.current_task():
                del self._in_flight[key]

    def invalidate(self, key: Hashable | None = None) -> None:
        """Drop cached payloads for ``key`` (or all). In-flight calls are untouched."""
        self._cache.invalidate(key)
        logger.info("cache_invalidated", key=key)

    def stats(self) -> dict:
        """Snapshot of cache size, in-flight count and rate window counters."""
        state = self._limiter.state
        return {
            "cache_size": len(self._cache),
            "in_flight": len(self._in_flight),
            "calls_this_window": state.calls_this_window,
            "window_start": state.window_start,
            "last_call_at": state.last_call_at,
        }


def _consume_exception(task: asyncio.Task) -> None:  # type: ignore[type-arg]
    """Mark a failed call's exception as retrieved.

    When every interested caller was cancelled nobody awaits the task, and
    asyncio would otherwise report the error as never retrieved.
    """
    if not task.cancelled():
        task.exception()
