"""Data-acquisition governor: TTL cache, request dedup and rate limiting."""

from tradesignal.governor.cache import CacheEntry, ResponseCache
from tradesignal.governor.governor import RequestGovernor
from tradesignal.governor.rate_limiter import RateLimiter, RateLimiterState

__all__ = [
    "CacheEntry",
    "RateLimiter",
    "RateLimiterState",
    "RequestGovernor",
    "ResponseCache",
]
