"""Time sources used by the governor, the service and the watcher.

Every wait in the system goes through ``Clock.sleep`` so a test can swap in
a clock whose time only moves when something sleeps.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone


class Clock(ABC):
    """Monotonic time, wall time and sleeping."""

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a clock that never goes backwards (TTL and rate windows)."""
        ...

    @abstractmethod
    def now(self) -> datetime:
        """Current wall-clock time as an aware UTC datetime."""
        ...

    @abstractmethod
    async def sleep(self, seconds: float) -> None:
        """Suspend the calling coroutine for ``seconds``."""
        ...

    def today(self) -> date:
        """Current UTC calendar day."""
        return self.now().date()


class SystemClock(Clock):
    """Real clock backed by time.monotonic and asyncio.sleep."""

    def monotonic(self) -> float:
        return time.monotonic()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))
