"""Global rate limiter: minimum spacing plus a per-window call cap.

A call departs only when fewer than ``max_calls`` calls were admitted in the
current window AND at least ``min_interval`` seconds passed since the
previous admitted call. The window counter resets once
``now >= window_start + window_seconds``.
"""

from dataclasses import dataclass

from tradesignal.clock import Clock
from tradesignal.logging import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimiterState:
    """Counters shared by every key."""

    last_call_at: float | None = None
    calls_this_window: int = 0
    window_start: float | None = None


class RateLimiter:
    """Admits vendor calls, suspending callers until both limits allow it.

    Check-and-increment runs without an await in between, so admission is
    atomic with respect to other coroutines on the same event loop.
    """

    def __init__(
        self,
        clock: Clock,
        max_calls: int,
        window_seconds: float,
        min_interval: float,
    ) -> None:
        if max_calls < 1:
            raise ValueError(f"max_calls must be >= 1, got {max_calls}")
        self._clock = clock
        self._max_calls = max_calls
        self._window = window_seconds
        self._min_interval = min_interval
        self.state = RateLimiterState()

    def _roll_window(self, now: float) -> None:
        start = self.state.window_start
        if start is None or now >= start + self._window:
            self.state.window_start = now
            self.state.calls_this_window = 0

    def delay_until_admitted(self, now: float) -> float:
        """Seconds until a call may depart (0 means now)."""
        self._roll_window(now)
        wait = 0.0
        if self.state.last_call_at is not None:
            wait = max(wait, self.state.last_call_at + self._min_interval - now)
        if self.state.calls_this_window >= self._max_calls:
            assert self.state.window_start is not None
            wait = max(wait, self.state.window_start + self._window - now)
        return wait

    async def acquire(self) -> None:
        """Suspend until a call is admitted, then record it."""
        while True:
            now = self._clock.monotonic()
            wait = self.delay_until_admitted(now)
            if wait <= 0:
                self.state.calls_this_window += 1
                self.state.last_call_at = now
                return
            logger.debug(
                "rate_limit_wait",
                wait_seconds=round(wait, 3),
                calls_this_window=self.state.calls_this_window,
            )
            await self._clock.sleep(wait)
