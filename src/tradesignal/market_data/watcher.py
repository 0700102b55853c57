"""Watchlist poller -- re-evaluates symbols periodically and reports changes.

Each pass walks the watchlist in small batches (pausing between batches to
stay under the vendor's rate limit), computes the signal in every analysis
mode, and compares it with the previous pass. A change is reported only
when the new verdict is significant (not HOLD, not WEAK_*); the first
observation of a symbol only establishes the baseline.
"""

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable

from tradesignal.clock import Clock
from tradesignal.config import WatchSettings
from tradesignal.exceptions import AuthError, TradeSignalError
from tradesignal.logging import get_logger
from tradesignal.market_data.service import MarketDataService
from tradesignal.models import AnalysisMode, SignalChange, SignalResult
from tradesignal.signals import is_significant

logger = get_logger(__name__)

ChangeCallback = Callable[[SignalChange], Awaitable[None]]

#: Recent changes kept for the API.
MAX_RECENT_CHANGES = 100


class SignalWatcher:
    """Owns one background task polling the watchlist.

    ``start`` is idempotent: a second call while running only logs a
    warning, so there is never more than one poller.
    """

    def __init__(
        self,
        service: MarketDataService,
        clock: Clock,
        settings: WatchSettings | None = None,
        on_change: ChangeCallback | None = None,
    ) -> None:
        self._service = service
        self._clock = clock
        self._settings = settings or WatchSettings()
        self._on_change = on_change
        self._latest: dict[tuple[str, AnalysisMode], SignalResult] = {}
        self._errors: dict[str, str] = {}
        self._recent: deque[SignalChange] = deque(maxlen=MAX_RECENT_CHANGES)
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def symbols(self) -> list[str]:
        return list(self._settings.symbols)

    async def start(self) -> None:
        """Begin polling in the background."""
        if self._running:
            logger.warning("signal_watcher_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info(
            "signal_watcher_started",
            symbols=len(self._settings.symbols),
            refresh_interval=self._settings.refresh_interval,
        )

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("signal_watcher_stopped")

    async def _watch_loop(self) -> None:
        while self._running:
            try:
                await self.check_all()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning("signal_watcher_cycle_error", exc_info=True)
            if self._running:
                await self._clock.sleep(self._settings.refresh_interval)

    async def check_all(self) -> list[SignalChange]:
        """Run one full pass over the watchlist.

        Returns the significant changes found in this pass.
        """
        symbols = self._settings.symbols
        size = max(1, self._settings.batch_size)
        changes: list[SignalChange] = []

        for start in range(0, len(symbols), size):
            if start:
                await self._clock.sleep(self._settings.batch_delay)
            batch = symbols[start : start + size]
            for found in await asyncio.gather(*(self._check_symbol(s) for s in batch)):
                changes.extend(found)

        logger.info(
            "signal_watcher_cycle_complete",
            symbols=len(symbols),
            changes=len(changes),
            errors=len(self._errors),
        )
        return changes

    async def _check_symbol(self, symbol: str) -> list[SignalChange]:
        changes = []
        for mode in AnalysisMode:
            try:
                result = await self._service.get_signal(
                    symbol, self._settings.timeframe, mode
                )
            except AuthError:
                raise
            except TradeSignalError as e:
                self._errors[symbol] = str(e)
                logger.warning("watch_symbol_failed", symbol=symbol, mode=mode.value, error=str(e))
                return changes
            self._errors.pop(symbol, None)

            change = self._record(result)
            if change is not None:
                changes.append(change)
                await self._notify(change)
        return changes

    def _record(self, result: SignalResult) -> SignalChange | None:
        key = (result.symbol, result.mode)
        previous = self._latest.get(key)
        self._latest[key] = result
        if previous is None:
            return None

        if previous.signal.label == result.signal.label:
            return None
        if not is_significant(result.signal.label):
            return None

        change = SignalChange(
            symbol=result.symbol,
            mode=result.mode,
            previous=previous.signal,
            current=result.signal,
            changed_at=self._clock.now(),
        )
        self._recent.append(change)
        logger.info(
            "signal_changed",
            symbol=result.symbol,
            mode=result.mode.value,
            previous=previous.signal.label.value,
            current=result.signal.label.value,
        )
        return change

    async def _notify(self, change: SignalChange) -> None:
        if self._on_change is None:
            return
        try:
            await self._on_change(change)
        except Exception:
            logger.warning("signal_change_callback_failed", symbol=change.symbol, exc_info=True)

    def latest(self) -> list[SignalResult]:
        """Most recent result per (symbol, mode), in watchlist order."""
        order = {s: i for i, s in enumerate(self._settings.symbols)}
        return sorted(
            self._latest.values(),
            key=lambda r: (order.get(r.symbol, len(order)), r.mode.value),
        )

    def recent_changes(self) -> list[SignalChange]:
        """Changes reported so far, oldest first."""
        return list(self._recent)

    def errors(self) -> dict[str, str]:
        """Last error message per symbol that failed in the latest pass."""
        return dict(self._errors)
