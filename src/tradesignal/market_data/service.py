"""MarketDataService: quote + candles in, SignalResult out.

Ties the governor, the vendor client, the history journal and the pure
indicator/classifier functions together behind ``get_signal``. Retryable
vendor failures are contained here; once retries are exhausted the caller
still gets a result, built from stored history or a generated series and
flagged ``degraded``.

Only AuthError, DataUnavailableError (for quotes) and ParseError escape.
"""

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import TypeVar

from tradesignal.clock import Clock
from tradesignal.config import RetrySettings, SignalSettings, VendorSettings
from tradesignal.exceptions import (
    DataUnavailableError,
    NetworkError,
    QuotaExhaustedError,
    RateLimitError,
    VendorError,
)
from tradesignal.governor import RequestGovernor
from tradesignal.indicators import build_frames, change_from_extreme, detect_divergence
from tradesignal.logging import get_logger, log_context
from tradesignal.market_data.synthetic import (
    DEFAULT_ANCHOR_PRICE,
    placeholder_series,
    series_from_history,
    trend_from_quote,
)
from tradesignal.models import (
    AnalysisMode,
    Candle,
    DataSource,
    DivergenceResult,
    Quote,
    SignalResult,
)
from tradesignal.signals import classify_signal
from tradesignal.storage import ApiCallCounter, HistoryStore
from tradesignal.vendor import VendorClient

logger = get_logger(__name__)

T = TypeVar("T")

#: Failures that end in a degraded result instead of an exception.
_DEGRADABLE = (RateLimitError, NetworkError)


class MarketDataService:
    """Computes signals for a symbol with retry, quota and fallback policy.

    Args:
        client: Vendor client performing the raw calls.
        governor: Cache/dedup/rate gate every vendor call goes through.
        history: Daily snapshot journal (fallback series source).
        counter: Daily vendor call counter; enforces the optional quota.
        clock: Time source for backoff sleeps and timestamps.
        retry: Attempt count and base backoff delay.
        signal_settings: Indicator periods and the default mode.
        vendor_settings: Candle lookback window.
    """

    def __init__(
        self,
        client: VendorClient,
        governor: RequestGovernor,
        history: HistoryStore,
        counter: ApiCallCounter,
        clock: Clock,
        retry: RetrySettings | None = None,
        signal_settings: SignalSettings | None = None,
        vendor_settings: VendorSettings | None = None,
    ) -> None:
        self._client = client
        self._governor = governor
        self._history = history
        self._counter = counter
        self._clock = clock
        self._retry = retry or RetrySettings()
        self._signal = signal_settings or SignalSettings()
        self._vendor = vendor_settings or VendorSettings()

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def counter(self) -> ApiCallCounter:
        return self._counter

    @property
    def governor(self) -> RequestGovernor:
        return self._governor

    # ──────────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────────

    async def get_signal(
        self,
        symbol: str,
        timeframe: str = "1day",
        mode: AnalysisMode | str | None = None,
    ) -> SignalResult:
        """Fetch data for ``symbol`` and classify the latest sample.

        Raises:
            AuthError: Credentials rejected; never retried.
            DataUnavailableError: The vendor has no quote for the symbol.
            ParseError: The vendor answered with a malformed payload.
        """
        mode = AnalysisMode(mode or self._signal.default_mode)
        with log_context(symbol=symbol, timeframe=timeframe, mode=mode.value):
            return await self._compute_signal(symbol, timeframe, mode)

    async def _compute_signal(
        self, symbol: str, timeframe: str, mode: AnalysisMode
    ) -> SignalResult:
        problems: list[str] = []

        quote = await self._load_quote(symbol, problems)
        candles = await self._load_candles(symbol, timeframe, problems)

        source = DataSource.VENDOR
        if not candles:
            records = await self._history.read(symbol)
            if records:
                candles = series_from_history(records)
                source = DataSource.HISTORY
            else:
                candles = self._synthesize(symbol, timeframe, quote)
                source = DataSource.SYNTHETIC
            logger.warning(
                "signal_degraded",
                source=source.value,
                points=len(candles),
            )

        if quote is not None:
            await self._history.record_quote(
                symbol, quote, self._clock.today(), at=self._clock.now()
            )

        result = self._analyze(symbol, timeframe, mode, candles)
        result.quote = quote
        result.source = source
        result.degraded = source is not DataSource.VENDOR or bool(problems)
        if source is not DataSource.VENDOR:
            problems.append(f"Showing {source.value} data")
        result.message = "; ".join(problems) or None

        logger.info(
            "signal_computed",
            label=result.signal.label.value,
            source=source.value,
        )
        return result

    def analyze(
        self,
        symbol: str,
        timeframe: str,
        mode: AnalysisMode | str,
        candles: list[Candle],
    ) -> SignalResult:
        """Run indicators, divergence and classifier over ``candles``.

        Pure; no vendor access. The result is marked as vendor data.
        """
        return self._analyze(symbol, timeframe, AnalysisMode(mode), candles)

    # ──────────────────────────────────────────────
    # Vendor access
    # ──────────────────────────────────────────────

    async def _load_quote(self, symbol: str, problems: list[str]) -> Quote | None:
        try:
            return await self._call_with_retry(
                ("quote", symbol), lambda: self._client.fetch_quote(symbol)
            )
        except _DEGRADABLE as e:
            problems.append(f"Quote unavailable: {e}")
            return None

    async def _load_candles(
        self, symbol: str, timeframe: str, problems: list[str]
    ) -> list[Candle]:
        end = self._clock.now()
        start = end - timedelta(days=self._vendor.history_lookback_days)
        try:
            return await self._call_with_retry(
                ("candles", symbol, timeframe),
                lambda: self._client.fetch_candles(symbol, timeframe, start, end),
            )
        except DataUnavailableError:
            logger.info("vendor_history_empty", symbol=symbol, timeframe=timeframe)
            return []
        except _DEGRADABLE as e:
            problems.append(f"History unavailable: {e}")
            return []

    async def _call_with_retry(
        self, key: tuple[str, ...], fetch: Callable[[], Awaitable[T]]
    ) -> T:
        """Acquire ``key`` through the governor, retrying retryable failures.

        ``max_retries`` is the total number of attempts. The wait before
        attempt ``n`` (0-based) is ``retry_delay * 2 ** (n - 1)``.
        """
        attempts = max(1, self._retry.max_retries)
        for attempt in range(attempts):
            try:
                return await self._governor.acquire(key, lambda: self._metered(fetch))
            except VendorError as e:
                if not e.retryable or attempt == attempts - 1:
                    if e.retryable:
                        logger.warning(
                            "vendor_retries_exhausted",
                            key=key,
                            attempts=attempts,
                            error=str(e),
                        )
                    raise
                delay = self._retry.retry_delay * (2**attempt)
                logger.warning(
                    "vendor_call_retry",
                    key=key,
                    attempt=attempt + 1,
                    max_attempts=attempts,
                    delay=delay,
                    error=str(e),
                )
                await self._clock.sleep(delay)
        raise AssertionError("unreachable")

    async def _metered(self, fetch: Callable[[], Awaitable[T]]) -> T:
        """Charge one call against the daily quota, then perform it."""
        if not await self._counter.try_reserve():
            raise QuotaExhaustedError(
                f"Daily call limit of {self._counter.daily_limit} reached"
            )
        return await fetch()

    # ──────────────────────────────────────────────
    # Computation
    # ──────────────────────────────────────────────

    def _synthesize(
        self, symbol: str, timeframe: str, quote: Quote | None
    ) -> list[Candle]:
        now = self._clock.now()
        if quote is not None:
            return trend_from_quote(quote, now)
        return placeholder_series(symbol, timeframe, now, DEFAULT_ANCHOR_PRICE)

    def _analyze(
        self,
        symbol: str,
        timeframe: str,
        mode: AnalysisMode,
        candles: list[Candle],
    ) -> SignalResult:
        frames = build_frames(
            candles, ema_period=self._signal.ema_period, rsi_period=self._signal.rsi_period
        )
        divergence = (
            detect_divergence(frames, lookback=self._signal.divergence_lookback)
            if frames
            else DivergenceResult()
        )

        last = frames[-1] if frames else None
        prev = frames[-2] if len(frames) > 1 else None
        signal = classify_signal(
            price=last.price if last else None,
            ema=last.ema20 if last else None,
            rsi=last.rsi if last else None,
            prev_price=prev.price if prev else None,
            prev_ema=prev.ema20 if prev else None,
            divergence=divergence,
            mode=mode,
        )

        return SignalResult(
            symbol=symbol,
            timeframe=timeframe,
            mode=mode,
            series=frames,
            signal=signal,
            last_updated=self._clock.now(),
            divergence=divergence,
            change_from_extreme=change_from_extreme([f.price for f in frames]),
        )
