"""Tests for MarketDataService orchestration, retry and fallback policy.

The vendor client is an AsyncMock; time is virtual (FakeClock), so backoff
and rate-limit waits show up in ``clock.sleeps`` instead of slowing tests.
"""

import asyncio
from datetime import date, timedelta
from unittest.mock import AsyncMock

import pytest

from tradesignal.config import GovernorSettings
from tradesignal.exceptions import (
    AuthError,
    DataUnavailableError,
    NetworkError,
    ParseError,
    RateLimitError,
)
from tradesignal.governor import RequestGovernor
from tradesignal.market_data import MarketDataService
from tradesignal.models import (
    AnalysisMode,
    Candle,
    DataSource,
    HistoryRecord,
    Quote,
    SignalLabel,
)
from tradesignal.signals import classify_signal
from tradesignal.storage import ApiCallCounter, SqliteStore
from tradesignal.vendor import VendorClient


def _quote(price: float = 172.5) -> Quote:
    return Quote(symbol="AAPL", price=price, change=2.5, change_percent=1.47,
                 high=173.0, low=169.0, open=170.0, previous_close=170.0)


def _candles(clock, n: int = 30) -> list[Candle]:
    end = clock.now()
    return [
        Candle(time=end - timedelta(hours=n - 1 - i), price=150.0 + i * 0.8 + (i % 3))
        for i in range(n)
    ]


@pytest.fixture
def vendor(clock) -> AsyncMock:
    client = AsyncMock(spec=VendorClient)
    client.fetch_quote.return_value = _quote()
    client.fetch_candles.return_value = _candles(clock)
    return client


@pytest.fixture
def service(vendor, clock, governor_settings, retry_settings, history, counter) -> MarketDataService:
    governor = RequestGovernor(clock, governor_settings)
    return MarketDataService(vendor, governor, history, counter, clock, retry_settings)


class TestVendorPath:
    @pytest.mark.asyncio
    async def test_live_result(self, service, vendor, history, counter) -> None:
        result = await service.get_signal("AAPL", "1h", AnalysisMode.NORMAL)
        assert result.source == DataSource.VENDOR
        assert result.degraded is False
        assert result.message is None
        assert len(result.series) == 30
        assert result.series[0].ema20 == result.series[0].price
        assert result.quote == _quote()
        assert await counter.count() == 2

        records = await history.read("AAPL")
        assert len(records) == 1
        assert records[0].date == date(2024, 3, 15)
        assert records[0].price == 172.5

    @pytest.mark.asyncio
    async def test_signal_from_last_two_frames(self, service) -> None:
        result = await service.get_signal("AAPL", "1h", "normal")
        last, prev = result.series[-1], result.series[-2]
        expected = classify_signal(
            last.price, last.ema20, last.rsi, prev.price, prev.ema20,
            result.divergence, AnalysisMode.NORMAL,
        )
        assert result.signal == expected

    @pytest.mark.asyncio
    async def test_default_mode_is_conservative(self, service) -> None:
        result = await service.get_signal("AAPL", "1h")
        assert result.mode == AnalysisMode.CONSERVATIVE

    @pytest.mark.asyncio
    async def test_repeat_within_ttl_is_cached(self, service, vendor, clock) -> None:
        await service.get_signal("AAPL", "1h", "normal")
        await service.get_signal("AAPL", "1h", "conservative")
        assert vendor.fetch_quote.await_count == 1
        assert vendor.fetch_candles.await_count == 1

    @pytest.mark.asyncio
    async def test_timeframes_cached_separately(self, service, vendor) -> None:
        await service.get_signal("AAPL", "1h")
        await service.get_signal("AAPL", "1day")
        assert vendor.fetch_quote.await_count == 1
        assert vendor.fetch_candles.await_count == 2

    @pytest.mark.asyncio
    async def test_quote_and_candles_never_share_a_cache_entry(self, service, vendor) -> None:
        result = await service.get_signal("AAPL", "quote")

        assert result.source == DataSource.VENDOR
        assert len(result.series) == 30
        assert result.quote.price == 172.5
        assert vendor.fetch_candles.await_count == 1


class TestRetry:
    @pytest.mark.asyncio
    async def test_rate_limit_retried_with_backoff(self, service, vendor, clock) -> None:
        vendor.fetch_candles.side_effect = [RateLimitError("429"), _candles(clock)]
        result = await service.get_signal("AAPL", "1h")
        assert result.degraded is False
        assert vendor.fetch_candles.await_count == 2
        assert 5.0 in clock.sleeps

    @pytest.mark.asyncio
    async def test_degraded_after_retries_exhausted(self, service, vendor, clock) -> None:
        vendor.fetch_quote.side_effect = NetworkError("down")
        vendor.fetch_candles.side_effect = NetworkError("down")

        result = await service.get_signal("AAPL", "1h")

        assert result.degraded is True
        assert result.source == DataSource.SYNTHETIC
        assert result.series
        assert "Quote unavailable" in result.message
        assert vendor.fetch_quote.await_count == 2
        assert vendor.fetch_candles.await_count == 2
        assert clock.sleeps.count(5.0) == 2

    @pytest.mark.asyncio
    async def test_backoff_doubles(self, vendor, clock, governor_settings, history, counter) -> None:
        from tradesignal.config import RetrySettings

        service = MarketDataService(
            vendor, RequestGovernor(clock, governor_settings), history, counter, clock,
            RetrySettings(max_retries=4, retry_delay=5.0),
        )
        vendor.fetch_quote.side_effect = NetworkError("down")
        await service.get_signal("AAPL", "1h")
        backoffs = [s for s in clock.sleeps if s >= 5.0]
        assert backoffs[:3] == [5.0, 10.0, 20.0]
        assert vendor.fetch_quote.await_count == 4

    @pytest.mark.asyncio
    async def test_degraded_uses_stored_history(self, service, vendor, history) -> None:
        for i in range(5):
            await history.upsert(
                "AAPL", HistoryRecord(date=date(2024, 3, 10 + i), price=160.0 + i)
            )
        vendor.fetch_candles.side_effect = NetworkError("down")

        result = await service.get_signal("AAPL", "1day")

        assert result.degraded is True
        assert result.source == DataSource.HISTORY
        assert [f.price for f in result.series] == [160.0, 161.0, 162.0, 163.0, 164.0]

    @pytest.mark.asyncio
    async def test_failed_call_is_not_cached(self, service, vendor, clock) -> None:
        vendor.fetch_candles.side_effect = [
            NetworkError("down"), NetworkError("down"), _candles(clock)
        ]
        first = await service.get_signal("AAPL", "1h")
        second = await service.get_signal("AAPL", "1h")
        assert first.degraded is True
        assert second.degraded is False


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_auth_error_on_quote_raises_immediately(self, service, vendor, clock) -> None:
        vendor.fetch_quote.side_effect = AuthError("bad key", status=401)
        with pytest.raises(AuthError):
            await service.get_signal("AAPL", "1h")
        assert vendor.fetch_quote.await_count == 1
        assert 5.0 not in clock.sleeps

    @pytest.mark.asyncio
    async def test_auth_error_on_candles_raises(self, service, vendor) -> None:
        vendor.fetch_candles.side_effect = AuthError("forbidden", status=403)
        with pytest.raises(AuthError):
            await service.get_signal("AAPL", "1h")
        assert vendor.fetch_candles.await_count == 1

    @pytest.mark.asyncio
    async def test_unknown_symbol_quote_raises(self, service, vendor) -> None:
        vendor.fetch_quote.side_effect = DataUnavailableError("no quote")
        with pytest.raises(DataUnavailableError):
            await service.get_signal("NOPE", "1h")

    @pytest.mark.asyncio
    async def test_parse_error_raises(self, service, vendor) -> None:
        vendor.fetch_candles.side_effect = ParseError("garbage")
        with pytest.raises(ParseError):
            await service.get_signal("AAPL", "1h")
        assert vendor.fetch_candles.await_count == 1


class TestFallback:
    @pytest.mark.asyncio
    async def test_empty_history_synthesizes_from_quote(self, service, vendor) -> None:
        vendor.fetch_candles.return_value = []
        result = await service.get_signal("AAPL", "1day")
        assert result.source == DataSource.SYNTHETIC
        assert result.degraded is True
        assert len(result.series) == 60
        assert result.series[-1].price == 172.5

    @pytest.mark.asyncio
    async def test_no_history_for_timeframe_is_not_an_error(self, service, vendor) -> None:
        vendor.fetch_candles.side_effect = DataUnavailableError("no candles")
        result = await service.get_signal("AAPL", "1day")
        assert result.source == DataSource.SYNTHETIC
        assert vendor.fetch_candles.await_count == 1

    @pytest.mark.asyncio
    async def test_history_read_before_quote_recorded(self, service, vendor, history) -> None:
        """The quote recorded on this call is not itself the fallback series."""
        vendor.fetch_candles.return_value = []
        result = await service.get_signal("AAPL", "1day")
        assert result.source == DataSource.SYNTHETIC
        assert len(await history.read("AAPL")) == 1

        vendor.fetch_candles.return_value = []
        service.governor.invalidate()
        second = await service.get_signal("AAPL", "1day")
        assert second.source == DataSource.HISTORY

    @pytest.mark.asyncio
    async def test_daily_quota_degrades_without_calls(
        self, vendor, clock, governor_settings, retry_settings, history, memory_store
    ) -> None:
        counter = ApiCallCounter(memory_store, clock, daily_limit=2)
        await counter.increment()
        await counter.increment()
        service = MarketDataService(
            vendor, RequestGovernor(clock, governor_settings), history, counter, clock,
            retry_settings,
        )

        result = await service.get_signal("AAPL", "1h")

        assert result.degraded is True
        assert result.quote is None
        assert vendor.fetch_quote.await_count == 0
        assert vendor.fetch_candles.await_count == 0
        assert 5.0 not in clock.sleeps

    @pytest.mark.asyncio
    async def test_daily_quota_holds_for_overlapping_calls(
        self, vendor, clock, retry_settings, history, tmp_path
    ) -> None:
        settings = GovernorSettings(min_call_interval=0.0)
        async with SqliteStore(str(tmp_path / "kv.db")) as store:
            counter = ApiCallCounter(store, clock, daily_limit=2)
            service = MarketDataService(
                vendor, RequestGovernor(clock, settings), history, counter, clock,
                retry_settings,
            )

            results = await asyncio.gather(
                *(service.get_signal(s, "1h") for s in ("AAPL", "MSFT", "TSLA", "NVDA"))
            )

            assert vendor.fetch_quote.await_count + vendor.fetch_candles.await_count == 2
            assert await counter.count() == 2
            assert sum(r.degraded for r in results) >= 3


class TestAnalyze:
    def test_single_candle_uses_missing_input_rule(self, service, clock) -> None:
        result = service.analyze("AAPL", "1h", "normal", [Candle(time=clock.now(), price=10.0)])
        assert result.signal.label == SignalLabel.SELL

    def test_empty_series(self, service) -> None:
        result = service.analyze("AAPL", "1h", "normal", [])
        assert result.series == []
        assert result.signal.label == SignalLabel.SELL
