"""Tests for the Twelve Data payload parsers and client."""

from datetime import datetime, timezone

import pytest

from tradesignal.exceptions import AuthError, DataUnavailableError, ParseError, RateLimitError
from tradesignal.vendor.twelvedata_client import (
    TwelveDataClient,
    interval_for,
    parse_quote,
    parse_time_series,
)

TIME_SERIES = {
    "meta": {"symbol": "BTC/USD", "interval": "1h"},
    "values": [
        {"datetime": "2024-03-15 12:00:00", "open": "65010", "high": "65500", "low": "64900", "close": "65400"},
        {"datetime": "2024-03-15 11:00:00", "open": "64800", "high": "65100", "low": "64700", "close": "65010"},
        {"datetime": "2024-03-15 10:00:00", "open": "64500", "high": "64900", "low": "64400", "close": "64800", "volume": "12"},
    ],
    "status": "ok",
}


class TestParseTimeSeries:
    def test_reversed_to_ascending(self) -> None:
        candles = parse_time_series(TIME_SERIES)
        assert [c.price for c in candles] == [64800.0, 65010.0, 65400.0]
        assert candles[0].time == datetime(2024, 3, 15, 10, tzinfo=timezone.utc)
        assert candles[0].volume == 12
        assert candles[1].volume is None

    def test_date_only_values(self) -> None:
        candles = parse_time_series({"values": [{"datetime": "2024-03-15", "close": "1.5"}]})
        assert candles[0].time == datetime(2024, 3, 15, tzinfo=timezone.utc)

    def test_missing_values_is_empty(self) -> None:
        assert parse_time_series({"status": "ok"}) == []

    def test_duplicate_times_collapse(self) -> None:
        payload = {
            "values": [
                {"datetime": "2024-03-15 11:00:00", "close": "2.0"},
                {"datetime": "2024-03-15 10:00:00", "close": "1.0"},
                {"datetime": "2024-03-15 11:00:00", "close": "2.5"},
            ]
        }
        candles = parse_time_series(payload)
        assert [c.time.hour for c in candles] == [10, 11]
        assert [c.price for c in candles] == [1.0, 2.5]

    def test_bad_datetime(self) -> None:
        with pytest.raises(ParseError):
            parse_time_series({"values": [{"datetime": "yesterday", "close": "1"}]})

    def test_missing_close(self) -> None:
        with pytest.raises(ParseError):
            parse_time_series({"values": [{"datetime": "2024-03-15"}]})

    def test_credits_error(self) -> None:
        payload = {
            "code": 429,
            "message": "You have run out of API credits for the current minute. 9 API credits were used.",
            "status": "error",
        }
        with pytest.raises(RateLimitError):
            parse_time_series(payload)

    def test_invalid_key_error(self) -> None:
        payload = {"code": 401, "message": "**apikey** parameter is incorrect", "status": "error"}
        with pytest.raises(AuthError):
            parse_time_series(payload)

    def test_unknown_symbol_error(self) -> None:
        payload = {"code": 400, "message": "**symbol** not found: NOPE", "status": "error"}
        with pytest.raises(DataUnavailableError):
            parse_time_series(payload)


class TestParseQuote:
    def test_string_numbers(self) -> None:
        quote = parse_quote(
            "XAU/USD",
            {"close": "2150.25", "change": "10.5", "percent_change": "0.49",
             "high": "2155", "low": "2140", "open": "2141", "previous_close": "2139.75"},
        )
        assert quote.price == 2150.25
        assert quote.change_percent == 0.49
        assert quote.previous_close == 2139.75


class TestInterval:
    @pytest.mark.parametrize(
        "timeframe,expected",
        [("60min", "1h"), ("1h", "1h"), ("1day", "1day"), ("5min", "5min"), ("bogus", "1h")],
    )
    def test_mapping(self, timeframe: str, expected: str) -> None:
        assert interval_for(timeframe) == expected


class TestTwelveDataClient:
    @pytest.mark.asyncio
    async def test_fetch_candles_params(self, fake_session_factory) -> None:
        session = fake_session_factory(200, TIME_SERIES)
        client = TwelveDataClient(
            "https://td.test", "secret", session=session, outputsize=100
        )
        end = datetime(2024, 3, 15, 12, tzinfo=timezone.utc)
        candles = await client.fetch_candles("BTC/USD", "60min", end, end)
        assert len(candles) == 3
        assert session.get.call_args.args[0] == "https://td.test/time_series"
        params = session.get.call_args.kwargs["params"]
        assert params["interval"] == "1h"
        assert params["outputsize"] == 100
        assert params["apikey"] == "secret"

    @pytest.mark.asyncio
    async def test_error_body_with_http_200(self, fake_session_factory) -> None:
        session = fake_session_factory(
            200, {"code": 429, "message": "run out of API credits", "status": "error"}
        )
        client = TwelveDataClient("https://td.test", "secret", session=session)
        with pytest.raises(RateLimitError):
            await client.fetch_quote("BTC/USD")
