"""Fallback price series for when the vendor has no history.

Every series built here is either replayed from stored daily snapshots or
generated. Generated series are deterministic per symbol (the noise source
is seeded with the symbol) so repeated requests render the same curve.
"""

import math
import random
from datetime import datetime, time, timedelta, timezone

from tradesignal.models import Candle, HistoryRecord, Quote

#: Daily points in a trend series anchored on a quote.
TREND_POINTS = 60
#: Anchor when neither a quote nor stored history gives a price.
DEFAULT_ANCHOR_PRICE = 100.0


def series_from_history(records: list[HistoryRecord]) -> list[Candle]:
    """One candle per stored day, stamped at midnight UTC."""
    return [
        Candle(
            time=datetime.combine(r.date, time(), tzinfo=timezone.utc),
            price=r.price,
            high=r.high,
            low=r.low,
            open=r.open,
        )
        for r in sorted(records, key=lambda r: r.date)
    ]


def trend_from_quote(
    quote: Quote, end: datetime, points: int = TREND_POINTS
) -> list[Candle]:
    """Daily series drifting from the implied start price to the quote.

    The start price undoes the quote's percent change; a slow sine wave and
    a little seeded noise are layered on the straight line. The last point
    is the quote price itself.
    """
    current = quote.price
    change_pct = quote.change_percent or 0.0
    start = current / (1 + change_pct / 100) if change_pct > -100 else current
    rng = random.Random(quote.symbol)

    candles = []
    for i in range(points):
        progress = i / (points - 1) if points > 1 else 1.0
        price = (
            start
            + (current - start) * progress
            + math.sin(i / 10) * current * 0.02
            + (rng.random() - 0.5) * current * 0.01
        )
        candles.append(
            Candle(
                time=end - timedelta(days=points - 1 - i),
                price=round(max(price, 0.01), 2),
            )
        )
    if candles:
        candles[-1] = Candle(time=end, price=current)
    return candles


def placeholder_series(
    symbol: str,
    timeframe: str,
    end: datetime,
    anchor: float = DEFAULT_ANCHOR_PRICE,
) -> list[Candle]:
    """Hourly oscillation around ``anchor`` for when there is no quote at all.

    50 points for the 1h timeframe, 20 otherwise.
    """
    points = 50 if timeframe in ("1h", "60min") else 20
    rng = random.Random(f"{symbol}:{timeframe}")
    return [
        Candle(
            time=end - timedelta(hours=points - 1 - i),
            price=round(
                max(
                    anchor
                    + math.sin(i / 5) * anchor * 0.02
                    + (rng.random() - 0.5) * anchor * 0.01,
                    0.01,
                ),
                2,
            ),
        )
        for i in range(points)
    ]
