"""Indicator pipeline: candles in, IndicatorFrames out.

Pure and synchronous. Never suspends, never mutates its input.
"""

from tradesignal.indicators.ema import compute_ema
from tradesignal.indicators.rsi import compute_rsi
from tradesignal.models import Candle, ExtremeChange, IndicatorFrame


def build_frames(
    candles: list[Candle],
    ema_period: int = 20,
    rsi_period: int = 14,
) -> list[IndicatorFrame]:
    """Attach EMA and RSI to each candle.

    Returns one frame per candle, in the same order.
    """
    prices = [c.price for c in candles]
    ema = compute_ema(prices, ema_period)
    rsi = compute_rsi(prices, rsi_period)

    return [
        IndicatorFrame(
            time=c.time,
            price=c.price,
            ema20=ema[i],
            rsi=rsi[i],
            high=c.high,
            low=c.low,
            open=c.open,
            volume=c.volume,
        )
        for i, c in enumerate(candles)
    ]


def change_from_extreme(prices: list[float], window: int = 10) -> ExtremeChange:
    """Percent change of the latest price from the recent extreme.

    Walks the last ``window`` prices and keeps whichever is farthest from the
    current price. ``from_high`` tells whether that extreme sits above it.
    Fewer than two prices yields a zero change.
    """
    if len(prices) < 2:
        return ExtremeChange()

    current = prices[-1]
    recent = prices[-window:]

    extreme = recent[0]
    from_high = False
    for p in recent[1:]:
        if abs(p - extreme) > abs(current - extreme):
            extreme = p
            from_high = p > current

    if extreme == 0:
        return ExtremeChange(from_high=from_high)
    return ExtremeChange(
        change_percent=(current - extreme) / extreme * 100.0,
        from_high=from_high,
    )
