"""Relative Strength Index with Wilder smoothing."""

#: Value assigned wherever no meaningful RSI exists.
NEUTRAL_RSI = 50.0


def _rsi_from_averages(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - 100.0 / (1.0 + rs)


def compute_rsi(prices: list[float], period: int = 14) -> list[float]:
    """Compute RSI for every index of ``prices``.

    Insufficient data (fewer than ``period + 1`` prices) yields the neutral
    value 50 everywhere. Otherwise the first ``period`` deltas seed the
    average gain/loss, RSI is defined from index ``period`` onward, and each
    later delta updates the averages as ``(avg * (period - 1) + x) / period``.
    Indices ``0..period-1`` are filled with 50.

    A zero average loss saturates RSI at 100.

    Args:
        prices: Ordered prices, oldest first.
        period: Smoothing period.

    Returns:
        List of RSI values in [0, 100], same length as input.
    """
    if period < 1:
        raise ValueError(f"RSI period must be >= 1, got {period}")

    n = len(prices)
    if n < period + 1:
        return [NEUTRAL_RSI] * n

    deltas = [prices[i] - prices[i - 1] for i in range(1, n)]

    avg_gain = sum(d for d in deltas[:period] if d > 0) / period
    avg_loss = sum(-d for d in deltas[:period] if d < 0) / period

    rsi = [NEUTRAL_RSI] * n
    rsi[period] = _rsi_from_averages(avg_gain, avg_loss)

    for i in range(period + 1, n):
        delta = deltas[i - 1]
        gain = delta if delta > 0 else 0.0
        loss = -delta if delta < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        rsi[i] = _rsi_from_averages(avg_gain, avg_loss)

    return rsi
