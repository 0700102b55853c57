"""Price/RSI divergence detection over a trailing window.

Regular divergence (reversal):
    bearish  - price makes a higher high, RSI a lower high
    bullish  - price makes a lower low, RSI a higher low
Hidden divergence (continuation):
    hidden bearish - price makes a lower high, RSI a higher high
    hidden bullish - price makes a higher low, RSI a lower low

Regular checks run before hidden ones; the first match wins.
"""

from collections.abc import Callable

from tradesignal.models import DivergenceKind, DivergenceResult, IndicatorFrame

#: Neighbours compared on each side of a candidate extreme.
_SWING_RADIUS = 2


def _find_extremes(values: list[float]) -> tuple[list[float], list[float]]:
    """Return (peaks, troughs) found with a symmetric 5-point window.

    A peak is strictly greater than both neighbours on each side; a trough
    strictly smaller. Results are in chronological order.
    """
    peaks: list[float] = []
    troughs: list[float] = []
    for i in range(_SWING_RADIUS, len(values) - _SWING_RADIUS):
        v = values[i]
        neighbours = [
            values[j]
            for j in range(i - _SWING_RADIUS, i + _SWING_RADIUS + 1)
            if j != i
        ]
        if all(v > n for n in neighbours):
            peaks.append(v)
        if all(v < n for n in neighbours):
            troughs.append(v)
    return peaks, troughs


def _strength(latest: float, previous: float) -> float:
    if previous == 0:
        return 0.0
    return min(max(abs(latest - previous) / previous * 100.0, 0.0), 100.0)


def detect_divergence(
    frames: list[IndicatorFrame], lookback: int = 10
) -> DivergenceResult:
    """Find divergence between price and RSI in the last ``lookback`` frames.

    Returns ``DivergenceKind.NONE`` with zero strength when fewer than
    ``lookback + 5`` frames exist or nothing matches.
    """
    if len(frames) < lookback + 5:
        return DivergenceResult()

    recent = frames[-lookback:]
    price_peaks, price_troughs = _find_extremes([f.price for f in recent])
    rsi_peaks, rsi_troughs = _find_extremes([f.rsi for f in recent])

    have_peaks = len(price_peaks) >= 2 and len(rsi_peaks) >= 2
    have_troughs = len(price_troughs) >= 2 and len(rsi_troughs) >= 2

    # (kind, enough extremes, price series, rsi series, price test, rsi test)
    checks: list[
        tuple[
            DivergenceKind,
            bool,
            list[float],
            list[float],
            Callable[[float, float], bool],
            Callable[[float, float], bool],
        ]
    ] = [
        (DivergenceKind.BEARISH, have_peaks, price_peaks, rsi_peaks,
         lambda last, prev: last > prev, lambda last, prev: last < prev),
        (DivergenceKind.BULLISH, have_troughs, price_troughs, rsi_troughs,
         lambda last, prev: last < prev, lambda last, prev: last > prev),
        (DivergenceKind.HIDDEN_BEARISH, have_peaks, price_peaks, rsi_peaks,
         lambda last, prev: last < prev, lambda last, prev: last > prev),
        (DivergenceKind.HIDDEN_BULLISH, have_troughs, price_troughs, rsi_troughs,
         lambda last, prev: last > prev, lambda last, prev: last < prev),
    ]

    for kind, enough, prices, rsis, price_test, rsi_test in checks:
        if not enough:
            continue
        if price_test(prices[-1], prices[-2]) and rsi_test(rsis[-1], rsis[-2]):
            return DivergenceResult(
                kind=kind, strength=_strength(prices[-1], prices[-2])
            )

    return DivergenceResult()
