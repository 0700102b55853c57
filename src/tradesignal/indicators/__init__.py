"""Technical indicators: EMA, RSI and price/RSI divergence.

All functions are pure and synchronous.
"""

from tradesignal.indicators.divergence import detect_divergence
from tradesignal.indicators.ema import compute_ema
from tradesignal.indicators.pipeline import build_frames, change_from_extreme
from tradesignal.indicators.rsi import NEUTRAL_RSI, compute_rsi

__all__ = [
    "NEUTRAL_RSI",
    "build_frames",
    "change_from_extreme",
    "compute_ema",
    "compute_rsi",
    "detect_divergence",
]
