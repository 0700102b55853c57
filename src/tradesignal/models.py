"""Shared data models for quotes, candles, indicators and signals.

Prices are plain floats: vendors deliver them as JSON numbers and the
indicator math (ratios, smoothing) has no exact-decimal requirement.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class AnalysisMode(str, Enum):
    """Threshold set used by the signal classifier."""

    CONSERVATIVE = "conservative"
    NORMAL = "normal"


class DataSource(str, Enum):
    """Where the price series behind a result came from."""

    VENDOR = "vendor"
    HISTORY = "history"
    SYNTHETIC = "synthetic"


class DivergenceKind(str, Enum):
    """Price/RSI divergence classification."""

    NONE = "none"
    BULLISH = "bullish"
    BEARISH = "bearish"
    HIDDEN_BULLISH = "hidden_bullish"
    HIDDEN_BEARISH = "hidden_bearish"


class SignalLabel(str, Enum):
    """Directional verdict, strongest buy to strongest sell."""

    STRONG_BUY = "STRONG_BUY"
    BUY = "BUY"
    WEAK_BUY = "WEAK_BUY"
    HOLD = "HOLD"
    WEAK_SELL = "WEAK_SELL"
    SELL = "SELL"
    STRONG_SELL = "STRONG_SELL"


@dataclass(frozen=True)
class Candle:
    """One bar of a price series. ``price`` is the close."""

    time: datetime
    price: float
    high: float | None = None
    low: float | None = None
    open: float | None = None
    volume: int | None = None


@dataclass(frozen=True)
class Quote:
    """Latest quote snapshot for a symbol."""

    symbol: str
    price: float
    change: float | None = None
    change_percent: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None
    fetched_at: datetime | None = None


@dataclass(frozen=True)
class IndicatorFrame:
    """A candle with its EMA and RSI values attached."""

    time: datetime
    price: float
    ema20: float
    rsi: float
    high: float | None = None
    low: float | None = None
    open: float | None = None
    volume: int | None = None


@dataclass(frozen=True)
class DivergenceResult:
    """Detected divergence and its strength in percent (0-100)."""

    kind: DivergenceKind = DivergenceKind.NONE
    strength: float = 0.0


@dataclass(frozen=True)
class Signal:
    """Classifier verdict with a human-readable rationale."""

    label: SignalLabel
    rationale: str


@dataclass
class HistoryRecord:
    """Daily price snapshot persisted per symbol."""

    date: date
    price: float
    change: float | None = None
    change_percent: float | None = None
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = None
    timestamp: datetime | None = None


@dataclass(frozen=True)
class ExtremeChange:
    """Percent move of the latest price away from the recent extreme."""

    change_percent: float = 0.0
    from_high: bool = False


@dataclass
class SignalResult:
    """Output contract handed to the presentation layer.

    ``degraded`` is True whenever the series is not live vendor data
    (stored history or a synthetic trend).
    """

    symbol: str
    timeframe: str
    mode: AnalysisMode
    series: list[IndicatorFrame]
    signal: Signal
    last_updated: datetime
    divergence: DivergenceResult = field(default_factory=DivergenceResult)
    degraded: bool = False
    source: DataSource = DataSource.VENDOR
    message: str | None = None
    change_from_extreme: ExtremeChange = field(default_factory=ExtremeChange)
    quote: Quote | None = None


@dataclass(frozen=True)
class SignalChange:
    """A watched symbol whose verdict changed between two passes."""

    symbol: str
    mode: AnalysisMode
    previous: Signal
    current: Signal
    changed_at: datetime
