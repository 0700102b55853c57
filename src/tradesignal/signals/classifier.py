"""Signal classification as an ordered rule table.

Each rule pairs a predicate over a ``SignalContext`` with a verdict. Rules are
evaluated top to bottom and the first match wins; when nothing matches the
verdict is HOLD ("Neutral signal").

Rule groups, in order:
1. RSI overbought and price falling: the SELL family.
2. RSI oversold and price rising: the BUY family.
3. RSI neutral: hidden divergence, trend confirmation, flat EMA,
   EMA diverging from price, price approaching EMA.
4. RSI outside the neutral zone without a matching reversal: plain
   price-vs-EMA momentum.
"""

from collections.abc import Callable
from dataclasses import dataclass

from tradesignal.models import (
    AnalysisMode,
    DivergenceKind,
    DivergenceResult,
    Signal,
    SignalLabel,
)
from tradesignal.signals.modes import ModeThresholds, thresholds_for

#: Minimum relative price move for rising/falling (0.1%).
PRICE_MOVE_THRESHOLD = 0.001
#: Minimum relative EMA move for EMA rising/falling (0.2%).
EMA_MOVE_THRESHOLD = 0.002
#: Relative EMA move below which the EMA counts as flat (0.1%).
EMA_FLAT_THRESHOLD = 0.001
#: Maximum price/EMA gap, relative to price, for "approaching" (2%).
APPROACH_BAND = 0.02

NEUTRAL_SIGNAL = Signal(SignalLabel.HOLD, "Neutral signal")


@dataclass(frozen=True)
class SignalContext:
    """Derived booleans the rules are written against."""

    thresholds: ModeThresholds
    divergence: DivergenceResult
    above_ema: bool
    rising: bool
    falling: bool
    approaching_ema: bool
    ema_rising: bool
    ema_falling: bool
    ema_flat: bool
    overbought: bool
    oversold: bool
    neutral: bool

    def has_divergence(self, kind: DivergenceKind) -> bool:
        """True when ``kind`` was detected above the mode's strength threshold."""
        return (
            self.divergence.kind == kind
            and self.divergence.strength > self.thresholds.divergence_threshold
        )


def build_context(
    price: float,
    ema: float,
    rsi: float,
    prev_price: float,
    prev_ema: float,
    divergence: DivergenceResult,
    thresholds: ModeThresholds,
) -> SignalContext:
    """Compute the rule inputs from the latest two samples."""
    gap = abs(price - ema)
    return SignalContext(
        thresholds=thresholds,
        divergence=divergence,
        above_ema=price > ema,
        rising=price > prev_price and (price - prev_price) > price * PRICE_MOVE_THRESHOLD,
        falling=price < prev_price and (prev_price - price) > price * PRICE_MOVE_THRESHOLD,
        approaching_ema=gap < abs(prev_price - prev_ema) and gap < price * APPROACH_BAND,
        ema_rising=ema > prev_ema and (ema - prev_ema) > ema * EMA_MOVE_THRESHOLD,
        ema_falling=ema < prev_ema and (prev_ema - ema) > ema * EMA_MOVE_THRESHOLD,
        ema_flat=abs(ema - prev_ema) < ema * EMA_FLAT_THRESHOLD,
        overbought=rsi > thresholds.rsi_overbought,
        oversold=rsi < thresholds.rsi_oversold,
        neutral=thresholds.rsi_oversold <= rsi <= thresholds.rsi_overbought,
    )


@dataclass(frozen=True)
class Rule:
    """One row of the decision table.

    ``rationale`` may reference ``{strength}`` (divergence strength).
    """

    name: str
    when: Callable[[SignalContext], bool]
    label: SignalLabel
    rationale: str

    def verdict(self, ctx: SignalContext) -> Signal:
        return Signal(
            self.label,
            self.rationale.format(strength=ctx.divergence.strength),
        )


def _sell_zone(c: SignalContext) -> bool:
    return c.overbought and c.falling


def _buy_zone(c: SignalContext) -> bool:
    return c.oversold and c.rising


def _extreme_zone(c: SignalContext) -> bool:
    return not c.neutral


RULES: tuple[Rule, ...] = (
    # 1. Overbought and falling
    Rule(
        "overbought_bearish_divergence",
        lambda c: _sell_zone(c) and c.has_divergence(DivergenceKind.BEARISH),
        SignalLabel.STRONG_SELL,
        "RSI overbought + price falling + bearish divergence ({strength:.1f}%)",
    ),
    Rule(
        "overbought_above_ema",
        lambda c: _sell_zone(c) and c.above_ema,
        SignalLabel.SELL,
        "RSI overbought + price falling + above EMA",
    ),
    Rule(
        "overbought_below_ema",
        _sell_zone,
        SignalLabel.WEAK_SELL,
        "RSI overbought + price falling + below EMA",
    ),
    # 2. Oversold and rising
    Rule(
        "oversold_bullish_divergence",
        lambda c: _buy_zone(c) and c.has_divergence(DivergenceKind.BULLISH),
        SignalLabel.STRONG_BUY,
        "RSI oversold + price rising + bullish divergence ({strength:.1f}%)",
    ),
    Rule(
        "oversold_below_ema",
        lambda c: _buy_zone(c) and not c.above_ema,
        SignalLabel.BUY,
        "RSI oversold + price rising + below EMA",
    ),
    Rule(
        "oversold_above_ema",
        _buy_zone,
        SignalLabel.WEAK_BUY,
        "RSI oversold + price rising + above EMA",
    ),
    # 3. Neutral RSI
    Rule(
        "hidden_bullish_divergence",
        lambda c: c.neutral and c.has_divergence(DivergenceKind.HIDDEN_BULLISH),
        SignalLabel.STRONG_BUY,
        "Hidden bullish divergence ({strength:.1f}%)",
    ),
    Rule(
        "hidden_bearish_divergence",
        lambda c: c.neutral and c.has_divergence(DivergenceKind.HIDDEN_BEARISH),
        SignalLabel.STRONG_SELL,
        "Hidden bearish divergence ({strength:.1f}%)",
    ),
    Rule(
        "uptrend_confirmed",
        lambda c: c.neutral and c.above_ema and c.rising and c.ema_rising,
        SignalLabel.STRONG_BUY,
        "Price & EMA rising + above EMA (strong trend)",
    ),
    Rule(
        "downtrend_confirmed",
        lambda c: c.neutral and not c.above_ema and c.falling and c.ema_falling,
        SignalLabel.STRONG_SELL,
        "Price & EMA falling + below EMA (strong trend)",
    ),
    Rule(
        "rising_over_flat_ema",
        lambda c: c.neutral and c.above_ema and c.rising and c.ema_flat,
        SignalLabel.BUY,
        "Price rising + above EMA + EMA flat",
    ),
    Rule(
        "falling_under_flat_ema",
        lambda c: c.neutral and not c.above_ema and c.falling and c.ema_flat,
        SignalLabel.SELL,
        "Price falling + below EMA + EMA flat",
    ),
    Rule(
        "stalling_over_rising_ema",
        lambda c: c.neutral and c.above_ema and not c.rising and c.ema_rising,
        SignalLabel.HOLD,
        "Price above EMA but not rising + EMA rising",
    ),
    Rule(
        "rising_under_falling_ema",
        lambda c: c.neutral and not c.above_ema and c.rising and c.ema_falling,
        SignalLabel.WEAK_BUY,
        "Price rising + below EMA + EMA falling",
    ),
    Rule(
        "approaching_rising_ema",
        lambda c: c.neutral and c.approaching_ema and c.ema_rising,
        SignalLabel.BUY,
        "Price approaching EMA + EMA rising",
    ),
    Rule(
        "approaching_falling_ema",
        lambda c: c.neutral and c.approaching_ema and c.ema_falling,
        SignalLabel.SELL,
        "Price approaching EMA + EMA falling",
    ),
    # 4. RSI outside the neutral zone, no reversal confirmation
    Rule(
        "momentum_above_ema",
        lambda c: _extreme_zone(c) and c.above_ema and c.rising,
        SignalLabel.STRONG_BUY,
        "Price above EMA and rising",
    ),
    Rule(
        "momentum_below_ema",
        lambda c: _extreme_zone(c) and not c.above_ema and c.falling,
        SignalLabel.STRONG_SELL,
        "Price below EMA and falling",
    ),
    Rule(
        "stalling_above_ema",
        lambda c: _extreme_zone(c) and c.above_ema and not c.rising,
        SignalLabel.HOLD,
        "Price above EMA but not rising",
    ),
    Rule(
        "recovering_below_ema",
        lambda c: _extreme_zone(c) and not c.above_ema and c.rising,
        SignalLabel.WEAK_BUY,
        "Price below EMA but rising",
    ),
)


def classify_signal(
    price: float | None,
    ema: float | None,
    rsi: float | None,
    prev_price: float | None,
    prev_ema: float | None,
    divergence: DivergenceResult | None = None,
    mode: AnalysisMode | str = AnalysisMode.CONSERVATIVE,
) -> Signal:
    """Map the latest price/indicator sample to a Signal.

    Any missing input (typically the first observation, with no previous
    sample) degrades to the simplest rule: BUY above the EMA, SELL otherwise.

    Args:
        price: Latest price.
        ema: Latest EMA value.
        rsi: Latest RSI value.
        prev_price: Price one sample earlier.
        prev_ema: EMA one sample earlier.
        divergence: Divergence over the trailing window. None = no divergence.
        mode: Threshold set to apply.

    Returns:
        The verdict of the first matching rule, or HOLD.
    """
    if None in (price, ema, rsi, prev_price, prev_ema):
        if price is not None and ema is not None and price > ema:
            return Signal(SignalLabel.BUY, "Insufficient data: price above EMA")
        return Signal(SignalLabel.SELL, "Insufficient data: price not above EMA")

    ctx = build_context(
        price,
        ema,
        rsi,
        prev_price,
        prev_ema,
        divergence or DivergenceResult(),
        thresholds_for(mode),
    )
    for rule in RULES:
        if rule.when(ctx):
            return rule.verdict(ctx)
    return NEUTRAL_SIGNAL


def is_significant(label: SignalLabel) -> bool:
    """True for verdicts worth notifying about (not HOLD, not WEAK_*)."""
    return label not in (SignalLabel.HOLD, SignalLabel.WEAK_BUY, SignalLabel.WEAK_SELL)
