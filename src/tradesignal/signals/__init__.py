"""Signal classification from price, EMA, RSI and divergence."""

from tradesignal.signals.classifier import (
    NEUTRAL_SIGNAL,
    RULES,
    Rule,
    SignalContext,
    build_context,
    classify_signal,
    is_significant,
)
from tradesignal.signals.modes import MODE_THRESHOLDS, ModeThresholds, thresholds_for

__all__ = [
    "MODE_THRESHOLDS",
    "NEUTRAL_SIGNAL",
    "RULES",
    "ModeThresholds",
    "Rule",
    "SignalContext",
    "build_context",
    "classify_signal",
    "is_significant",
    "thresholds_for",
]
