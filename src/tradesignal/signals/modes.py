"""Threshold sets for each analysis mode."""

from dataclasses import dataclass

from tradesignal.models import AnalysisMode


@dataclass(frozen=True)
class ModeThresholds:
    """RSI zone bounds and the minimum divergence strength that counts."""

    rsi_overbought: float
    rsi_oversold: float
    divergence_threshold: float


MODE_THRESHOLDS: dict[AnalysisMode, ModeThresholds] = {
    AnalysisMode.CONSERVATIVE: ModeThresholds(
        rsi_overbought=75.0, rsi_oversold=25.0, divergence_threshold=40.0
    ),
    AnalysisMode.NORMAL: ModeThresholds(
        rsi_overbought=70.0, rsi_oversold=30.0, divergence_threshold=30.0
    ),
}


def thresholds_for(mode: AnalysisMode | str) -> ModeThresholds:
    """Look up the thresholds for ``mode`` (enum member or its string value)."""
    return MODE_THRESHOLDS[AnalysisMode(mode)]
