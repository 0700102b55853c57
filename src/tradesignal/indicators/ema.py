"""Exponential Moving Average over a price series.

Uses the standard recursive formula seeded with the first price, so the
output is defined for every index and has the same length as the input.
"""


def compute_ema(values: list[float], period: int = 20) -> list[float]:
    """Compute the EMA of ``values`` (oldest first).

    Formula:
        alpha = 2 / (period + 1)
        EMA_0 = value_0
        EMA_t = alpha * value_t + (1 - alpha) * EMA_{t-1}

    Args:
        values: Ordered prices, oldest first.
        period: EMA period (20 for the EMA20 line).

    Returns:
        List of EMA values, same length as input. Empty list if input is empty.
    """
    if period < 1:
        raise ValueError(f"EMA period must be >= 1, got {period}")
    if not values:
        return []

    alpha = 2.0 / (period + 1)
    ema = [float(values[0])]
    for v in values[1:]:
        ema.append(alpha * v + (1.0 - alpha) * ema[-1])
    return ema
