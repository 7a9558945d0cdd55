"""RSI calculation utilities.

Wilder-style RSI: the first average gain/loss is a simple mean over `period`
changes, later values use Wilder smoothing.
"""
from typing import List, Optional, Sequence

import pandas as pd


def compute_rsi_series(closes: Sequence[float], period: int = 14) -> Optional[List[float]]:
    """Compute the RSI series. Returns None if insufficient data (need period + 1 closes)."""
    if len(closes) < period + 1:
        return None
    changes = pd.Series(closes, dtype="float64").diff().iloc[1:].reset_index(drop=True)
    gains = changes.clip(lower=0.0)
    losses = (-changes).clip(lower=0.0)

    avg_gain = gains.iloc[:period].mean()
    avg_loss = losses.iloc[:period].mean()
    rsi_values = [_rsi(avg_gain, avg_loss)]
    for gain, loss in zip(gains.iloc[period:], losses.iloc[period:]):
        avg_gain, avg_loss, rsi = compute_rsi_wilder_stream(avg_gain, avg_loss, gain - loss, period)
        rsi_values.append(rsi)
    return rsi_values


def compute_rsi(closes: Sequence[float], period: int = 14) -> Optional[float]:
    series = compute_rsi_series(closes, period)
    return series[-1] if series else None


def _rsi(avg_gain: float, avg_loss: float) -> float:
    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1 + rs))


def compute_rsi_wilder_stream(prev_avg_gain: float, prev_avg_loss: float, change: float, period: int):
    """Advance Wilder averages by one price change.

    Returns:
        tuple: (new_avg_gain, new_avg_loss, rsi_value)
    """
    gain = max(change, 0.0)
    loss = max(-change, 0.0)
    avg_gain = (prev_avg_gain * (period - 1) + gain) / period
    avg_loss = (prev_avg_loss * (period - 1) + loss) / period
    return avg_gain, avg_loss, _rsi(avg_gain, avg_loss)
