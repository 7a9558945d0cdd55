from typing import Optional, Sequence

import pandas as pd

from dexscan.models.market_models import Candle


def true_range(candles: Sequence[Candle]) -> pd.Series:
    df = pd.DataFrame([c.to_dict() for c in candles], columns=["high", "low", "close"])
    prev_close = df["close"].shift(1)
    ranges = pd.concat([
        df["high"] - df["low"],
        (df["high"] - prev_close).abs(),
        (df["low"] - prev_close).abs(),
    ], axis=1)
    # first row has no previous close, so it is just high - low
    return ranges.max(axis=1, skipna=True)


def compute_atr(candles: Sequence[Candle], period: int = 14) -> Optional[float]:
    """Wilder ATR: SMA of the first `period` true ranges, then (prev*(n-1)+tr)/n."""
    if len(candles) < period:
        return None
    tr = true_range(candles)
    atr = float(tr.iloc[:period].mean())
    for value in tr.iloc[period:]:
        atr = (atr * (period - 1) + float(value)) / period
    return atr
