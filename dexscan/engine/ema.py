from dataclasses import dataclass
from typing import Optional, Sequence

import pandas as pd


def ema_series(values: Sequence[float], period: int) -> pd.Series:
    """EMA seeded with the SMA of the first `period` values, then alpha = 2/(period+1).

    The returned series starts at the seed, i.e. it has len(values) - period + 1 points.
    Empty when there is not enough data.
    """
    closes = pd.Series(values, dtype="float64").reset_index(drop=True)
    if period <= 0 or len(closes) < period:
        return pd.Series(dtype="float64")
    seed = closes.iloc[:period].mean()
    seeded = pd.concat([pd.Series([seed]), closes.iloc[period:]], ignore_index=True)
    return seeded.ewm(span=period, adjust=False).mean()


def last_ema(values: Sequence[float], period: int) -> Optional[float]:
    series = ema_series(values, period)
    return float(series.iloc[-1]) if len(series) else None


@dataclass
class EMAState:
    """Latest short/long EMA pair for one symbol and timeframe."""
    symbol: str
    timeframe: str
    short_period: int = 8
    long_period: int = 21
    short_ema: float = None
    long_ema: float = None

    def initialize_from_closes(self, closes: Sequence[float]):
        self.short_ema = last_ema(closes, self.short_period)
        self.long_ema = last_ema(closes, self.long_period)
        return self
