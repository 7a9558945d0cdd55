from dataclasses import dataclass
from typing import Optional, Sequence

from dexscan.engine.ema import ema_series


@dataclass
class MACDPoint:
    macd: float
    signal: float
    histogram: float


def compute_macd(closes: Sequence[float], fast: int = 12, slow: int = 26, signal: int = 9) -> Optional[MACDPoint]:
    """Latest MACD(fast, slow, signal) point, or None when history is too short.

    The MACD line starts where the slow EMA does; needs slow + signal - 1 closes.
    """
    slow_ema = ema_series(closes, slow)
    if not len(slow_ema):
        return None
    fast_ema = ema_series(closes, fast)
    macd_line = fast_ema.iloc[-len(slow_ema):].reset_index(drop=True) - slow_ema
    signal_line = ema_series(macd_line.tolist(), signal)
    if not len(signal_line):
        return None
    macd_last = float(macd_line.iloc[-1])
    signal_last = float(signal_line.iloc[-1])
    return MACDPoint(macd=macd_last, signal=signal_last, histogram=macd_last - signal_last)
