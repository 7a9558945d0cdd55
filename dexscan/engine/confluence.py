"""Multi-timeframe confluence scoring.

Reduces EMA/MACD/RSI/ATR/volume readings on a short (1h) and long (4h)
timeframe to one integer score, a reason list and entry/TP/SL prices.
"""
import logging
from dataclasses import asdict, dataclass, field
from typing import List, Optional, Sequence

from dexscan.engine.atr import compute_atr
from dexscan.engine.ema import EMAState
from dexscan.engine.macd import compute_macd
from dexscan.engine.rsi import compute_rsi
from dexscan.models.market_models import Candle
from dexscan.utils.numbers import MIN_PRICE, round8

logger = logging.getLogger("confluence")

MIN_SHORT_CANDLES = 50
MIN_LONG_CANDLES = 20
VOLUME_WINDOW = 20
VOLUME_SPIKE_RATIO = 1.5
RSI_NEUTRAL_LOW = 45.0
RSI_NEUTRAL_HIGH = 65.0
ATR_STOP_MULTIPLIER = 1.5
NOT_ENOUGH_CANDLES = "not enough candles"

# (points, reason) per condition, in evaluation order
LONG_EMA_TREND = (3, "4H EMA8>21")
LONG_MACD_POSITIVE = (2, "4H MACD+")
SHORT_EMA_TREND = (2, "1H EMA8>21")
SHORT_MACD_POSITIVE = (1, "1H MACD+")
RSI_NEUTRAL = (1, "RSI neutral")
VOLUME_SPIKE = (1, "Vol spike")


@dataclass
class IndicatorSnapshot:
    ema8_1h: Optional[float]
    ema21_1h: Optional[float]
    ema8_4h: Optional[float]
    ema21_4h: Optional[float]
    macd_hist_1h: Optional[float]
    macd_hist_4h: Optional[float]
    rsi_1h: Optional[float]
    atr_1h: Optional[float]
    last_close: float
    last_volume: float = 0.0
    avg_volume: float = 0.0

    def to_dict(self):
        return asdict(self)


@dataclass
class ScoreResult:
    ok: bool
    score: int = 0
    entry: float = 0.0
    take_profit: float = 0.0
    stop_loss: float = 0.0
    reasons: List[str] = field(default_factory=list)
    indicators: dict = field(default_factory=dict)
    reason: Optional[str] = None
    kind: Optional[str] = None


def build_snapshot(candles_1h: Sequence[Candle], candles_4h: Sequence[Candle]) -> IndicatorSnapshot:
    closes_1h = [c.close for c in candles_1h]
    closes_4h = [c.close for c in candles_4h]
    volumes_1h = [c.volume for c in candles_1h]

    ema_1h = EMAState("", "1h").initialize_from_closes(closes_1h)
    ema_4h = EMAState("", "4h").initialize_from_closes(closes_4h)
    macd_1h = compute_macd(closes_1h)
    macd_4h = compute_macd(closes_4h)
    window = volumes_1h[-VOLUME_WINDOW:]

    return IndicatorSnapshot(
        ema8_1h=ema_1h.short_ema,
        ema21_1h=ema_1h.long_ema,
        ema8_4h=ema_4h.short_ema,
        ema21_4h=ema_4h.long_ema,
        macd_hist_1h=macd_1h.histogram if macd_1h else None,
        macd_hist_4h=macd_4h.histogram if macd_4h else None,
        rsi_1h=compute_rsi(closes_1h, 14),
        atr_1h=compute_atr(candles_1h, 14),
        last_close=closes_1h[-1],
        last_volume=volumes_1h[-1],
        avg_volume=sum(window) / VOLUME_WINDOW,
    )


def _above(fast: Optional[float], slow: Optional[float]) -> bool:
    return fast is not None and slow is not None and fast > slow


def score_snapshot(snapshot: IndicatorSnapshot, tp_percent: float) -> ScoreResult:
    """Apply the point system to a snapshot. Each condition is independent."""
    checks = [
        (_above(snapshot.ema8_4h, snapshot.ema21_4h), LONG_EMA_TREND),
        (snapshot.macd_hist_4h is not None and snapshot.macd_hist_4h > 0, LONG_MACD_POSITIVE),
        (_above(snapshot.ema8_1h, snapshot.ema21_1h), SHORT_EMA_TREND),
        (snapshot.macd_hist_1h is not None and snapshot.macd_hist_1h > 0, SHORT_MACD_POSITIVE),
        (snapshot.rsi_1h is not None and RSI_NEUTRAL_LOW < snapshot.rsi_1h < RSI_NEUTRAL_HIGH, RSI_NEUTRAL),
        (snapshot.last_volume > VOLUME_SPIKE_RATIO * snapshot.avg_volume, VOLUME_SPIKE),
    ]
    score = 0
    reasons = []
    for matched, (points, reason) in checks:
        if matched:
            score += points
            reasons.append(reason)

    entry = float(snapshot.last_close)
    take_profit = round8(entry * (1 + tp_percent / 100.0))
    atr = snapshot.atr_1h or 0.0
    stop_loss = max(MIN_PRICE, entry - ATR_STOP_MULTIPLIER * atr)
    return ScoreResult(
        ok=True,
        score=score,
        entry=entry,
        take_profit=take_profit,
        stop_loss=stop_loss,
        reasons=reasons,
        indicators=snapshot.to_dict(),
    )


def score(candles_1h: Sequence[Candle], candles_4h: Sequence[Candle], tp_percent: float = 10.0) -> ScoreResult:
    """Score one symbol. Too little history is a valid `InsufficientData` outcome, not an error."""
    if len(candles_1h) < MIN_SHORT_CANDLES or len(candles_4h) < MIN_LONG_CANDLES:
        return ScoreResult(ok=False, reason=NOT_ENOUGH_CANDLES, kind="InsufficientData")
    return score_snapshot(build_snapshot(candles_1h, candles_4h), tp_percent)
