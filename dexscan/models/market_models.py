"""
Market data models: candles, ranked universe rows and scan signals.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass(frozen=True)
class Candle:
    """One OHLCV sample; sequences are ordered oldest-first."""
    ts: int
    open: float
    high: float
    low: float
    close: float
    volume: float

    @classmethod
    def from_kline(cls, row: List[Any]) -> "Candle":
        # Binance kline row: [openTime, open, high, low, close, volume, ...]
        return cls(
            ts=int(row[0]),
            open=float(row[1]),
            high=float(row[2]),
            low=float(row[3]),
            close=float(row[4]),
            volume=float(row[5]),
        )

    def to_dict(self):
        return {
            "ts": self.ts,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume,
        }


@dataclass
class CoinQuote:
    """Row of the ranked universe snapshot."""
    symbol: str
    price: float
    volume: float = 0.0
    market_cap: float = 0.0

    def to_dict(self):
        return {
            "symbol": self.symbol,
            "price": self.price,
            "volume": self.volume,
            "marketCap": self.market_cap,
        }


@dataclass
class Signal:
    """Scored trading candidate produced by one scan pass."""
    symbol: str
    score: int
    entry: float
    take_profit: float
    stop_loss: float
    reasons: List[str] = field(default_factory=list)
    indicators: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {
            "symbol": self.symbol,
            "score": self.score,
            "entry": self.entry,
            "take_profit": self.take_profit,
            "stop_loss": self.stop_loss,
            "reasons": list(self.reasons),
            "indicators": dict(self.indicators),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Signal":
        return cls(
            symbol=data["symbol"],
            score=int(data["score"]),
            entry=float(data["entry"]),
            take_profit=float(data["take_profit"]),
            stop_loss=float(data["stop_loss"]),
            reasons=list(data.get("reasons") or []),
            indicators=dict(data.get("indicators") or {}),
        )
