"""
Trade records and the runtime trading configuration.
"""
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class PositionStatus(str, Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Position:
    """A tracked trade. OPEN until a single close turns it CLOSED for good."""
    id: str
    symbol: str
    qty: float
    entry_price: float
    invested: float
    buy_fee: float
    take_profit_price: float
    status: PositionStatus = PositionStatus.OPEN
    created_at: str = ""
    auto_sell: bool = True
    simulated: bool = True
    order_result: Optional[Dict[str, Any]] = None
    exit_price: Optional[float] = None
    sell_fee: Optional[float] = None
    gross_proceeds: Optional[float] = None
    net_proceeds: Optional[float] = None
    pnl: Optional[float] = None
    closed_at: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.status == PositionStatus.OPEN

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["status"] = PositionStatus(kwargs.get("status", PositionStatus.OPEN))
        return cls(**kwargs)


@dataclass
class TradingConfig:
    """Process-wide tunables, persisted after every mutation."""
    auto_enabled: bool = False
    demo: bool = False
    tp_percent: float = 10.0
    invest_percent: float = 2.0
    result_count: int = 10
    max_concurrent: int = 10
    auto_sell: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: "TradingConfig" = None) -> "TradingConfig":
        base = asdict(defaults or cls())
        base.update({k: v for k, v in (data or {}).items() if k in base})
        return cls(**base)

    def settings_view(self) -> Dict[str, Any]:
        return {
            "tp_percent": self.tp_percent,
            "invest_percent": self.invest_percent,
            "result_count": self.result_count,
            "max_concurrent": self.max_concurrent,
            "auto_sell": self.auto_sell,
        }
