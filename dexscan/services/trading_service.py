import logging
from typing import Any, Dict, List, Optional

from dexscan.models.trade_models import TradingConfig

logger = logging.getLogger("trading_service")


class TradingService:
    """Operations exposed to the HTTP layer: scans, balances, positions, settings."""

    def __init__(self, market, scanner, executor, ledger, config_store, scan_results, venue,
                 autotrader=None, fee_percent: float = 0.2, min_score: int = 6,
                 snapshot_limit: int = 200, universe_size: int = 120):
        self.market = market
        self.scanner = scanner
        self.executor = executor
        self.ledger = ledger
        self.config_store = config_store
        self.scan_results = scan_results
        self.venue = venue
        self.autotrader = autotrader
        self.fee_percent = fee_percent
        self.min_score = min_score
        self.snapshot_limit = snapshot_limit
        self.universe_size = universe_size

    async def apply_mode(self) -> TradingConfig:
        """Push the persisted demo flag to the venue adapter."""
        cfg = await self.config_store.load()
        self.venue.demo = cfg.demo
        return cfg

    # ---------------- scans -----------------

    async def run_scan(self) -> List[Dict[str, Any]]:
        cfg = await self.config_store.load()
        universe = await self.market.universe(self.snapshot_limit, self.universe_size)
        signals = await self.scanner.scan(universe, self.min_score, cfg.result_count, cfg.tp_percent)
        await self.scan_results.save(signals)
        return [s.to_dict() for s in signals]

    async def last_scan_results(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in await self.scan_results.load()]

    # ---------------- balances & positions -----------------

    async def balance(self) -> Dict[str, Any]:
        balances, simulated = await self.executor.balances()
        return {"ok": True, "demo": simulated or self.venue.demo, "balance": balances}

    async def list_positions(self) -> List[Dict[str, Any]]:
        positions = await self.ledger.list_all()
        prices = await self.market.price_map() if any(p.is_open for p in positions) else {}
        out = []
        for p in positions:
            row = p.to_dict()
            if p.is_open:
                latest = prices.get(p.symbol) or p.entry_price or 0.0
                gross = p.qty * latest
                net = gross - gross * (self.fee_percent / 100)
                row.update({"latest_price": latest, "est_net": net, "unreal_pnl": net - (p.invested or 0.0)})
            out.append(row)
        return out

    async def open_position(self, symbol: str, percent: Optional[float] = None) -> Dict[str, Any]:
        cfg = await self.config_store.load()
        position = await self.executor.open_position(symbol, cfg, percent=percent)
        return {"ok": True, "trade": position.to_dict(), "simulated": position.simulated}

    async def close_position(self, trade_id: str, exit_price: Optional[float] = None) -> Dict[str, Any]:
        position = await self.executor.close_position(trade_id, exit_price=exit_price)
        return {"ok": True, "trade": position.to_dict()}

    # ---------------- config -----------------

    async def get_auto(self) -> bool:
        return (await self.config_store.load()).auto_enabled

    async def set_auto(self, enabled: bool) -> bool:
        return (await self.config_store.set_auto(enabled)).auto_enabled

    async def get_mode(self) -> bool:
        return (await self.config_store.load()).demo

    async def set_mode(self, demo: bool) -> bool:
        cfg = await self.config_store.set_demo(demo)
        self.venue.demo = cfg.demo
        return cfg.demo

    async def get_settings(self) -> Dict[str, Any]:
        return (await self.config_store.load()).settings_view()

    async def update_settings(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        return (await self.config_store.update_settings(changes)).settings_view()

    # ---------------- market overview -----------------

    async def top_coins(self, count: int = 10) -> List[Dict[str, Any]]:
        return await self.market.top_coins(count)

    async def header(self) -> List[Dict[str, Any]]:
        return await self.market.header_tickers()

    def status(self) -> Dict[str, Any]:
        return {
            "venue_credentials": self.venue.has_credentials,
            "demo": self.venue.demo,
            "autotrader": self.autotrader.status() if self.autotrader else None,
        }
