import asyncio
import logging
from typing import Dict, Optional, Tuple

from dexscan.errors import CapacityReached, InsufficientBalance, NotOpen, OrderFailed
from dexscan.models.trade_models import Position, TradingConfig
from dexscan.providers.venue_rest import VenueResult
from dexscan.services.metrics import order_failures_counter, orders_counter
from dexscan.utils.numbers import round8

logger = logging.getLogger("executor")


class Executor:
    """Sizes, places and records entries and exits.

    Entries are serialized by one lock so the concurrency-cap check and the
    ledger insert cannot interleave with another entry. A buy the venue does
    not accept (demo mode, no keys, all endpoint variants failing) is recorded
    as a simulated position instead. When the balance itself came from the
    simulated wallet no live order is sent at all.
    """

    def __init__(self, venue, ledger, market, fee_percent: float = 0.2,
                 sim_wallet_balance: float = 10000.0, quote_asset: str = "USDT"):
        self.venue = venue
        self.ledger = ledger
        self.market = market
        self.fee_percent = fee_percent
        self.sim_wallet_balance = sim_wallet_balance
        self.quote_asset = quote_asset
        self._entry_lock = asyncio.Lock()
        self._closing = set()

    async def balances(self) -> Tuple[Dict[str, float], bool]:
        """Venue balances, or the simulated wallet (start balance minus open invested)."""
        result = await self.venue.get_balances()
        if result.ok:
            return result.data, False
        used = await self.ledger.invested_open()
        return {self.quote_asset: self.sim_wallet_balance - used}, True

    async def quote_balance(self) -> float:
        balances, _ = await self.balances()
        return float(balances.get(self.quote_asset, 0.0) or 0.0)

    async def open_position(self, symbol: str, config: TradingConfig, percent: Optional[float] = None,
                            max_open: Optional[int] = None, price_map: Optional[Dict[str, float]] = None) -> Position:
        pct = float(percent or config.invest_percent)
        async with self._entry_lock:
            if max_open is not None and await self.ledger.open_count() >= max_open:
                raise CapacityReached(f"{max_open} positions already open")

            balances, wallet_simulated = await self.balances()
            balance = float(balances.get(self.quote_asset, 0.0) or 0.0)
            if balance <= 0:
                raise InsufficientBalance(f"Insufficient {self.quote_asset}")
            size = balance * (pct / 100)
            price = await self.market.resolve_price(symbol, price_map)
            qty = round8(size / price)
            if qty <= 0:
                raise InsufficientBalance(f"Order size too small for {symbol}")

            if wallet_simulated:
                placed = VenueResult(ok=False, error="sized from simulated wallet", kind="SimulatedWallet")
            else:
                placed = await self.venue.place_order(symbol, "buy", qty)
            if not placed.ok:
                if placed.kind not in ("Demo", "NoCredentials", "SimulatedWallet"):
                    order_failures_counter.labels(side="buy").inc()
                logger.info("Buy %s not executed on venue (%s); recording simulated position", symbol, placed.kind)

            position = await self.ledger.open(
                symbol,
                entry_price=price,
                invested=size,
                fee_percent=self.fee_percent,
                tp_percent=config.tp_percent,
                quantity=qty,
                auto_sell=config.auto_sell,
                simulated=not placed.ok,
                order_result=placed.data if placed.ok else None,
            )
        orders_counter.labels(side="buy", mode="sim" if position.simulated else "live").inc()
        return position

    async def close_position(self, position_id: str, exit_price: Optional[float] = None,
                             price_map: Optional[Dict[str, float]] = None) -> Position:
        if position_id in self._closing:
            raise NotOpen(f"Trade {position_id} is already being closed")
        self._closing.add(position_id)
        try:
            position = await self.ledger.get(position_id)
            if not position.is_open:
                raise NotOpen(f"Trade {position_id} is not open")
            price = float(exit_price) if exit_price else await self.market.resolve_price(position.symbol, price_map)

            if not position.simulated:
                placed = await self.venue.place_order(position.symbol, "sell", position.qty)
                if not placed.ok and placed.kind != "Demo":
                    order_failures_counter.labels(side="sell").inc()
                    raise OrderFailed(f"Sell of {position.symbol} failed: {placed.error}")

            closed = await self.ledger.close(position_id, price, self.fee_percent)
        finally:
            self._closing.discard(position_id)
        orders_counter.labels(side="sell", mode="sim" if closed.simulated else "live").inc()
        return closed
