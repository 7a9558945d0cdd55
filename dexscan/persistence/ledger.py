import asyncio
import logging
import uuid
from dataclasses import replace
from typing import List, Optional

from dexscan.errors import NotFound, NotOpen
from dexscan.models.trade_models import Position, PositionStatus, utc_now_iso
from dexscan.persistence.store import RecordStore
from dexscan.utils.numbers import round8

logger = logging.getLogger("ledger")

TRADES = "trades"


class TradeLedger:
    """Owns the trades collection.

    The backing store only supports whole-collection writes, so every mutation
    runs read -> modify -> write under a single lock. A mutation is flushed to the
    store before the call returns.
    """

    def __init__(self, store: RecordStore, collection: str = TRADES):
        self.store = store
        self.collection = collection
        self._lock = asyncio.Lock()

    async def _load(self) -> List[Position]:
        rows = await self.store.read(self.collection, [])
        return [Position.from_dict(r) for r in rows or []]

    async def _save(self, positions: List[Position]) -> None:
        await self.store.write(self.collection, [p.to_dict() for p in positions])

    async def open(
        self,
        symbol: str,
        entry_price: float,
        invested: float,
        fee_percent: float,
        tp_percent: float,
        quantity: Optional[float] = None,
        auto_sell: bool = True,
        simulated: bool = True,
        order_result=None,
    ) -> Position:
        qty = round8(quantity if quantity is not None else invested / entry_price)
        position = Position(
            id=("sim_" if simulated else "t_") + uuid.uuid4().hex,
            symbol=symbol,
            qty=qty,
            entry_price=entry_price,
            invested=invested,
            buy_fee=invested * (fee_percent / 100),
            take_profit_price=round8(entry_price * (1 + tp_percent / 100)),
            status=PositionStatus.OPEN,
            created_at=utc_now_iso(),
            auto_sell=auto_sell,
            simulated=simulated,
            order_result=order_result,
        )
        async with self._lock:
            positions = await self._load()
            positions.append(position)
            await self._save(positions)
        logger.info("Opened position %s %s qty=%s entry=%s invested=%s simulated=%s",
                    position.id, symbol, qty, entry_price, invested, simulated)
        return position

    async def close(self, position_id: str, exit_price: float, fee_percent: float) -> Position:
        async with self._lock:
            positions = await self._load()
            idx = next((i for i, p in enumerate(positions) if p.id == position_id), None)
            if idx is None:
                raise NotFound(f"Trade {position_id} not found")
            current = positions[idx]
            if not current.is_open:
                raise NotOpen(f"Trade {position_id} is not open")

            gross = current.qty * exit_price
            sell_fee = gross * (fee_percent / 100)
            net = gross - sell_fee
            closed = replace(
                current,
                status=PositionStatus.CLOSED,
                exit_price=exit_price,
                sell_fee=sell_fee,
                gross_proceeds=gross,
                net_proceeds=net,
                pnl=net - current.invested,
                closed_at=utc_now_iso(),
            )
            positions[idx] = closed
            await self._save(positions)
        logger.info("Closed position %s %s exit=%s pnl=%.8f", closed.id, closed.symbol, exit_price, closed.pnl)
        return closed

    async def get(self, position_id: str) -> Position:
        for p in await self._load():
            if p.id == position_id:
                return p
        raise NotFound(f"Trade {position_id} not found")

    async def list_all(self) -> List[Position]:
        return await self._load()

    async def list_open(self) -> List[Position]:
        return [p for p in await self._load() if p.is_open]

    async def open_count(self) -> int:
        return len(await self.list_open())

    async def invested_open(self) -> float:
        return sum(p.invested or 0.0 for p in await self.list_open())
