import asyncio

import pytest

from dexscan.errors import CapacityReached, InsufficientBalance, NotOpen, OrderFailed, PriceUnavailable
from dexscan.execution.execution import Executor
from dexscan.models.trade_models import TradingConfig
from dexscan.persistence.ledger import TradeLedger

from conftest import FakeMarket, FakeVenue


def _executor(store, venue=None, prices=None, wallet=10000.0):
    ledger = TradeLedger(store)
    market = FakeMarket(prices=prices or {"BTCUSDT": 100.0, "ETHUSDT": 50.0})
    return Executor(venue or FakeVenue(), ledger, market, fee_percent=0.2, sim_wallet_balance=wallet), ledger


@pytest.mark.asyncio
async def test_simulated_entry_without_keys(store):
    executor, ledger = _executor(store)
    pos = await executor.open_position("BTCUSDT", TradingConfig(invest_percent=2))
    assert pos.simulated
    assert pos.invested == pytest.approx(200.0)
    assert pos.qty == pytest.approx(2.0)
    assert pos.entry_price == 100.0
    assert await ledger.open_count() == 1


@pytest.mark.asyncio
async def test_simulated_wallet_shrinks_with_open_positions(store):
    executor, _ = _executor(store, wallet=1000.0)
    await executor.open_position("BTCUSDT", TradingConfig(), percent=50)
    assert await executor.quote_balance() == pytest.approx(500.0)
    balances, simulated = await executor.balances()
    assert simulated
    assert balances == {"USDT": pytest.approx(500.0)}


@pytest.mark.asyncio
async def test_live_entry_records_order(store):
    venue = FakeVenue(balances={"USDT": 1000.0}, order_ok=True)
    executor, _ = _executor(store, venue=venue)
    pos = await executor.open_position("ETHUSDT", TradingConfig(invest_percent=10, tp_percent=5))
    assert not pos.simulated
    assert pos.order_result == {"order_id": "o1"}
    assert pos.take_profit_price == pytest.approx(52.5)
    assert venue.orders == [("ETHUSDT", "buy", 2.0)]


@pytest.mark.asyncio
async def test_rejected_order_falls_back_to_simulation(store):
    venue = FakeVenue(balances={"USDT": 1000.0}, order_kind="VenueError")
    executor, _ = _executor(store, venue=venue)
    pos = await executor.open_position("ETHUSDT", TradingConfig())
    assert pos.simulated
    assert pos.order_result is None


@pytest.mark.asyncio
async def test_zero_balance_rejected(store):
    venue = FakeVenue(balances={"USDT": 0.0})
    executor, ledger = _executor(store, venue=venue)
    with pytest.raises(InsufficientBalance):
        await executor.open_position("BTCUSDT", TradingConfig())
    assert await ledger.open_count() == 0


@pytest.mark.asyncio
async def test_unknown_price_rejected(store):
    executor, _ = _executor(store)
    with pytest.raises(PriceUnavailable):
        await executor.open_position("NOPEUSDT", TradingConfig())


@pytest.mark.asyncio
async def test_concurrent_entries_respect_cap(store):
    executor, ledger = _executor(store)
    results = await asyncio.gather(
        *[executor.open_position("BTCUSDT", TradingConfig(), max_open=3) for _ in range(6)],
        return_exceptions=True,
    )
    assert await ledger.open_count() == 3
    assert sum(isinstance(r, CapacityReached) for r in results) == 3


@pytest.mark.asyncio
async def test_close_uses_explicit_exit_price(store):
    executor, _ = _executor(store)
    pos = await executor.open_position("BTCUSDT", TradingConfig(), percent=10)
    closed = await executor.close_position(pos.id, exit_price=110.0)
    assert closed.exit_price == 110.0
    assert closed.pnl == pytest.approx(10.0 * 110.0 * 0.998 - 1000.0)


@pytest.mark.asyncio
async def test_close_resolves_latest_price(store):
    executor, _ = _executor(store)
    pos = await executor.open_position("ETHUSDT", TradingConfig())
    executor.market.prices["ETHUSDT"] = 55.0
    closed = await executor.close_position(pos.id)
    assert closed.exit_price == 55.0


@pytest.mark.asyncio
async def test_double_close_only_applies_once(store):
    executor, ledger = _executor(store)
    pos = await executor.open_position("BTCUSDT", TradingConfig())
    results = await asyncio.gather(
        executor.close_position(pos.id, exit_price=101.0),
        executor.close_position(pos.id, exit_price=102.0),
        return_exceptions=True,
    )
    assert sum(isinstance(r, NotOpen) for r in results) == 1
    assert (await ledger.get(pos.id)).exit_price == 101.0


@pytest.mark.asyncio
async def test_live_sell_failure_keeps_position_open(store):
    venue = FakeVenue(balances={"USDT": 1000.0}, order_ok=True)
    executor, ledger = _executor(store, venue=venue)
    pos = await executor.open_position("BTCUSDT", TradingConfig())
    venue.order_ok = False
    venue.order_kind = "VenueError"
    with pytest.raises(OrderFailed):
        await executor.close_position(pos.id, exit_price=120.0)
    assert (await ledger.get(pos.id)).is_open


@pytest.mark.asyncio
async def test_live_position_closes_locally_in_demo_mode(store):
    venue = FakeVenue(balances={"USDT": 1000.0}, order_ok=True)
    executor, _ = _executor(store, venue=venue)
    pos = await executor.open_position("BTCUSDT", TradingConfig())
    venue.demo = True
    closed = await executor.close_position(pos.id, exit_price=120.0)
    assert not closed.is_open


@pytest.mark.asyncio
async def test_simulated_wallet_entry_sends_no_live_order(store):
    # order_ok would accept the buy, but the balance never came from the venue
    venue = FakeVenue(balances=None, order_ok=True)
    executor, ledger = _executor(store, venue=venue)
    pos = await executor.open_position("BTCUSDT", TradingConfig(invest_percent=5))
    assert venue.orders == []
    assert pos.simulated
    assert pos.order_result is None
    assert pos.id.startswith("sim_")
    assert pos.invested == pytest.approx(500.0)
    assert await ledger.open_count() == 1
