import pytest
from fastapi.testclient import TestClient

from dexscan.app import app, record_startup_state, status_for
from dexscan.api.dependencies.services import service_registry
from dexscan.api.state.startup import (
    MAX_STARTUP_EVENTS,
    clear_startup_events,
    get_startup_events,
    record_startup_event,
)
from dexscan.errors import CapacityReached, FetchTimeout, NotFound, OrderFailed
from dexscan.execution.execution import Executor
from dexscan.models.trade_models import TradingConfig
from dexscan.persistence.config_store import ConfigStore
from dexscan.persistence.ledger import TradeLedger
from dexscan.persistence.scan_results import ScanResultsStore
from dexscan.persistence.store import MemoryRecordStore
from dexscan.providers.fetch_client import RateLimitedFetchClient
from dexscan.providers.market_data import MarketData
from dexscan.services.autotrader import AutoTrader
from dexscan.services.trading_service import TradingService

from conftest import FakeMarket, FakeScanner, FakeVenue, make_signal

# The client is not entered as a context manager, so the lifespan (and the
# live component graph it builds) never runs; a fake-backed service is
# registered instead.
client = TestClient(app)


@pytest.fixture(autouse=True)
def trading():
    store = MemoryRecordStore()
    ledger = TradeLedger(store)
    market = FakeMarket(prices={"BTCUSDT": 100.0, "ETHUSDT": 50.0}, universe=["BTCUSDT", "ETHUSDT"])
    venue = FakeVenue()
    executor = Executor(venue, ledger, market, fee_percent=0.2)
    service = TradingService(market, FakeScanner([make_signal("BTCUSDT", score=9)]), executor, ledger,
                             ConfigStore(store), ScanResultsStore(store), venue)
    service_registry.register("trading", service)
    yield service
    service_registry.register("trading", None)


def test_root_lists_services():
    r = client.get("/")
    assert r.status_code == 200
    body = r.json()
    assert body.get("name") == "DexScan"
    assert "trading" in body["services"]


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_startup_log_endpoint():
    r = client.get("/startup/log")
    assert r.status_code == 200
    assert isinstance(r.json()["events"], list)


def test_scan_run_and_results():
    r = client.post("/scan/run")
    assert r.status_code == 200
    assert [s["symbol"] for s in r.json()] == ["BTCUSDT"]
    r = client.get("/scan/results")
    assert r.json()[0]["score"] == 9


def test_balance_simulated_without_keys():
    r = client.get("/balance")
    assert r.status_code == 200
    body = r.json()
    assert body["demo"] is True
    assert body["balance"]["USDT"] == 10000.0


def test_buy_then_sell_round_trip():
    r = client.post("/trade/buy", json={"symbol": "btcusdt", "percent": 10})
    assert r.status_code == 200
    trade = r.json()["trade"]
    assert trade["symbol"] == "BTCUSDT"
    assert trade["status"] == "OPEN"
    assert r.json()["simulated"] is True

    trades = client.get("/trades").json()
    assert trades[0]["latest_price"] == 100.0
    assert "unreal_pnl" in trades[0]

    r = client.post("/trade/sell", json={"trade_id": trade["id"], "exit_price": 110})
    assert r.status_code == 200
    closed = r.json()["trade"]
    assert closed["status"] == "CLOSED"
    assert closed["pnl"] == pytest.approx(10 * 110 * 0.998 - 1000)

    r = client.post("/trade/sell", json={"trade_id": trade["id"]})
    assert r.status_code == 400
    assert r.json()["error"] == "NotOpen"


def test_sell_unknown_trade_is_404():
    r = client.post("/trade/sell", json={"trade_id": "nope"})
    assert r.status_code == 404
    assert r.json() == {"error": "NotFound", "message": "Trade nope not found"}


def test_buy_unpriced_symbol_is_502():
    r = client.post("/trade/buy", json={"symbol": "GHOSTUSDT"})
    assert r.status_code == 502
    assert r.json()["error"] == "PriceUnavailable"


def test_buy_rejects_bad_percent():
    r = client.post("/trade/buy", json={"symbol": "BTCUSDT", "percent": 0})
    assert r.status_code == 422


def test_auto_and_mode_toggles(trading):
    assert client.get("/auto").json() == {"auto": False}
    assert client.post("/auto", json={"enabled": True}).json() == {"ok": True, "auto": True}
    assert client.get("/auto").json() == {"auto": True}

    assert client.post("/mode", json={"demo": True}).json() == {"ok": True, "demo": True}
    assert trading.venue.demo is True
    assert client.get("/mode").json() == {"demo": True}


def test_settings_update_and_validation():
    r = client.post("/settings", json={"tp_percent": 15, "max_concurrent": 4})
    assert r.status_code == 200
    assert r.json()["settings"]["tp_percent"] == 15
    assert client.get("/settings").json()["max_concurrent"] == 4

    r = client.post("/settings", json={"invest_percent": 500})
    assert r.status_code == 400
    assert r.json()["error"] == "InvalidSettings"


def test_coins_and_header():
    assert client.get("/coins").json()[0]["symbol"] == "BTCUSDT"
    header = client.get("/header").json()
    assert [h["symbol"] for h in header] == ["BTCUSDT", "ETHUSDT", "BNBUSDT"]


def test_missing_service_is_503():
    service_registry.register("trading", None)
    r = client.get("/trades")
    assert r.status_code == 503


def test_error_status_mapping():
    assert status_for(NotFound("x")) == 404
    assert status_for(CapacityReached("x")) == 400
    assert status_for(OrderFailed("x")) == 502
    assert status_for(FetchTimeout("x")) == 503


@pytest.fixture
def startup_log():
    clear_startup_events()
    yield
    clear_startup_events()


def test_startup_state_flags_fallbacks(startup_log, trading):
    market = MarketData(RateLimitedFetchClient(), None, cmc_key="")
    created = {"store": MemoryRecordStore(), "venue": FakeVenue(), "market": market}
    record_startup_state(created, TradingConfig(demo=True, max_concurrent=4))

    events = client.get("/startup/log").json()
    assert [e["kind"] for e in events["events"]] == ["store", "venue", "market_data", "mode"]
    assert events["degraded"] == ["market_data", "venue"]

    store_event = client.get("/startup/log", params={"kind": "store"}).json()["events"]
    assert store_event[0]["backend"] == "memory"
    mode = client.get("/startup/log", params={"kind": "mode"}).json()["events"][0]
    assert mode["demo"] is True
    assert mode["auto_enabled"] is False
    assert mode["max_concurrent"] == 4
    assert mode["level"] == "info"

    status = client.get("/status").json()
    assert status["degraded"] == ["market_data", "venue"]
    assert status["services"]["trading"]["venue_credentials"] is False


def test_startup_log_is_bounded(startup_log):
    for i in range(MAX_STARTUP_EVENTS + 10):
        record_startup_event("auto_start", "tick", n=i)
    events = get_startup_events(limit=MAX_STARTUP_EVENTS + 10)
    assert len(events) == MAX_STARTUP_EVENTS
    assert events[0]["n"] == 10
    assert get_startup_events(limit=0) == []


def test_autotrader_status_route():
    r = client.get("/auto/status")
    assert r.status_code == 503
    assert r.json()["error"] == "ServiceUnavailable"

    service_registry.register("autotrader", AutoTrader(FakeScanner(), None, None, None, FakeMarket()))
    try:
        body = client.get("/auto/status").json()
        assert body["running"] is False
        assert body["buy"] == {"busy": False, "runs": 0, "skipped": 0}
    finally:
        service_registry.register("autotrader", None)
