import pytest

from dexscan.errors import PriceUnavailable
from dexscan.models.market_models import Candle, Signal
from dexscan.persistence.store import MemoryRecordStore
from dexscan.providers.venue_rest import VenueResult


class FakeMarket:
    """In-memory stand-in for MarketData."""

    def __init__(self, prices=None, universe=None, candles=None):
        self.prices = dict(prices or {})
        self._universe = list(universe or [])
        self.candles = candles or {}
        self.candle_calls = []

    async def get_candles(self, symbol, timeframe="1h", limit=200):
        self.candle_calls.append((symbol, timeframe))
        value = self.candles.get((symbol, timeframe), [])
        if isinstance(value, Exception):
            raise value
        return value

    async def universe(self, snapshot_limit=200, size=120):
        return self._universe[:size]

    async def price_map(self):
        return dict(self.prices)

    async def resolve_price(self, symbol, price_map=None):
        price = (price_map if price_map is not None else self.prices).get(symbol)
        if not price:
            raise PriceUnavailable(f"No price available for {symbol}")
        return float(price)

    async def top_coins(self, count=10):
        return [{"symbol": s, "price": p} for s, p in list(self.prices.items())[:count]]

    async def header_tickers(self, symbols=("BTCUSDT", "ETHUSDT", "BNBUSDT")):
        return [{"symbol": s, "price": self.prices.get(s)} for s in symbols]


class FakeVenue:
    """Venue adapter double; by default it has no keys, like a fresh install."""

    def __init__(self, balances=None, order_ok=False, order_kind="NoCredentials", demo=False):
        self.balances = balances
        self.order_ok = order_ok
        self.order_kind = order_kind
        self.demo = demo
        self.orders = []

    @property
    def has_credentials(self):
        return self.balances is not None

    async def get_balances(self):
        if self.balances is None:
            return VenueResult(ok=False, error="no keys", kind="NoCredentials")
        return VenueResult(ok=True, data=dict(self.balances), variant="fake")

    async def place_order(self, symbol, side, quantity, order_type="market", price=None):
        self.orders.append((symbol, side, quantity))
        if self.demo:
            return VenueResult(ok=False, error="Demo mode", kind="Demo")
        if self.order_ok:
            return VenueResult(ok=True, data={"order_id": f"o{len(self.orders)}"}, variant="fake")
        return VenueResult(ok=False, error="rejected", kind=self.order_kind)

    async def get_tickers_map(self):
        return {}


class FakeScanner:
    def __init__(self, signals=None):
        self.signals = list(signals or [])
        self.calls = 0

    async def scan(self, universe, min_score=6, max_results=10, tp_percent=10.0):
        self.calls += 1
        return self.signals[:max_results]


def make_signal(symbol, score=8, entry=10.0):
    return Signal(symbol=symbol, score=score, entry=entry, take_profit=entry * 1.1, stop_loss=entry * 0.9,
                  reasons=["4H EMA8>21"])


def make_candles(closes, volume=100.0, spread=0.5):
    return [Candle(ts=i * 3600_000, open=c, high=c + spread, low=c - spread, close=c, volume=volume)
            for i, c in enumerate(closes)]


@pytest.fixture
def store():
    return MemoryRecordStore()
