import httpx
import pytest

from dexscan.errors import NoCredentials, PriceUnavailable, UpstreamError
from dexscan.providers.fetch_client import RateLimitedFetchClient
from dexscan.providers.market_data import MarketData

from conftest import FakeVenue

LISTINGS = {"data": [
    {"symbol": "BTC", "quote": {"USD": {"price": 65000.0, "volume_24h": 3e10, "market_cap": 1.2e12}}},
    {"symbol": "ETH", "quote": {"USD": {"price": 3200.0, "volume_24h": 1e10, "market_cap": 4e11}}},
    {"symbol": "TINY", "quote": {"USD": {"price": 0.01, "volume_24h": 1000.0, "market_cap": 5e5}}},
]}

KLINES = [
    [1700000000000, "1.0", "1.5", "0.9", "1.2", "1000", 1700003599999, "0", 10, "0", "0", "0"],
    [1700003600000, "1.2", "1.3", "1.1", "1.25", "800", 1700007199999, "0", 8, "0", "0", "0"],
]


class TickerVenue(FakeVenue):
    def __init__(self, tickers):
        super().__init__()
        self.tickers = tickers

    async def get_tickers_map(self):
        return dict(self.tickers)


def _market(cmc_key="k", venue=None):
    calls = []

    def handler(request):
        calls.append(request)
        if request.url.path.endswith("/listings/latest"):
            assert request.headers["X-CMC_PRO_API_KEY"] == cmc_key
            return httpx.Response(200, json=LISTINGS)
        if request.url.path == "/api/v3/klines":
            return httpx.Response(200, json=KLINES)
        return httpx.Response(404)

    fc = RateLimitedFetchClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    market = MarketData(fc, venue, cmc_key=cmc_key, cmc_base_url="https://cmc.test",
                        candles_base_url="https://candles.test")
    return market, calls


@pytest.mark.asyncio
async def test_candles_parsed_oldest_first():
    market, calls = _market()
    candles = await market.get_candles("BTCUSDT", "1h", 2)
    assert [c.close for c in candles] == [1.2, 1.25]
    assert candles[0].ts == 1700000000000
    assert candles[1].volume == 800.0
    assert calls[0].url.params["interval"] == "1h"


@pytest.mark.asyncio
async def test_snapshot_requires_key():
    market, _ = _market(cmc_key="")
    with pytest.raises(NoCredentials):
        await market.get_market_snapshot()


@pytest.mark.asyncio
async def test_universe_uses_cached_snapshot():
    market, calls = _market()
    first = await market.universe(200, 2)
    second = await market.universe(200, 2)
    assert first == second == ["BTCUSDT", "ETHUSDT"]
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_universe_falls_back_to_venue_tickers():
    venue = TickerVenue({"SOLUSDT": 150.0, "XRPUSDT": 0.5})
    market, calls = _market(cmc_key="", venue=venue)
    assert await market.universe(200, 120) == ["SOLUSDT", "XRPUSDT"]
    assert calls == []


@pytest.mark.asyncio
async def test_resolve_price_prefers_snapshot_then_venue():
    venue = TickerVenue({"SOLUSDT": 150.0})
    market, _ = _market(venue=venue)
    assert await market.resolve_price("ETHUSDT") == 3200.0
    assert await market.resolve_price("SOLUSDT") == 150.0
    with pytest.raises(PriceUnavailable):
        await market.resolve_price("NOPEUSDT")


@pytest.mark.asyncio
async def test_top_coins_filters_illiquid():
    market, _ = _market()
    coins = await market.top_coins(10)
    assert [c["symbol"] for c in coins] == ["BTCUSDT", "ETHUSDT"]
    assert coins[0]["marketCap"] == 1.2e12


@pytest.mark.asyncio
async def test_header_tickers():
    market, _ = _market(venue=TickerVenue({"BTCUSDT": 65000.0, "ETHUSDT": 3200.0}))
    header = await market.header_tickers()
    assert header == [
        {"symbol": "BTCUSDT", "price": 65000.0},
        {"symbol": "ETHUSDT", "price": 3200.0},
        {"symbol": "BNBUSDT", "price": None},
    ]


@pytest.mark.asyncio
async def test_html_listing_degrades_to_venue_prices():
    def handler(request):
        return httpx.Response(200, text="<html>Cloudflare</html>")

    fc = RateLimitedFetchClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    market = MarketData(fc, None, cmc_key="k", cmc_base_url="https://cmc.test")
    assert await market.price_map() == {}
    with pytest.raises(PriceUnavailable):
        await market.resolve_price("BTCUSDT")


@pytest.mark.asyncio
async def test_non_object_listing_is_an_upstream_error():
    def handler(request):
        return httpx.Response(200, json=["not", "an", "object"])

    fc = RateLimitedFetchClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    market = MarketData(fc, None, cmc_key="k", cmc_base_url="https://cmc.test")
    with pytest.raises(UpstreamError):
        await market.get_market_snapshot()
