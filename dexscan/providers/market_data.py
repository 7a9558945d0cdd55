"""Market-data providers: candle series, ranked universe snapshot and price lookups."""
import logging
from typing import Dict, List, Optional

from dexscan.errors import DexScanError, NoCredentials, PriceUnavailable, UpstreamError
from dexscan.models.market_models import Candle, CoinQuote
from dexscan.providers.fetch_client import RateLimitedFetchClient

logger = logging.getLogger("market_data")

# Coins the top-coins listing keeps (USD)
MIN_MARKET_CAP = 10_000_000
MIN_VOLUME = 50_000


class MarketData:
    def __init__(
        self,
        fetch_client: RateLimitedFetchClient,
        venue=None,
        *,
        cmc_key: str = "",
        cmc_base_url: str = "https://pro-api.coinmarketcap.com",
        candles_base_url: str = "https://data-api.binance.vision",
        quote_asset: str = "USDT",
        universe_ttl: float = 300,
    ):
        self.fetch_client = fetch_client
        self.venue = venue
        self.cmc_key = cmc_key
        self.cmc_base_url = cmc_base_url.rstrip("/")
        self.candles_base_url = candles_base_url.rstrip("/")
        self.quote_asset = quote_asset
        self.universe_ttl = universe_ttl

    async def get_candles(self, symbol: str, timeframe: str = "1h", limit: int = 200) -> List[Candle]:
        """Fetch klines oldest-first. Transient failures propagate to the caller."""
        url = f"{self.candles_base_url}/api/v3/klines"
        params = {"symbol": symbol, "interval": timeframe, "limit": int(limit)}
        rows = await self.fetch_client.fetch_json(url, params=params)
        candles = [Candle.from_kline(r) for r in rows or []]
        logger.debug("Fetched %d %s candles for %s", len(candles), timeframe, symbol)
        return candles

    async def get_market_snapshot(self, limit: int = 200) -> List[CoinQuote]:
        """Ranked coin listing (market-cap order), cached for the universe TTL."""
        if not self.cmc_key:
            raise NoCredentials("CMC_KEY missing")
        url = f"{self.cmc_base_url}/v1/cryptocurrency/listings/latest"
        body = await self.fetch_client.fetch_json(
            url,
            params={"start": 1, "limit": int(limit), "convert": "USD"},
            headers={"X-CMC_PRO_API_KEY": self.cmc_key, "Accept": "application/json"},
            cache_ttl=self.universe_ttl,
        )
        if not isinstance(body, dict):
            raise UpstreamError(f"unexpected listings payload: {type(body).__name__}")
        quotes = []
        for item in body.get("data") or []:
            usd = (item.get("quote") or {}).get("USD") or {}
            quotes.append(CoinQuote(
                symbol=(item.get("symbol") or "").upper() + self.quote_asset,
                price=float(usd.get("price") or 0.0),
                volume=float(usd.get("volume_24h") or 0.0),
                market_cap=float(usd.get("market_cap") or 0.0),
            ))
        return quotes

    async def _snapshot_or_empty(self, limit: int = 200) -> List[CoinQuote]:
        if not self.cmc_key:
            return []
        try:
            return await self.get_market_snapshot(limit)
        except DexScanError as e:
            logger.warning("Market snapshot unavailable: %s", e)
            return []

    async def _venue_tickers(self) -> Dict[str, float]:
        if self.venue is None:
            return {}
        return await self.venue.get_tickers_map()

    async def universe(self, snapshot_limit: int = 200, size: int = 120) -> List[str]:
        """Symbols to scan, in rank order; venue ticker list when no ranking is available."""
        snapshot = await self._snapshot_or_empty(snapshot_limit)
        if snapshot:
            symbols = [q.symbol for q in snapshot]
        else:
            symbols = list((await self._venue_tickers()).keys())[:snapshot_limit]
        return symbols[:size]

    async def price_map(self) -> Dict[str, float]:
        prices = {q.symbol: q.price for q in await self._snapshot_or_empty() if q.price}
        if not prices:
            prices = await self._venue_tickers()
        return prices

    async def resolve_price(self, symbol: str, price_map: Optional[Dict[str, float]] = None) -> float:
        """Latest price from the ranked snapshot, then the venue ticker list."""
        prices = price_map if price_map is not None else {q.symbol: q.price for q in await self._snapshot_or_empty()}
        price = prices.get(symbol) or 0.0
        if not price:
            price = (await self._venue_tickers()).get(symbol) or 0.0
        if not price or price <= 0:
            raise PriceUnavailable(f"No price available for {symbol}")
        return float(price)

    async def top_coins(self, count: int = 10) -> List[Dict]:
        snapshot = await self._snapshot_or_empty(100)
        if snapshot:
            liquid = [q for q in snapshot if q.market_cap > MIN_MARKET_CAP and q.volume > MIN_VOLUME]
            return [q.to_dict() for q in liquid[:count]]
        tickers = await self._venue_tickers()
        return [{"symbol": s, "price": p} for s, p in list(tickers.items())[:count]]

    async def header_tickers(self, symbols=("BTCUSDT", "ETHUSDT", "BNBUSDT")) -> List[Dict]:
        tickers = await self._venue_tickers()
        return [{"symbol": s, "price": tickers.get(s)} for s in symbols]
