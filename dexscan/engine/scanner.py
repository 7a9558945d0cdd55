import logging
import time
from typing import Iterable, List

from dexscan.engine.confluence import score
from dexscan.errors import DexScanError
from dexscan.models.market_models import Signal
from dexscan.services.metrics import scan_latency, scans_counter, signals_counter

logger = logging.getLogger("scanner")

STABLE_BASES = ("USDC", "BUSD", "DAI", "TUSD", "USDP", "USTC", "FRAX", "USDD", "FDUSD")


class SignalScanner:
    """Walks a symbol universe in order and collects signals above a score threshold.

    Each symbol costs two candle round-trips, so the walk stops as soon as
    `max_results` signals are held.
    """

    def __init__(self, market, quote_asset: str = "USDT", short_tf: str = "1h", long_tf: str = "4h",
                 short_limit: int = 200, long_limit: int = 100):
        self.market = market
        self.quote_asset = quote_asset
        self.short_tf = short_tf
        self.long_tf = long_tf
        self.short_limit = short_limit
        self.long_limit = long_limit

    def is_candidate(self, symbol: str) -> bool:
        if not symbol.endswith(self.quote_asset):
            return False
        base = symbol[: -len(self.quote_asset)]
        return bool(base) and base not in STABLE_BASES

    async def analyze(self, symbol: str, tp_percent: float):
        candles_short = await self.market.get_candles(symbol, self.short_tf, self.short_limit)
        candles_long = await self.market.get_candles(symbol, self.long_tf, self.long_limit)
        return score(candles_short, candles_long, tp_percent)

    async def scan(self, universe: Iterable[str], min_score: int = 6, max_results: int = 10,
                   tp_percent: float = 10.0) -> List[Signal]:
        started = time.monotonic()
        scans_counter.inc()
        results: List[Signal] = []
        for symbol in universe:
            if len(results) >= max_results:
                break
            if not self.is_candidate(symbol):
                continue
            try:
                outcome = await self.analyze(symbol, tp_percent)
            except DexScanError as e:
                logger.info("Skipping %s: %s (%s)", symbol, e.message, e.kind)
                continue
            except Exception as e:
                logger.warning("Skipping %s after unexpected error: %s", symbol, e)
                continue
            if not outcome.ok:
                logger.debug("Skipping %s: %s", symbol, outcome.reason)
                continue
            if outcome.score >= min_score:
                results.append(Signal(
                    symbol=symbol,
                    score=outcome.score,
                    entry=outcome.entry,
                    take_profit=outcome.take_profit,
                    stop_loss=outcome.stop_loss,
                    reasons=outcome.reasons,
                    indicators=outcome.indicators,
                ))
        results.sort(key=lambda s: s.score, reverse=True)
        signals_counter.inc(len(results))
        scan_latency.observe(time.monotonic() - started)
        logger.info("Scan finished: %d signals (min_score=%s)", len(results), min_score)
        return results
