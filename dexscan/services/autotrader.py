"""
Autonomous controller: timer-driven buy and take-profit monitor cycles.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from dexscan.errors import CapacityReached, DexScanError
from dexscan.models.trade_models import Position, TradingConfig
from dexscan.services.metrics import cycle_skips_counter

logger = logging.getLogger("autotrader")


class CycleGuard:
    """In-progress token for one cycle kind. A run requested while busy is skipped, not queued."""

    def __init__(self, name: str):
        self.name = name
        self._busy = False
        self.runs = 0
        self.skipped = 0

    @property
    def busy(self) -> bool:
        return self._busy

    async def run(self, fn: Callable[..., Awaitable[Any]], *args, **kwargs):
        """Returns (ran, result)."""
        if self._busy:
            self.skipped += 1
            cycle_skips_counter.labels(cycle=self.name).inc()
            logger.debug("%s cycle still running; tick skipped", self.name)
            return False, None
        self._busy = True
        try:
            self.runs += 1
            return True, await fn(*args, **kwargs)
        finally:
            self._busy = False


class AutoTrader:
    def __init__(
        self,
        scanner,
        executor,
        ledger,
        config_store,
        market,
        scan_results=None,
        buy_interval: float = 30.0,
        monitor_interval: float = 5.0,
        min_score: int = 6,
        snapshot_limit: int = 200,
        universe_size: int = 120,
    ):
        self.scanner = scanner
        self.executor = executor
        self.ledger = ledger
        self.config_store = config_store
        self.market = market
        self.scan_results = scan_results
        self.buy_interval = buy_interval
        self.monitor_interval = monitor_interval
        self.min_score = min_score
        self.snapshot_limit = snapshot_limit
        self.universe_size = universe_size

        self.buy_guard = CycleGuard("buy")
        self.monitor_guard = CycleGuard("monitor")
        self._running = False
        self._tickers: List[asyncio.Task] = []
        self._inflight: Set[asyncio.Task] = set()
        self._draining = False

    # ---------------- cycles -----------------

    async def buy_cycle(self, config: TradingConfig) -> Dict[str, Any]:
        if not config.auto_enabled:
            return {"status": "disabled", "opened": []}
        cap = config.max_concurrent
        if await self.ledger.open_count() >= cap:
            return {"status": "at_capacity", "opened": []}

        universe = await self.market.universe(self.snapshot_limit, self.universe_size)
        signals = await self.scanner.scan(universe, self.min_score, config.result_count, config.tp_percent)
        if self.scan_results is not None:
            await self.scan_results.save(signals)

        opened: List[Position] = []
        for signal in signals:
            if self._draining:
                logger.info("Shutdown requested; no further entries this cycle")
                break
            open_now = await self.ledger.list_open()
            if len(open_now) >= cap:
                break
            if any(p.symbol == signal.symbol for p in open_now):
                continue
            try:
                position = await self.executor.open_position(signal.symbol, config, max_open=cap)
            except CapacityReached:
                break
            except DexScanError as e:
                logger.warning("Auto-buy %s failed: %s (%s)", signal.symbol, e.message, e.kind)
                continue
            except Exception:
                logger.exception("Auto-buy %s failed", signal.symbol)
                continue
            opened.append(position)
            logger.info("Auto-buy opened %s %s score=%s", position.id, signal.symbol, signal.score)
        return {"status": "ran", "signals": len(signals), "opened": opened}

    async def monitor_cycle(self, config: Optional[TradingConfig] = None) -> List[Position]:
        candidates = [p for p in await self.ledger.list_open() if p.auto_sell is not False]
        if not candidates:
            return []
        prices = await self.market.price_map()
        closed: List[Position] = []
        for position in candidates:
            latest = prices.get(position.symbol) or 0.0
            if not latest or latest < position.take_profit_price:
                continue
            try:
                closed.append(await self.executor.close_position(position.id, exit_price=latest))
                logger.info("Take-profit hit for %s %s at %s", position.id, position.symbol, latest)
            except DexScanError as e:
                logger.warning("Auto-sell %s failed: %s (%s)", position.id, e.message, e.kind)
            except Exception:
                logger.exception("Auto-sell %s failed", position.id)
        return closed

    # ---------------- timer plumbing -----------------

    async def run_buy_tick(self):
        config = await self.config_store.load()
        return await self.buy_guard.run(self.buy_cycle, config)

    async def run_monitor_tick(self):
        config = await self.config_store.load()
        return await self.monitor_guard.run(self.monitor_cycle, config)

    async def _ticker(self, interval: float, tick: Callable[[], Awaitable[Any]], name: str):
        while self._running:
            task = asyncio.create_task(self._safe_tick(tick, name))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)
            await asyncio.sleep(interval)

    async def _safe_tick(self, tick, name: str):
        try:
            await tick()
        except Exception:
            logger.exception("%s tick failed", name)

    async def start(self):
        if self._running:
            logger.info("AutoTrader already running")
            return
        self._running = True
        self._tickers = [
            asyncio.create_task(self._ticker(self.buy_interval, self.run_buy_tick, "buy")),
            asyncio.create_task(self._ticker(self.monitor_interval, self.run_monitor_tick, "monitor")),
        ]
        logger.info("AutoTrader started buy_interval=%ss monitor_interval=%ss", self.buy_interval, self.monitor_interval)

    async def stop(self):
        """Stop the tickers, then let in-flight cycles finish.

        Cycle tasks are drained rather than cancelled: an entry or exit whose
        venue call is already out must still reach the ledger.
        """
        if not self._running:
            return
        self._running = False
        self._draining = True
        for task in self._tickers:
            task.cancel()
        await asyncio.gather(*self._tickers, return_exceptions=True)
        self._tickers = []
        inflight = list(self._inflight)
        if inflight:
            logger.info("AutoTrader waiting for %d in-flight cycle(s)", len(inflight))
            await asyncio.gather(*inflight, return_exceptions=True)
        self._inflight.clear()
        self._draining = False
        logger.info("AutoTrader stopped")

    def status(self) -> Dict[str, Any]:
        return {
            "running": self._running,
            "buy": {"busy": self.buy_guard.busy, "runs": self.buy_guard.runs, "skipped": self.buy_guard.skipped},
            "monitor": {"busy": self.monitor_guard.busy, "runs": self.monitor_guard.runs,
                        "skipped": self.monitor_guard.skipped},
        }
