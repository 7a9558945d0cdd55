import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dexscan.config import settings

from dexscan.engine.scanner import SignalScanner
from dexscan.errors import DexScanError
from dexscan.execution.execution import Executor
from dexscan.models.trade_models import TradingConfig
from dexscan.persistence.config_store import ConfigStore
from dexscan.persistence.ledger import TradeLedger
from dexscan.persistence.scan_results import ScanResultsStore
from dexscan.persistence.store import build_store
from dexscan.providers.fetch_client import RateLimitedFetchClient
from dexscan.providers.market_data import MarketData
from dexscan.providers.venue_rest import VenueRest
from dexscan.services.autotrader import AutoTrader
from dexscan.services.trading_service import TradingService
from dexscan.api.router import api_router
from dexscan.api.dependencies.services import service_registry
from dexscan.utils.logging_config import configure_logging
from dexscan.api.state.startup import record_startup_event

logger = logging.getLogger("app")

ERROR_STATUS = {
    "NotFound": 404,
    "NotOpen": 400,
    "InsufficientBalance": 400,
    "CapacityReached": 400,
    "InvalidSettings": 400,
    "InsufficientData": 400,
    "NoCredentials": 400,
    "PriceUnavailable": 502,
    "OrderFailed": 502,
    "ServiceUnavailable": 503,
}


def status_for(error: DexScanError) -> int:
    if error.kind in ERROR_STATUS:
        return ERROR_STATUS[error.kind]
    # remaining kinds are TransientError subclasses or unclassified
    return 503


def default_trading_config() -> TradingConfig:
    return TradingConfig(
        auto_enabled=False,
        demo=settings.VENUE_DEMO,
        tp_percent=settings.TP_PERCENT,
        invest_percent=settings.PERCENT_PER_TRADE,
        result_count=settings.RESULT_COUNT,
        max_concurrent=settings.MAX_CONCURRENT,
        auto_sell=settings.AUTO_SELL_DEFAULT,
    )


def _bootstrap_services():
    """Build the component graph from settings and register it."""
    store = build_store(settings.STORE_URL, settings.DATA_DIR)
    fetch_client = RateLimitedFetchClient(
        timeout_s=settings.HTTP_TIMEOUT_SEC,
        max_attempts=settings.FETCH_MAX_ATTEMPTS,
        backoff_base_s=settings.FETCH_BACKOFF_BASE_SEC,
    )
    venue = VenueRest(
        api_key=settings.VENUE_API_KEY,
        api_secret=settings.VENUE_API_SECRET,
        passphrase=settings.VENUE_API_PASSPHRASE,
        base_url=settings.VENUE_BASE_URL,
        demo=settings.VENUE_DEMO,
        timeout_s=settings.VENUE_TIMEOUT_SEC,
        order_timeout_s=settings.VENUE_ORDER_TIMEOUT_SEC,
    )
    market = MarketData(
        fetch_client,
        venue,
        cmc_key=settings.CMC_KEY,
        cmc_base_url=settings.CMC_BASE_URL,
        candles_base_url=settings.CANDLES_BASE_URL,
        quote_asset=settings.QUOTE_ASSET,
        universe_ttl=settings.UNIVERSE_CACHE_TTL_SEC,
    )
    scanner = SignalScanner(
        market,
        quote_asset=settings.QUOTE_ASSET,
        short_tf=settings.SCAN_SHORT_TIMEFRAME,
        long_tf=settings.SCAN_LONG_TIMEFRAME,
        short_limit=settings.SCAN_SHORT_LIMIT,
        long_limit=settings.SCAN_LONG_LIMIT,
    )
    ledger = TradeLedger(store)
    config_store = ConfigStore(store, default_trading_config())
    scan_results = ScanResultsStore(store)
    executor = Executor(
        venue,
        ledger,
        market,
        fee_percent=settings.FEE_PERCENT,
        sim_wallet_balance=settings.SIM_WALLET_BALANCE,
        quote_asset=settings.QUOTE_ASSET,
    )
    autotrader = AutoTrader(
        scanner,
        executor,
        ledger,
        config_store,
        market,
        scan_results=scan_results,
        buy_interval=settings.BUY_INTERVAL_SEC,
        monitor_interval=settings.MONITOR_INTERVAL_SEC,
        min_score=settings.SCAN_MIN_SCORE,
        snapshot_limit=settings.SCAN_SNAPSHOT_LIMIT,
        universe_size=settings.SCAN_UNIVERSE_SIZE,
    )
    trading = TradingService(
        market,
        scanner,
        executor,
        ledger,
        config_store,
        scan_results,
        venue,
        autotrader=autotrader,
        fee_percent=settings.FEE_PERCENT,
        min_score=settings.SCAN_MIN_SCORE,
        snapshot_limit=settings.SCAN_SNAPSHOT_LIMIT,
        universe_size=settings.SCAN_UNIVERSE_SIZE,
    )
    service_registry.register("autotrader", autotrader)
    service_registry.register("trading", trading)
    return {
        "store": store,
        "fetch_client": fetch_client,
        "venue": venue,
        "market": market,
        "autotrader": autotrader,
        "trading": trading,
    }


def record_startup_state(created, cfg: TradingConfig) -> None:
    """Record what was wired; fallbacks are recorded as warnings."""
    record_startup_event("store", "record_store_ready", **created["store"].describe())

    venue = created["venue"]
    if venue.has_credentials:
        record_startup_event("venue", "credentials_loaded", base_url=venue.base_url)
    else:
        record_startup_event("venue", "no_credentials", level="warning",
                             detail="balances and orders fall back to simulation",
                             sim_wallet_balance=settings.SIM_WALLET_BALANCE)

    market = created["market"]
    if market.cmc_key:
        record_startup_event("market_data", "ranked_universe", cache_ttl=market.universe_ttl)
    else:
        record_startup_event("market_data", "no_ranking_key", level="warning",
                             detail="universe and prices come from venue tickers")

    record_startup_event("mode", "trading_config", demo=cfg.demo, auto_enabled=cfg.auto_enabled,
                         max_concurrent=cfg.max_concurrent, tp_percent=cfg.tp_percent,
                         invest_percent=cfg.invest_percent)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    configure_logging()
    logger.info("Starting DexScan...")

    created = _bootstrap_services()
    trading = created["trading"]
    cfg = await trading.apply_mode()
    logger.info("Venue mode demo=%s credentials=%s auto=%s", cfg.demo, created["venue"].has_credentials,
                cfg.auto_enabled)
    record_startup_state(created, cfg)

    if settings.AUTO_START_TRADER:
        try:
            await created["autotrader"].start()
            record_startup_event("auto_start", "autotrader_started",
                                 buy_interval=settings.BUY_INTERVAL_SEC,
                                 monitor_interval=settings.MONITOR_INTERVAL_SEC)
        except Exception as e:
            logger.error(f"AUTO_START_TRADER failed: {e}")
            record_startup_event("auto_start", "autotrader_failed", level="warning", error=str(e))
    else:
        record_startup_event("auto_start", "autotrader_not_started", reason="AUTO_START_TRADER disabled")

    yield

    logger.info("Shutting down DexScan...")
    try:
        await created["autotrader"].stop()
    except Exception as e:
        logger.error(f"Failed to stop autotrader: {e}")
    await created["fetch_client"].close()
    await created["venue"].close()
    logger.info("Shutdown complete")


app = FastAPI(
    title="DexScan",
    description="Multi-timeframe spot scanner and autonomous trader",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(DexScanError)
async def dexscan_error_handler(request: Request, exc: DexScanError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(api_router)
