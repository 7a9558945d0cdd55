from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Storage: JSON files under DATA_DIR unless STORE_URL points at a database
    DATA_DIR: str = Field("./data")
    STORE_URL: str = Field("")

    # Venue (Bitget-style spot REST)
    VENUE_API_KEY: str = Field("")
    VENUE_API_SECRET: str = Field("")
    VENUE_API_PASSPHRASE: str = Field("")
    VENUE_BASE_URL: str = Field("https://api.bitget.com")
    VENUE_DEMO: bool = Field(False)
    VENUE_TIMEOUT_SEC: float = Field(10.0)
    VENUE_ORDER_TIMEOUT_SEC: float = Field(20.0)

    # Market data
    CMC_KEY: str = Field("")
    CMC_BASE_URL: str = Field("https://pro-api.coinmarketcap.com")
    CANDLES_BASE_URL: str = Field("https://data-api.binance.vision")
    QUOTE_ASSET: str = Field("USDT")

    # Fetch client
    HTTP_TIMEOUT_SEC: float = Field(15.0)
    FETCH_MAX_ATTEMPTS: int = Field(4)
    FETCH_BACKOFF_BASE_SEC: float = Field(0.5)
    UNIVERSE_CACHE_TTL_SEC: int = Field(300)

    # Trading defaults (seed values for the persisted trading config)
    TP_PERCENT: float = Field(10.0)
    PERCENT_PER_TRADE: float = Field(2.0)
    FEE_PERCENT: float = Field(0.2)
    MAX_CONCURRENT: int = Field(10)
    RESULT_COUNT: int = Field(10)
    AUTO_SELL_DEFAULT: bool = Field(True)
    SIM_WALLET_BALANCE: float = Field(10000.0)

    # Scanner
    SCAN_MIN_SCORE: int = Field(6)
    SCAN_UNIVERSE_SIZE: int = Field(120)
    SCAN_SNAPSHOT_LIMIT: int = Field(200)
    SCAN_SHORT_TIMEFRAME: str = Field("1h")
    SCAN_LONG_TIMEFRAME: str = Field("4h")
    SCAN_SHORT_LIMIT: int = Field(200)
    SCAN_LONG_LIMIT: int = Field(100)

    # Autonomous controller
    BUY_INTERVAL_SEC: float = Field(30.0)
    MONITOR_INTERVAL_SEC: float = Field(5.0)
    AUTO_START_TRADER: bool = Field(True)

    # Application
    APP_PORT: int = Field(10000)
    LOG_LEVEL: str = Field("INFO")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

settings = Settings()
