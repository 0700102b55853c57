"""Configuration system using pydantic-settings with environment variable loading."""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class VendorSettings(BaseSettings):
    """Quote/candle vendor connection settings."""

    model_config = SettingsConfigDict(env_prefix="VENDOR_")

    provider: Literal["finnhub", "twelvedata"] = "finnhub"
    finnhub_api_key: SecretStr = SecretStr("")
    finnhub_base_url: str = "https://finnhub.io/api/v1"
    twelvedata_api_key: SecretStr = SecretStr("")
    twelvedata_base_url: str = "https://api.twelvedata.com"
    quote_timeout: float = 10.0
    history_timeout: float = 15.0
    history_lookback_days: int = 60  # candle range requested from Finnhub
    outputsize: int = 100  # Twelve Data bars per time_series call


class GovernorSettings(BaseSettings):
    """Cache, rate limit and quota parameters for outbound vendor calls.

    Defaults match the Finnhub free tier (30 calls/minute) with a 2s safety
    spacing. For Twelve Data use 8 calls/minute, 8s spacing, 300s TTL and an
    800 call daily limit.
    """

    model_config = SettingsConfigDict(env_prefix="GOVERNOR_")

    cache_ttl_seconds: float = 60.0
    max_cache_size: int = 50
    max_calls_per_window: int = 30
    window_seconds: float = 60.0
    min_call_interval: float = 2.0
    daily_call_limit: int | None = None  # None = no local daily quota


class RetrySettings(BaseSettings):
    """Retry/backoff policy applied by MarketDataService."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_retries: int = 2  # total attempts per request
    retry_delay: float = 5.0  # first backoff; doubles each attempt


class StorageSettings(BaseSettings):
    """Durable key-value store settings for price history and call counters."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    db_path: str = "data/tradesignal.db"
    history_prefix: str = "stock_price_history"
    api_calls_prefix: str = "api_calls"
    max_history_days: int = 90


class SignalSettings(BaseSettings):
    """Indicator periods and the default classification mode."""

    model_config = SettingsConfigDict(env_prefix="SIGNAL_")

    ema_period: int = 20
    rsi_period: int = 14
    divergence_lookback: int = 10
    default_mode: Literal["conservative", "normal"] = "conservative"


class WatchSettings(BaseSettings):
    """Background watchlist polling.

    The watcher re-evaluates every symbol in both modes and reports
    significant signal changes.
    """

    model_config = SettingsConfigDict(env_prefix="WATCH_")

    enabled: bool = False
    symbols: list[str] = [
        "GOOGL",
        "TSLA",
        "ASML",
        "PLTR",
        "NVDA",
        "AMD",
        "BTC/USD",
        "XAU/USD",
    ]
    timeframe: str = "1h"
    refresh_interval: float = 3600.0  # seconds between full watchlist passes
    batch_size: int = 2
    batch_delay: float = 10.0  # seconds between batches


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080
    enabled: bool = True


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    log_format: Literal["console", "json"] = "console"
    vendor: VendorSettings = VendorSettings()
    governor: GovernorSettings = GovernorSettings()
    retry: RetrySettings = RetrySettings()
    storage: StorageSettings = StorageSettings()
    signal: SignalSettings = SignalSettings()
    watch: WatchSettings = WatchSettings()
    api: ApiSettings = ApiSettings()
