from typing import Optional

from pydantic import BaseModel, Field

from .constants import API_DEFAULTS, CACHE_DEFAULTS, POLLING_DEFAULTS


class ApiConfig(BaseModel):
    """Analysis backend connection settings."""
    base_url: str = API_DEFAULTS.BASE_URL
    # None leaves timeouts to the transport
    timeout_seconds: Optional[float] = None


class PollingConfig(BaseModel):
    """Poll cadence per job slot, in seconds."""
    single_interval: float = Field(default=POLLING_DEFAULTS.SINGLE_INTERVAL_SECONDS, gt=0)
    watchlist_interval: float = Field(default=POLLING_DEFAULTS.WATCHLIST_INTERVAL_SECONDS, gt=0)
    all_stocks_interval: float = Field(default=POLLING_DEFAULTS.ALL_STOCKS_INTERVAL_SECONDS, gt=0)


class CacheConfig(BaseModel):
    """Client cache locations."""
    cache_dir: str = CACHE_DEFAULTS.CACHE_DIR
    session_dir: Optional[str] = None  # None keeps session state in memory


class LoggingConfig(BaseModel):
    """Logging options passed to setup_logging."""
    level: str = "INFO"
    log_to_file: bool = False
    log_file_path: str = "logs/trading_dashboard.log"
    enable_structured_logging: bool = False


class DashboardConfig(BaseModel):
    """Complete dashboard configuration."""
    name: str = "default_dashboard"
    description: Optional[str] = None

    api: ApiConfig = ApiConfig()
    polling: PollingConfig = PollingConfig()
    cache: CacheConfig = CacheConfig()
    logging: LoggingConfig = LoggingConfig()

    # Indicators sent with single/watchlist jobs; None lets the backend decide
    indicators: Optional[list[str]] = None
