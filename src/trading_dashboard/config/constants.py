"""
Centralized configuration constants for the trading dashboard.

Poll cadences, storage key names and API defaults live here so the job layer
never carries magic numbers of its own.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class PollingDefaults:
    """Poll intervals (seconds) for each job slot."""

    # Single ticker jobs finish quickly
    SINGLE_INTERVAL_SECONDS: float = 1.0
    # Watchlist batches take minutes
    WATCHLIST_INTERVAL_SECONDS: float = 2.0
    # Full universe runs take hours and the progress call is expensive
    ALL_STOCKS_INTERVAL_SECONDS: float = 5.0


@dataclass(frozen=True)
class ApiDefaults:
    """Defaults for the analysis backend."""

    BASE_URL: str = "http://localhost:5000"
    BASE_URL_ENV_VAR: str = "TRADING_DASHBOARD_API_URL"
    REPORT_FILENAME_TEMPLATE: str = "{ticker}_analysis.xlsx"


@dataclass(frozen=True)
class StorageKeys:
    """Names used for persisted client state."""

    ALL_STOCKS_CACHE: str = "all_stocks"
    WATCHLIST_CACHE: str = "watchlist"
    VALID_FLAG_PREFIX: str = "cache_valid:"
    ACTIVE_JOB_PREFIX: str = "active_job:"


@dataclass(frozen=True)
class CacheDefaults:
    """Defaults for the on-disk snapshot cache."""

    CACHE_DIR: str = ".cache/trading_dashboard"
    FILE_SUFFIX: str = ".json"


# Global configuration instances
POLLING_DEFAULTS = PollingDefaults()
API_DEFAULTS = ApiDefaults()
STORAGE_KEYS = StorageKeys()
CACHE_DEFAULTS = CacheDefaults()


def get_config_summary() -> Dict[str, Any]:
    """Get a summary of all configuration values for debugging."""
    return {
        "polling_defaults": POLLING_DEFAULTS.__dict__,
        "api_defaults": API_DEFAULTS.__dict__,
        "storage_keys": STORAGE_KEYS.__dict__,
        "cache_defaults": CACHE_DEFAULTS.__dict__,
    }
