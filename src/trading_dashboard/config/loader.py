import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from ..exceptions import ConfigurationError
from .constants import API_DEFAULTS
from .schema import DashboardConfig

DEFAULT_INDICATORS = [
    'RSI',
    'MACD',
    'ADX',
    'Parabolic SAR',
    'EMA Crossover',
    'Stochastic',
    'CCI',
    'Williams %R',
    'ATR',
    'Bollinger Bands',
    'OBV',
    'Chaikin Money Flow',
]


def load_dashboard_config(config_path: str | Path) -> DashboardConfig:
    """
    Load dashboard configuration from YAML file.

    Raises
    ------
    ConfigurationError
        If the file is missing, is not valid YAML or breaks a schema rule
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}
        config = DashboardConfig(**config_data)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Configuration file {config_path} is not valid YAML: {e}") from e
    except (TypeError, ValidationError) as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    return apply_environment_overrides(config)


def apply_environment_overrides(config: DashboardConfig) -> DashboardConfig:
    """Let TRADING_DASHBOARD_API_URL point the dashboard at another backend."""
    base_url = os.environ.get(API_DEFAULTS.BASE_URL_ENV_VAR)
    if base_url:
        config.api.base_url = base_url
    return config


def get_default_config_path() -> Path:
    """Get path to default configuration file."""
    # Look for configs directory relative to this file
    current_dir = Path(__file__).parent
    project_root = current_dir.parent.parent.parent  # Go up to project root
    configs_dir = project_root / "configs"

    return configs_dir / "dashboard.yaml"


def load_default_config(config_path: Optional[str | Path] = None) -> DashboardConfig:
    """Load the given config file, the default one, or built-in defaults."""
    path = Path(config_path) if config_path else get_default_config_path()
    if config_path or path.exists():
        return load_dashboard_config(path)
    return apply_environment_overrides(DashboardConfig())


def create_example_config(output_path: str | Path) -> None:
    """Create an example configuration file."""
    example_config = {
        'name': 'example_dashboard',
        'description': 'Example configuration showing all available options',
        'api': {
            'base_url': API_DEFAULTS.BASE_URL,
            'timeout_seconds': None,
        },
        'polling': {
            'single_interval': 1.0,
            'watchlist_interval': 2.0,
            'all_stocks_interval': 5.0,
        },
        'cache': {
            'cache_dir': '.cache/trading_dashboard',
            'session_dir': None,
        },
        'logging': {
            'level': 'INFO',
            'log_to_file': False,
            'log_file_path': 'logs/trading_dashboard.log',
            'enable_structured_logging': False,
        },
        'indicators': DEFAULT_INDICATORS,
    }

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        yaml.dump(example_config, f, default_flow_style=False, indent=2)
