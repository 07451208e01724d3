"""
Configuration management with environment variable resolution.
"""
import copy
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

# Pattern to match ${VAR_NAME} or ${VAR_NAME:default_value}
ENV_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')

DEFAULT_CONFIG_PATH = "config/config.yaml"


def default_config() -> Dict[str, Any]:
    """
    Built-in defaults for every section, so the engine runs without a file.

    Returns:
        Fresh configuration dictionary
    """
    return {
        'environment': 'development',
        'logging': {
            'logs_dir': './logs',
            'level': 'INFO',
            'rotation': '1 day',
            'retention': '30 days',
            'format_type': 'text',
            'enable_console': True,
        },
        'storage': {
            'db_path': '',
            'candles_dir': '',
            'flush_interval_seconds': 1.0,
            'max_logs_per_session': 1000,
            'max_candles_per_series': 5000,
            'compression': 'snappy',
        },
        'risk': {
            'enable_live_trading': False,
            'max_position_notional': 10000.0,
            'max_daily_loss': 1000.0,
            'max_open_positions': 5,
        },
        'ledger': {
            'initial_balance': 10000.0,
            'min_balance': 1000.0,
            'risk_per_trade_pct': 2.0,
            'fee_rate': 0.0005,
        },
        'session': {
            'tick_interval_seconds': 5,
            'history_hours': 24,
            'candle_interval': '1h',
            'default_stop_loss_pct': 1.5,
            'default_take_profit_pct': 3.0,
            'timezone': 'UTC',
        },
        'ensemble': {
            'vote_floor': 0.35,
            'dominance': 1.5,
            'confidence_base': 50.0,
            'confidence_scale': 80.0,
            'confidence_cap': 95.0,
        },
        'streaming': {
            'interval_seconds': 5,
        },
        'backtesting': {
            'initial_capital': 10000.0,
            'fee_rate': 0.0005,
            'slippage_rate': 0.0001,
            'capital_fraction': 0.95,
            'interval': '1h',
        },
        'venues': {
            'hyperliquid': {
                'api_url': 'https://api.hyperliquid.xyz',
                'signing_key': '',
                'timeout_seconds': 10,
                'max_retries': 3,
            },
        },
        'reasoning': {
            'api_key': '',
            'api_url': 'https://api.anthropic.com/v1/messages',
            'model': 'claude-sonnet-4-5',
            'timeout_seconds': 30,
            'max_tokens': 1024,
        },
        'server': {
            'host': '127.0.0.1',
            'port': 8000,
            'cors_origins': ['http://localhost:3000', 'http://127.0.0.1:3000'],
        },
    }


def _typed_scalar(text: str) -> Any:
    """Interpret a resolved placeholder the way YAML would have (numbers, booleans)."""
    if text == "":
        return text
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError:
        return text
    if isinstance(parsed, (bool, int, float)):
        return parsed
    return text


def resolve_env_vars(value: Any) -> Any:
    """
    Resolve environment variables in strings like ${VAR_NAME}.

    A string that consists of a single placeholder is converted to a bool or
    number when the resolved text looks like one.

    Args:
        value: Value to process (can be str, dict, list, or other)

    Returns:
        Processed value with environment variables resolved
    """
    if isinstance(value, str):
        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        resolved = ENV_PATTERN.sub(replacer, value)
        if ENV_PATTERN.fullmatch(value.strip()):
            return _typed_scalar(resolved)
        return resolved

    elif isinstance(value, dict):
        return {k: resolve_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [resolve_env_vars(item) for item in value]

    return value


def merge_config(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge override into a copy of base.

    Args:
        base: Base configuration
        override: Values that win over base

    Returns:
        Merged dictionary
    """
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: Optional[str] = None, load_env_file: bool = True) -> Dict[str, Any]:
    """
    Load configuration from YAML file and resolve environment variables.

    Values missing from the file are filled from default_config().

    Args:
        config_path: Path to the configuration YAML file. Falls back to
            $TRADELOOP_CONFIG, then config/config.yaml.
        load_env_file: Whether to read a .env file first

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If an explicitly given config file doesn't exist
        yaml.YAMLError: If YAML parsing fails
    """
    if load_env_file:
        load_dotenv()

    explicit = config_path is not None or 'TRADELOOP_CONFIG' in os.environ
    config_path = config_path or os.environ.get('TRADELOOP_CONFIG', DEFAULT_CONFIG_PATH)
    config_file = Path(config_path)

    if not config_file.exists():
        if explicit:
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        return default_config()

    with open(config_file, 'r', encoding='utf-8') as f:
        raw = yaml.safe_load(f) or {}

    # Resolve all environment variables in the config
    config = merge_config(default_config(), resolve_env_vars(raw))
    validate_config(config)

    return config


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate that configuration values are present and within range.

    Args:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    risk = config.get('risk', {})
    if float(risk.get('max_position_notional', 0) or 0) <= 0:
        raise ValueError("risk.max_position_notional must be > 0")

    if float(risk.get('max_daily_loss', 0) or 0) <= 0:
        raise ValueError("risk.max_daily_loss must be > 0")

    if int(risk.get('max_open_positions', 0) or 0) <= 0:
        raise ValueError("risk.max_open_positions must be > 0")

    ledger = config.get('ledger', {})
    if float(ledger.get('initial_balance', 0) or 0) <= 0:
        raise ValueError("ledger.initial_balance must be > 0")

    fee_rate = float(ledger.get('fee_rate', 0) or 0)
    if not 0 <= fee_rate < 1:
        raise ValueError("ledger.fee_rate must be in [0, 1)")

    if float(config.get('session', {}).get('tick_interval_seconds', 0) or 0) <= 0:
        raise ValueError("session.tick_interval_seconds must be > 0")

    if float(config.get('streaming', {}).get('interval_seconds', 0) or 0) <= 0:
        raise ValueError("streaming.interval_seconds must be > 0")

    ensemble = config.get('ensemble', {})
    if float(ensemble.get('dominance', 0) or 0) <= 0:
        raise ValueError("ensemble.dominance must be > 0")


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a configuration value using dot notation path.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., 'risk.max_daily_loss')
        default: Default value if path not found

    Returns:
        Configuration value or default
    """
    keys = path.split('.')
    value = config

    try:
        for key in keys:
            value = value[key]
        return value
    except (KeyError, TypeError):
        return default
