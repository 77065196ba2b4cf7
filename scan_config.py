#!/usr/bin/env python3
"""
Scanner configuration — analysis defaults, upstream endpoints, timing and
retry policy. Environment variables override the module defaults through
load_config().
"""

import os

from scan_errors import SettingsError

# ------------------------------------------------------------------
# Upstream data
# ------------------------------------------------------------------
YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
FINNHUB_CANDLE_URL = "https://finnhub.io/api/v1/stock/candle"
CNN_FEAR_GREED_URL = "https://production.dataviz.cnn.io/index/fearandgreed/graphdata"

LOOKBACK_DAYS = 180
INTERVAL = "1d"

# ------------------------------------------------------------------
# Cache / timing
# ------------------------------------------------------------------
CACHE_TTL = 300  # 5 minutes
MARKET_INDICATORS_TTL = 300
REQUEST_TIMEOUT = 30
INTER_TICKER_DELAY = 0.3  # seconds between network fetches
MAX_RETRY_ROUNDS = 3
RETRY_BACKOFF_SECONDS = 3.0

# ------------------------------------------------------------------
# Analysis settings
# ------------------------------------------------------------------
DEFAULT_SETTINGS = {
    "rsi_period": 14,
    "rsi_triple_signal": 35,
    "mfi_period": 14,
    "mfi_triple_signal": 35,
    "bb_period": 20,
    "bb_std_dev": 1.0,
}

# UI records use camelCase
_CAMEL_KEYS = {
    "rsiPeriod": "rsi_period",
    "rsiTripleSignal": "rsi_triple_signal",
    "mfiPeriod": "mfi_period",
    "mfiTripleSignal": "mfi_triple_signal",
    "bbPeriod": "bb_period",
    "bbStdDev": "bb_std_dev",
}

_PERIOD_KEYS = ("rsi_period", "mfi_period", "bb_period")
_THRESHOLD_KEYS = ("rsi_triple_signal", "mfi_triple_signal")


def validate_settings(settings):
    """Return a complete, type-checked copy of an analysis settings dict."""
    if not isinstance(settings, dict):
        raise SettingsError(f"settings must be a dict, got {type(settings).__name__}")

    unknown = set(settings) - set(DEFAULT_SETTINGS)
    if unknown:
        raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")

    merged = {**DEFAULT_SETTINGS, **settings}

    for key in _PERIOD_KEYS:
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise SettingsError(f"{key} must be a positive integer, got {value!r}")

    for key in _THRESHOLD_KEYS:
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
            raise SettingsError(f"{key} must be a number in [0, 100], got {value!r}")
        merged[key] = float(value)

    std_dev = merged["bb_std_dev"]
    if isinstance(std_dev, bool) or not isinstance(std_dev, (int, float)) or std_dev <= 0:
        raise SettingsError(f"bb_std_dev must be a positive number, got {std_dev!r}")
    merged["bb_std_dev"] = float(std_dev)

    return merged


def settings_from_payload(payload):
    """Convert a UI settings record (camelCase or snake_case) into validated settings."""
    if payload is None:
        return validate_settings({})
    if not isinstance(payload, dict):
        raise SettingsError("settings payload must be a JSON object")
    converted = {}
    for key, value in payload.items():
        if key in ("rsiOversold", "mfiOversold", "opacity"):
            # display-only fields of the settings dialog
            continue
        converted[_CAMEL_KEYS.get(key, key)] = value
    return validate_settings(converted)


def settings_to_payload(settings):
    """Inverse of settings_from_payload, for the UI."""
    reverse = {v: k for k, v in _CAMEL_KEYS.items()}
    return {reverse[key]: value for key, value in settings.items()}


def _float_env(env, name, default):
    raw = env.get(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        print(f"[WARN] Ignoring {name}={raw!r}: not a number")
        return default


def load_config(env=None):
    """Runtime configuration with environment overrides."""
    env = os.environ if env is None else env
    return {
        "port": int(env.get("PORT", 5002)),
        "proxy_url": env.get("SIGNAL_SCAN_PROXY_URL") or None,
        "finnhub_api_key": env.get("FINNHUB_API_KEY") or None,
        "cache_ttl": _float_env(env, "SIGNAL_SCAN_CACHE_TTL", CACHE_TTL),
        "request_timeout": _float_env(env, "SIGNAL_SCAN_TIMEOUT", REQUEST_TIMEOUT),
        "inter_ticker_delay": _float_env(env, "SIGNAL_SCAN_DELAY", INTER_TICKER_DELAY),
        "max_retry_rounds": int(_float_env(env, "SIGNAL_SCAN_RETRY_ROUNDS", MAX_RETRY_ROUNDS)),
        "retry_backoff": _float_env(env, "SIGNAL_SCAN_RETRY_BACKOFF", RETRY_BACKOFF_SECONDS),
        "single_flight": env.get("SIGNAL_SCAN_SINGLE_FLIGHT", "").lower() in ("1", "true", "yes"),
    }
