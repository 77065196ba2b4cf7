#!/usr/bin/env python3
"""Settings validation, UI payload conversion and environment config."""

import pytest

from scan_config import (
    DEFAULT_SETTINGS,
    load_config,
    settings_from_payload,
    settings_to_payload,
    validate_settings,
)
from scan_errors import SettingsError


def test_defaults():
    settings = validate_settings({})
    assert settings == {**DEFAULT_SETTINGS, "rsi_triple_signal": 35.0, "mfi_triple_signal": 35.0}
    assert isinstance(settings["bb_std_dev"], float)


@pytest.mark.parametrize("bad", [
    {"rsi_period": 0},
    {"mfi_period": 2.5},
    {"bb_period": True},
    {"rsi_triple_signal": -1},
    {"mfi_triple_signal": "30"},
    {"bb_std_dev": 0},
    {"volume_period": 10},
])
def test_invalid_settings(bad):
    with pytest.raises(SettingsError):
        validate_settings(bad)


def test_camel_case_payload():
    settings = settings_from_payload({
        "rsiPeriod": 10,
        "rsiTripleSignal": 30,
        "rsiOversold": 30,
        "mfiOversold": 20,
        "bbStdDev": 2,
        "opacity": 0.5,
    })
    assert settings["rsi_period"] == 10
    assert settings["rsi_triple_signal"] == 30.0
    assert settings["bb_std_dev"] == 2.0
    assert settings["mfi_period"] == DEFAULT_SETTINGS["mfi_period"]

    payload = settings_to_payload(settings)
    assert payload["rsiPeriod"] == 10
    assert set(payload) == {"rsiPeriod", "rsiTripleSignal", "mfiPeriod", "mfiTripleSignal", "bbPeriod", "bbStdDev"}


def test_payload_must_be_object():
    assert settings_from_payload(None) == validate_settings({})
    with pytest.raises(SettingsError):
        settings_from_payload(["rsiPeriod", 14])


def test_load_config_env_overrides():
    config = load_config({
        "PORT": "8080",
        "SIGNAL_SCAN_PROXY_URL": "http://relay:3128",
        "FINNHUB_API_KEY": "abc",
        "SIGNAL_SCAN_DELAY": "1.5",
        "SIGNAL_SCAN_RETRY_ROUNDS": "5",
        "SIGNAL_SCAN_SINGLE_FLIGHT": "true",
        "SIGNAL_SCAN_CACHE_TTL": "soon",
    })
    assert config["port"] == 8080
    assert config["proxy_url"] == "http://relay:3128"
    assert config["finnhub_api_key"] == "abc"
    assert config["inter_ticker_delay"] == 1.5
    assert config["max_retry_rounds"] == 5
    assert config["single_flight"] is True
    assert config["cache_ttl"] == 300


def test_load_config_defaults():
    config = load_config({})
    assert config["proxy_url"] is None
    assert config["finnhub_api_key"] is None
    assert config["single_flight"] is False
    assert config["request_timeout"] == 30
