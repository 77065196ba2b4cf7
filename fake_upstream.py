#!/usr/bin/env python3
"""
Canned upstream responses and an in-memory transport for the test suite.
No network access: every request is answered from a symbol -> response map.
"""

import json

import numpy as np

from scan_errors import UserAbort


def json_response(data, status=200):
    return {"status": status, "headers": {"content-type": "application/json"}, "body": json.dumps(data)}


def chart_response(closes, highs=None, lows=None, volumes=None, adj_closes=None,
                   timestamps=None, include_adj=True):
    """Yahoo v8 chart payload for the given arrays (None entries allowed)."""
    n = len(closes)
    highs = highs if highs is not None else [c + 0.2 if c is not None else None for c in closes]
    lows = lows if lows is not None else [c - 0.2 if c is not None else None for c in closes]
    volumes = volumes if volumes is not None else [1_000_000] * n
    timestamps = timestamps if timestamps is not None else [1_700_000_000 + i * 86400 for i in range(n)]
    indicators = {"quote": [{"close": closes, "high": highs, "low": lows, "volume": volumes, "open": closes}]}
    if include_adj:
        indicators["adjclose"] = [{"adjclose": adj_closes if adj_closes is not None else closes}]
    return json_response({
        "chart": {
            "result": [{"meta": {}, "timestamp": timestamps, "indicators": indicators}],
            "error": None,
        }
    })


def not_found_response():
    return json_response(
        {"chart": {"result": None, "error": {"code": "Not Found", "description": "No data found, symbol may be delisted"}}},
        status=404,
    )


def rate_limited_response():
    return {"status": 429, "headers": {"content-type": "text/plain"}, "body": "Too Many Requests"}


def declining_closes(days=30, start=30.0, step=0.5):
    """One uptick, then a steady decline: deeply oversold, last close under the lower band."""
    prices = [start, start + step]
    while len(prices) < days:
        prices.append(prices[-1] - step)
    return prices


def rising_closes(days=30, start=20.0, step=0.5):
    return [start + i * step for i in range(days)]


def random_walk_closes(seed, days=120, start=50.0, volatility=0.02):
    rng = np.random.default_rng(seed)
    returns = rng.normal(0.0005, volatility, days)
    return list(start * np.cumprod(1 + returns))


class FakeTransport:
    """Answers Yahoo chart URLs by symbol; other URLs by their last path segment."""

    name = "fake"

    def __init__(self, responses=None, on_request=None):
        self.responses = dict(responses or {})
        self.on_request = on_request
        self.calls = []

    def request(self, url, options=None):
        options = options or {}
        key = url.rstrip("/").rsplit("/", 1)[-1]
        self.calls.append(key)
        if self.on_request is not None:
            self.on_request(key, options)

        cancel = options.get("cancel")
        if cancel is not None and cancel.is_set():
            raise UserAbort("request cancelled")

        resp = self.responses.get(key)
        if resp is None:
            return not_found_response()
        if callable(resp):
            resp = resp()
        if isinstance(resp, Exception):
            raise resp
        return resp
