#!/usr/bin/env python3
"""
Market Indicators — CNN Fear & Greed reading, put/call ratio and VIX level
shown next to the scan results.

Fear & Greed and put/call come from CNN's graph data; VIX comes from the same
Yahoo chart path the scanner uses, with CNN's market_volatility series as the
fallback. Every source failing leaves the neutral defaults in place.
"""

import json

import numpy as np

from scan_config import CNN_FEAR_GREED_URL, MARKET_INDICATORS_TTL
from scan_errors import ScanError
from series_cache import SeriesCache

VIX_SYMBOL = "^VIX"
CACHE_KEY = "MARKET_INDICATORS"

# CNN rejects requests without a browser referer
_CNN_HEADERS = {
    "Referer": "https://edition.cnn.com/",
    "Origin": "https://edition.cnn.com",
}


def _label(score):
    if score <= 25:
        return "Extreme Fear"
    elif score <= 45:
        return "Fear"
    elif score <= 55:
        return "Neutral"
    elif score <= 75:
        return "Greed"
    else:
        return "Extreme Greed"


def vix_rating(vix):
    if vix < 15:
        return "Low"
    elif vix < 20:
        return "Neutral"
    elif vix < 30:
        return "Elevated"
    return "High"


def default_indicators():
    return {
        "fear_and_greed": {"score": 50, "rating": "Neutral", "previous_close": 50},
        "vix": {"current": 20.0, "fifty_day_avg": 20.0, "rating": "Neutral", "source": "default"},
        "put_call_ratio": {"current": 0.7, "rating": "Neutral"},
    }


def _fifty_day_avg(values):
    window = values[-50:] if len(values) >= 50 else values
    return round(float(np.mean(window)), 2)


def _number(value):
    """Float for a real number; None for anything else (strings, bools, null)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _section(data, key):
    section = data.get(key) if isinstance(data, dict) else None
    return section if isinstance(section, dict) else {}


def _points(section):
    """The numeric y values of a CNN series, skipping malformed points."""
    raw = section.get("data")
    if not isinstance(raw, list):
        return []
    values = [_number(p.get("y")) for p in raw if isinstance(p, dict)]
    return [v for v in values if v is not None]


def parse_cnn_graphdata(data, indicators):
    """Fill fear & greed and put/call readings from CNN graph data in place."""
    fg = _section(data, "fear_and_greed")
    score = _number(fg.get("score"))
    if score is not None:
        score = round(score)
        previous = _number(fg.get("previous_close"))
        rating = fg.get("rating")
        indicators["fear_and_greed"] = {
            "score": score,
            "rating": rating if isinstance(rating, str) and rating else _label(score),
            "previous_close": round(previous) if previous is not None else score,
        }

    put_call = _section(data, "put_call_options")
    points = _points(put_call)
    if points:
        rating = put_call.get("rating")
        indicators["put_call_ratio"] = {
            "current": round(points[-1], 2),
            "rating": rating if isinstance(rating, str) and rating else "Neutral",
        }
    return indicators


def vix_from_cnn(data):
    volatility = _section(data, "market_volatility")
    points = _points(volatility)
    if not points:
        return None
    current = round(points[-1], 2)
    rating = volatility.get("rating")
    return {
        "current": current,
        "fifty_day_avg": _fifty_day_avg(points) if len(points) >= 50 else current,
        "rating": rating if isinstance(rating, str) and rating else vix_rating(current),
        "source": "cnn",
    }


def vix_from_series(series):
    closes = series["closes"]
    current = round(closes[-1], 2)
    return {
        "current": current,
        "fifty_day_avg": _fifty_day_avg(closes),
        "rating": vix_rating(current),
        "source": "yahoo",
    }


# ------------------------------------------------------------------
# Composite
# ------------------------------------------------------------------
class MarketIndicators:
    """Fear & Greed / VIX / put-call snapshot, cached for 5 minutes."""

    def __init__(self, transport, fetcher, cache=None):
        self.transport = transport
        self.fetcher = fetcher
        self.cache = cache or SeriesCache(ttl=MARKET_INDICATORS_TTL)

    def _fetch_cnn(self):
        resp = self.transport.request(CNN_FEAR_GREED_URL, {"headers": _CNN_HEADERS})
        if resp["status"] != 200:
            print(f"  [WARN] CNN Fear & Greed API returned {resp['status']}")
            return None
        try:
            data = json.loads(resp["body"])
        except ValueError:
            print("  [WARN] CNN Fear & Greed API returned an unparseable body")
            return None
        if not isinstance(data, dict):
            print("  [WARN] CNN Fear & Greed API returned an unexpected payload")
            return None
        return data

    def get(self):
        cached = self.cache.get(CACHE_KEY)
        if cached is not None:
            return cached

        print("\nFetching market indicators...")
        indicators = default_indicators()

        cnn = None
        try:
            cnn = self._fetch_cnn()
        except ScanError as e:
            print(f"  [ERROR] CNN Fear & Greed fetch failed: {e.describe()}")
        if cnn:
            try:
                parse_cnn_graphdata(cnn, indicators)
            except (TypeError, KeyError, ValueError, AttributeError) as e:
                print(f"  [WARN] CNN Fear & Greed payload malformed ({e}), keeping defaults")
                indicators = default_indicators()
                cnn = None
            else:
                fg = indicators["fear_and_greed"]
                print(f"  Fear & Greed: {fg['score']} ({fg['rating']})")

        vix = None
        try:
            vix = vix_from_series(self.fetcher.fetch(VIX_SYMBOL)["series"])
        except ScanError as e:
            print(f"  [WARN] VIX from Yahoo failed ({e.describe()}), using CNN fallback")
            if cnn:
                vix = vix_from_cnn(cnn)
        if vix:
            indicators["vix"] = vix
            print(f"  VIX: {vix['current']} ({vix['rating']}, {vix['source']})")

        if cnn or vix:
            self.cache.put(CACHE_KEY, indicators)
        return indicators
