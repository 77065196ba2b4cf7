#!/usr/bin/env python3
"""
Analysis results — builders that enforce the result shape, and the
session-scoped result set keyed by ticker (last write wins).
"""

import datetime
import threading

from signal_classifier import reclassify

NUMERIC_FIELDS = ("price", "adj_price", "rsi", "mfi", "bb_lower", "bb_middle", "bb_upper")


def build_result(ticker, series, snapshot, flags, source):
    """Successful analysis: every numeric field present and finite."""
    return {
        "ticker": ticker,
        "timestamp": datetime.datetime.now().isoformat(),
        "price": series["closes"][-1],
        "adj_price": series["adj_closes"][-1],
        "rsi": snapshot["rsi"],
        "mfi": snapshot["mfi"],
        "bb_lower": snapshot["bb_lower"],
        "bb_middle": snapshot["bb_middle"],
        "bb_upper": snapshot["bb_upper"],
        "bb_touch": flags["bb_touch"],
        "alert": flags["alert"],
        "cached": source == "cache",
        "source": source,
        "resolved_symbol": series.get("symbol", ticker),
        "error": None,
        "error_code": None,
    }


def error_result(ticker, error, cached=False):
    """Failed analysis: numeric fields zeroed, no flags."""
    if hasattr(error, "describe"):
        message, code = error.describe(), error.code
    else:
        message, code = f"ANALYSIS_FAILED: {error}", "ANALYSIS_FAILED"
    result = {
        "ticker": ticker,
        "timestamp": datetime.datetime.now().isoformat(),
        "bb_touch": False,
        "alert": False,
        "cached": cached,
        "source": None,
        "resolved_symbol": None,
        "error": message,
        "error_code": code,
    }
    for field in NUMERIC_FIELDS:
        result[field] = 0.0
    return result


class ResultStore:
    """The live result set. Upserting a ticker moves it to the end."""

    def __init__(self):
        self._results = {}
        self._lock = threading.Lock()

    def upsert(self, result):
        with self._lock:
            self._results.pop(result["ticker"], None)
            self._results[result["ticker"]] = result

    def get(self, ticker):
        with self._lock:
            return self._results.get(ticker)

    def remove(self, ticker):
        with self._lock:
            return self._results.pop(ticker, None) is not None

    def clear(self):
        with self._lock:
            self._results.clear()

    def all(self):
        with self._lock:
            return list(self._results.values())

    def triple_signals(self):
        return [r for r in self.all() if r["alert"]]

    def band_touches(self):
        return [r for r in self.all() if r["bb_touch"]]

    def reclassify(self, settings):
        with self._lock:
            for ticker, result in self._results.items():
                self._results[ticker] = reclassify(result, settings)

    def __len__(self):
        with self._lock:
            return len(self._results)
