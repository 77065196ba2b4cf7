#!/usr/bin/env python3
"""
Watchlist — the user's registered tickers for the current session.
Normalized upper-case symbols, insertion order, no duplicates.
"""

import re
import threading

from series_fetcher import normalize_ticker

MAX_SYMBOL_LENGTH = 10
_SYMBOL_RE = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=^]*$")
_SPLIT_RE = re.compile(r"[\s,;]+")


def is_valid_symbol(symbol):
    return bool(symbol) and len(symbol) <= MAX_SYMBOL_LENGTH and bool(_SYMBOL_RE.match(symbol))


def parse_tickers(text):
    """Split pasted input ("aapl, msft  brk.b") into normalized symbols."""
    if isinstance(text, (list, tuple)):
        parts = text
    else:
        parts = _SPLIT_RE.split(text or "")
    return [normalize_ticker(p) for p in parts if normalize_ticker(p)]


class Watchlist:
    def __init__(self, tickers=None):
        self._tickers = []
        self._lock = threading.Lock()
        if tickers:
            self.add_many(tickers)

    def add(self, ticker):
        """Returns True if the ticker was added."""
        ticker = normalize_ticker(ticker)
        if not is_valid_symbol(ticker):
            raise ValueError(f"Invalid ticker symbol: {ticker!r}")
        with self._lock:
            if ticker in self._tickers:
                return False
            self._tickers.append(ticker)
            return True

    def add_many(self, text):
        """Add every valid symbol in `text`; returns (added, rejected)."""
        added, rejected = [], []
        for ticker in parse_tickers(text):
            if not is_valid_symbol(ticker):
                rejected.append(ticker)
            elif self.add(ticker):
                added.append(ticker)
        return added, rejected

    def remove(self, ticker):
        ticker = normalize_ticker(ticker)
        with self._lock:
            if ticker in self._tickers:
                self._tickers.remove(ticker)
                return True
            return False

    def clear(self):
        with self._lock:
            self._tickers.clear()

    def tickers(self):
        with self._lock:
            return list(self._tickers)

    def __len__(self):
        with self._lock:
            return len(self._tickers)
