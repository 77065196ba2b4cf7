#!/usr/bin/env python3
"""
Price history fetching — Yahoo Finance v8 chart API through the injected
transport, Finnhub daily candles as an optional fallback, aligned OHLCV +
adjusted-close series, and the 5-minute series cache in front of both.
"""

import json
import threading
import time

from scan_config import (
    YAHOO_CHART_URL,
    FINNHUB_CANDLE_URL,
    LOOKBACK_DAYS,
    INTERVAL,
)
from scan_errors import (
    EmptyData,
    InsufficientData,
    NetworkError,
    NotFound,
    RateLimited,
    ScanError,
    UpstreamError,
    UserAbort,
)

SERIES_KEYS = ("timestamps", "closes", "adj_closes", "highs", "lows", "volumes")


def normalize_ticker(ticker):
    return (ticker or "").strip().upper()


def dash_variant(symbol):
    """BRK.B -> BRK-B (Yahoo's share-class convention). None when no dot."""
    if "." not in symbol:
        return None
    return symbol.replace(".", "-")


def required_length(settings):
    """Shortest aligned series every indicator can be computed on."""
    return max(settings["bb_period"], settings["rsi_period"], settings["mfi_period"]) + 1


def ensure_sufficient(series, settings):
    needed = required_length(settings)
    have = len(series["closes"])
    if have < needed:
        raise InsufficientData(f"{have} valid data points, need {needed}")
    return series


# ------------------------------------------------------------------
# Payload parsing
# ------------------------------------------------------------------
def _is_throttled(resp):
    if resp["status"] == 429:
        return True
    body = resp["body"].lstrip()[:200]
    return body.startswith("Too Many Requests")


def _is_html(resp):
    body = resp["body"].lstrip()[:20].lower()
    return body.startswith("<!doctype") or body.startswith("<html")


def _decode_json(resp, source):
    try:
        return json.loads(resp["body"])
    except ValueError:
        raise UpstreamError(f"{source} returned an unparseable body (HTTP {resp['status']})")


def align_series(symbol, timestamps, closes, adj_closes, highs, lows, volumes):
    """Drop every index where any OHLCV component is null, then project all arrays."""
    if adj_closes is None:
        adj_closes = closes
    n = len(closes)
    if timestamps is None:
        timestamps = list(range(n))
    if any(len(arr) != n for arr in (timestamps, adj_closes, highs, lows, volumes)):
        raise UpstreamError("price arrays have mismatched lengths")

    valid = [
        i for i in range(n)
        if closes[i] is not None and adj_closes[i] is not None
        and highs[i] is not None and lows[i] is not None and volumes[i] is not None
    ]
    if not valid:
        raise EmptyData("no valid price data after alignment")

    return {
        "symbol": symbol,
        "timestamps": [timestamps[i] for i in valid],
        "closes": [float(closes[i]) for i in valid],
        "adj_closes": [float(adj_closes[i]) for i in valid],
        "highs": [float(highs[i]) for i in valid],
        "lows": [float(lows[i]) for i in valid],
        "volumes": [float(volumes[i]) for i in valid],
    }


def parse_yahoo_chart(symbol, data):
    """Return an aligned series, or None when the chart has no result for the symbol."""
    chart = (data or {}).get("chart") or {}
    results = chart.get("result") or []
    if not results:
        return None

    result = results[0]
    try:
        quotes = result["indicators"]["quote"][0]
    except (KeyError, IndexError, TypeError):
        raise UpstreamError("chart result has no quote block")

    closes = quotes.get("close")
    highs = quotes.get("high")
    lows = quotes.get("low")
    volumes = quotes.get("volume")
    if closes is None or highs is None or lows is None or volumes is None:
        raise UpstreamError("chart result is missing close/high/low/volume")
    if not closes:
        raise EmptyData("chart result has no price data")

    adj_block = result["indicators"].get("adjclose") or [{}]
    adj_closes = (adj_block[0] or {}).get("adjclose")

    return align_series(symbol, result.get("timestamp"), closes, adj_closes, highs, lows, volumes)


def parse_finnhub_candles(symbol, data):
    if not isinstance(data, dict) or data.get("s") != "ok" or not data.get("c"):
        return None
    # Finnhub has no adjusted close
    return align_series(symbol, data.get("t"), data["c"], None, data.get("h"), data.get("l"), data.get("v"))


# ------------------------------------------------------------------
# Fetcher
# ------------------------------------------------------------------
class SeriesFetcher:
    """Cache-or-network access to aligned daily price series."""

    def __init__(self, transport, cache, finnhub_api_key=None, single_flight=False,
                 lookback_days=LOOKBACK_DAYS, clock=time.time):
        self.transport = transport
        self.cache = cache
        self.finnhub_api_key = finnhub_api_key
        self.single_flight = single_flight
        self.lookback_days = lookback_days
        self.clock = clock
        self._inflight = {}
        self._inflight_lock = threading.Lock()

    def _window(self):
        end = int(self.clock())
        start = end - self.lookback_days * 24 * 60 * 60
        return start, end

    def _request(self, url, params, cancel):
        return self.transport.request(url, {"params": params, "cancel": cancel})

    def fetch_yahoo(self, ticker, cancel=None):
        start, end = self._window()
        params = {"period1": start, "period2": end, "interval": INTERVAL}

        for symbol in (ticker, dash_variant(ticker)):
            if symbol is None:
                break
            resp = self._request(YAHOO_CHART_URL.format(symbol=symbol), params, cancel)
            if _is_throttled(resp):
                raise RateLimited("Yahoo Finance is throttling requests", ticker=ticker)
            if _is_html(resp):
                raise RateLimited("Yahoo Finance returned an HTML block page", ticker=ticker)
            if resp["status"] >= 500:
                raise NetworkError(f"Yahoo Finance returned HTTP {resp['status']}", ticker=ticker)

            data = _decode_json(resp, "Yahoo Finance")
            series = parse_yahoo_chart(symbol, data)
            if series is not None:
                if symbol != ticker:
                    print(f"  {ticker}: resolved as {symbol}")
                return series
            # no result under this symbol, whatever the 4xx status: try the next variant

        raise NotFound(f"no chart data for {ticker}", ticker=ticker)

    def fetch_finnhub(self, ticker, cancel=None):
        start, end = self._window()
        params = {
            "symbol": ticker,
            "resolution": "D",
            "from": start,
            "to": end,
            "token": self.finnhub_api_key,
        }
        resp = self._request(FINNHUB_CANDLE_URL, params, cancel)
        if resp["status"] == 429:
            raise RateLimited("Finnhub is throttling requests", ticker=ticker)
        if resp["status"] >= 500:
            raise NetworkError(f"Finnhub returned HTTP {resp['status']}", ticker=ticker)
        if resp["status"] != 200:
            raise UpstreamError(f"Finnhub returned HTTP {resp['status']}", ticker=ticker)
        series = parse_finnhub_candles(ticker, _decode_json(resp, "Finnhub"))
        if series is None:
            raise NotFound(f"Finnhub has no candles for {ticker}", ticker=ticker)
        return series

    def _fetch_network(self, ticker, cancel):
        try:
            return self.fetch_yahoo(ticker, cancel), "yahoo"
        except (NotFound, EmptyData, RateLimited, NetworkError, UpstreamError) as yahoo_error:
            if not self.finnhub_api_key:
                raise
            print(f"  [WARN] Yahoo failed for {ticker} ({yahoo_error.code}), trying Finnhub...")
            try:
                return self.fetch_finnhub(ticker, cancel), "finnhub"
            except UserAbort:
                raise
            except ScanError as finnhub_error:
                print(f"  [ERROR] Finnhub also failed for {ticker}: {finnhub_error.describe()}")
                raise yahoo_error

    def _inflight_lock_for(self, ticker):
        with self._inflight_lock:
            lock = self._inflight.get(ticker)
            if lock is None:
                lock = self._inflight[ticker] = threading.Lock()
            return lock

    def fetch(self, ticker, cancel=None):
        """Return {"series", "from_cache", "source"} for a ticker."""
        ticker = normalize_ticker(ticker)
        cached = self.cache.get(ticker)
        if cached is not None:
            print(f"  [CACHE] hit for {ticker}")
            return {"series": cached, "from_cache": True, "source": "cache"}

        if not self.single_flight:
            return self._fetch_and_store(ticker, cancel)

        with self._inflight_lock_for(ticker):
            # another caller may have filled the cache while we waited
            cached = self.cache.get(ticker)
            if cached is not None:
                return {"series": cached, "from_cache": True, "source": "cache"}
            return self._fetch_and_store(ticker, cancel)

    def _fetch_and_store(self, ticker, cancel):
        series, source = self._fetch_network(ticker, cancel)
        self.cache.put(ticker, series)
        return {"series": series, "from_cache": False, "source": source}
