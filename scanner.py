#!/usr/bin/env python3
"""
Scanner — composition root and command-line entry point.

Builds the transport, series cache, fetcher, result store and controller once
and wires them together. Run directly to scan tickers from the terminal:

    python scanner.py AAPL MSFT BRK.B
"""

import sys

import pandas as pd

from execution_controller import ExecutionController
from market_indicators import MarketIndicators
from results import ResultStore
from scan_config import load_config
from series_cache import SeriesCache
from series_fetcher import SeriesFetcher
from transport import resolve_transport
from watchlist import Watchlist, parse_tickers

DISPLAY_COLUMNS = ["ticker", "price", "rsi", "mfi", "bb_lower", "bb_touch", "alert", "source", "error"]


def build_scanner(config=None, settings=None, transport=None, clock=None):
    """Wire every component; `transport` can be injected (tests, alternate hosts)."""
    config = config or load_config()
    transport = transport or resolve_transport(config, timeout=config["request_timeout"])

    cache_kwargs = {"ttl": config["cache_ttl"]}
    fetcher_kwargs = {}
    if clock is not None:
        cache_kwargs["clock"] = clock
        fetcher_kwargs["clock"] = clock
    cache = SeriesCache(**cache_kwargs)

    fetcher = SeriesFetcher(
        transport,
        cache,
        finnhub_api_key=config["finnhub_api_key"],
        single_flight=config["single_flight"],
        **fetcher_kwargs,
    )
    store = ResultStore()
    controller = ExecutionController(
        fetcher,
        store=store,
        settings=settings,
        inter_ticker_delay=config["inter_ticker_delay"],
        max_retry_rounds=config["max_retry_rounds"],
        retry_backoff=config["retry_backoff"],
    )
    return {
        "config": config,
        "transport": transport,
        "cache": cache,
        "fetcher": fetcher,
        "store": store,
        "controller": controller,
        "watchlist": Watchlist(),
        "market": MarketIndicators(transport, fetcher),
    }


def results_frame(results):
    """Results as a DataFrame: triple signals first, then band touches, then the rest."""
    df = pd.DataFrame(results, columns=DISPLAY_COLUMNS)
    if df.empty:
        return df
    df = df.sort_values(["alert", "bb_touch", "rsi"], ascending=[False, False, True])
    for col in ("price", "rsi", "mfi", "bb_lower"):
        df[col] = df[col].astype(float).round(2)
    df["error"] = df["error"].fillna("")
    return df.reset_index(drop=True)


def run_scan(tickers, scanner=None):
    scanner = scanner or build_scanner()
    controller = scanner["controller"]
    results = controller.run(tickers)

    df = results_frame(results)
    print(f"\n{'='*60}")
    print("SCAN RESULTS")
    print(f"{'='*60}")
    if df.empty:
        print("  No results.")
    else:
        print(df.to_string(index=False))

    triple = [r["ticker"] for r in results if r["alert"]]
    print(f"\n  Triple signals: {', '.join(triple) if triple else 'none'}")
    if controller.failed_tickers:
        print(f"  Retry later (rate limited / network): {', '.join(controller.failed_tickers)}")
    return results


if __name__ == "__main__":
    symbols = parse_tickers(sys.argv[1:])
    if not symbols:
        print("usage: python scanner.py TICKER [TICKER ...]")
        sys.exit(2)
    run_scan(symbols)
