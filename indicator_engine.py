#!/usr/bin/env python3
"""
Indicator Engine — RSI (Wilder), Money Flow Index and Bollinger Bands over
aligned price/volume arrays. Pure functions; None means "not enough data".
"""

import numpy as np


# ============================================================
# TECHNICAL INDICATORS
# ============================================================
def compute_rsi(prices, period=14):
    """Compute RSI (Relative Strength Index) with Wilder's smoothing."""
    prices = np.asarray(prices, dtype=float)
    if len(prices) < period + 1:
        return None

    delta = np.diff(prices)
    gains = np.where(delta > 0, delta, 0.0)
    losses = np.where(delta < 0, -delta, 0.0)

    avg_gain = gains[:period].mean()
    avg_loss = losses[:period].mean()
    for i in range(period, len(delta)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        return 100.0
    rs = avg_gain / avg_loss
    return float(100 - (100 / (1 + rs)))


def compute_mfi(highs, lows, closes, volumes, period=14):
    """Compute MFI (Money Flow Index) over the last `period` bars."""
    closes = np.asarray(closes, dtype=float)
    if len(closes) < period + 1:
        return None

    typical = (np.asarray(highs, dtype=float) + np.asarray(lows, dtype=float) + closes) / 3
    money_flow = typical * np.asarray(volumes, dtype=float)

    positive_flow = 0.0
    negative_flow = 0.0
    for i in range(len(closes) - period, len(closes)):
        if i == 0:
            continue
        if typical[i] > typical[i - 1]:
            positive_flow += money_flow[i]
        elif typical[i] < typical[i - 1]:
            negative_flow += money_flow[i]

    if negative_flow == 0:
        return 100.0
    ratio = positive_flow / negative_flow
    return float(100 - (100 / (1 + ratio)))


def compute_bollinger_bands(prices, period=20, std_dev=1.0):
    """Middle = SMA(period); bands at +/- std_dev population standard deviations."""
    prices = np.asarray(prices, dtype=float)
    if len(prices) < period:
        return None
    window = prices[-period:]
    middle = window.mean()
    std = window.std()  # ddof=0
    return {
        "upper": float(middle + std * std_dev),
        "middle": float(middle),
        "lower": float(middle - std * std_dev),
    }


def compute_snapshot(series, settings):
    """Indicator snapshot for an aligned series, computed on adjusted closes."""
    adj = series["adj_closes"]
    bands = compute_bollinger_bands(adj, settings["bb_period"], settings["bb_std_dev"])
    return {
        "rsi": compute_rsi(adj, settings["rsi_period"]),
        "mfi": compute_mfi(series["highs"], series["lows"], adj, series["volumes"], settings["mfi_period"]),
        "bb_lower": bands["lower"] if bands else None,
        "bb_middle": bands["middle"] if bands else None,
        "bb_upper": bands["upper"] if bands else None,
    }


def snapshot_complete(snapshot):
    return all(v is not None and np.isfinite(v) for v in snapshot.values())
