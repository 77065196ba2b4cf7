#!/usr/bin/env python3
"""
Signal classification — turns an indicator snapshot into the band-touch and
triple-signal flags. Re-labelling under new thresholds reuses the stored
snapshot, no fetch involved.
"""

SNAPSHOT_KEYS = ("rsi", "mfi", "bb_lower", "bb_middle", "bb_upper")

# Changing any of these changes the indicator values themselves
RECOMPUTE_KEYS = ("rsi_period", "mfi_period", "bb_period", "bb_std_dev")


def classify(snapshot, latest_adj_close, latest_close, settings):
    """
    bb_touch: latest adjusted close at or below the lower band.
    alert:    RSI and MFI under their triple-signal thresholds and bb_touch.
    `latest_close` is the display price; classification uses the adjusted one.
    """
    bb_lower = snapshot.get("bb_lower")
    rsi = snapshot.get("rsi")
    mfi = snapshot.get("mfi")

    bb_touch = bool(
        bb_lower is not None and latest_adj_close is not None and latest_adj_close <= bb_lower
    )
    if rsi is None or mfi is None:
        return {"bb_touch": bb_touch, "alert": False}

    alert = (
        rsi < settings["rsi_triple_signal"]
        and mfi < settings["mfi_triple_signal"]
        and bb_touch
    )
    return {"bb_touch": bb_touch, "alert": bool(alert)}


def reclassify(result, settings):
    """Return a copy of `result` with flags re-derived under `settings`."""
    if result.get("error"):
        return dict(result)
    snapshot = {key: result.get(key) for key in SNAPSHOT_KEYS}
    flags = classify(snapshot, result.get("adj_price"), result.get("price"), settings)
    return {**result, **flags}


def stale_settings(old, new):
    """Settings keys whose change cannot be honored without a re-fetch."""
    return [key for key in RECOMPUTE_KEYS if old.get(key) != new.get(key)]
