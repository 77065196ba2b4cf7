#!/usr/bin/env python3
"""
Ticker Scan API — Flask backend for the scanner UI.
Watchlist management, batch analysis control (start / pause / resume / stop /
retry), live results, analysis settings, on-demand single-ticker analysis and
the market indicator panel.
"""

import datetime
import json
import os

import numpy as np
from flask import Flask, jsonify, request
from flask_cors import CORS

from execution_controller import analyze_ticker
from results import error_result
from scan_config import load_config, settings_from_payload, settings_to_payload
from scan_errors import ScanError, SettingsError
from scanner import build_scanner
from series_fetcher import normalize_ticker
from watchlist import is_valid_symbol


class NumpyEncoder(json.JSONEncoder):
    """Handle numpy types in JSON serialization."""
    def default(self, obj):
        if isinstance(obj, (np.integer,)):
            return int(obj)
        if isinstance(obj, (np.floating,)):
            return float(obj)
        if isinstance(obj, (np.bool_,)):
            return bool(obj)
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        return super().default(obj)


def _json(payload, status=200):
    return Flask.response_class(
        response=json.dumps(payload, cls=NumpyEncoder),
        status=status,
        mimetype="application/json",
    )


def _error(message, status):
    return jsonify({"status": "error", "error": message}), status


def create_app(scanner=None):
    scanner = scanner or build_scanner()
    controller = scanner["controller"]
    watchlist = scanner["watchlist"]
    store = scanner["store"]

    app = Flask(__name__)
    CORS(app)
    app.config["SCANNER"] = scanner

    # ------------------------------------------------------------------
    # Watchlist
    # ------------------------------------------------------------------
    @app.route("/api/tickers")
    def list_tickers():
        return jsonify({"status": "success", "tickers": watchlist.tickers()})

    @app.route("/api/tickers", methods=["POST"])
    def add_tickers():
        """Add one ticker or a pasted list: {"ticker": "AAPL"} or {"tickers": "AAPL, MSFT"}."""
        body = request.get_json(silent=True) or {}
        raw = body.get("tickers", body.get("ticker"))
        if not raw:
            return _error("No tickers given", 400)
        added, rejected = watchlist.add_many(raw)
        return jsonify({
            "status": "success",
            "added": added,
            "rejected": rejected,
            "tickers": watchlist.tickers(),
        })

    @app.route("/api/tickers/<symbol>", methods=["DELETE"])
    def remove_ticker(symbol):
        if not watchlist.remove(symbol):
            return _error(f"'{normalize_ticker(symbol)}' is not in the watchlist", 404)
        return jsonify({"status": "success", "tickers": watchlist.tickers()})

    @app.route("/api/tickers", methods=["DELETE"])
    def clear_tickers():
        watchlist.clear()
        return jsonify({"status": "success", "message": "Watchlist cleared"})

    # ------------------------------------------------------------------
    # Batch analysis control
    # ------------------------------------------------------------------
    @app.route("/api/analysis/start", methods=["POST"])
    def start_analysis():
        """Start a run over the given tickers, or the whole watchlist."""
        body = request.get_json(silent=True) or {}
        tickers = body.get("tickers") or watchlist.tickers()
        if isinstance(tickers, str):
            tickers = [tickers]
        try:
            started = controller.start(tickers, clear_results=bool(body.get("clear_results")))
        except RuntimeError as e:
            return _error(str(e), 409)
        if not started:
            return _error("No tickers to analyze", 400)
        return _json({"status": "started", **controller.status()}, 202)

    @app.route("/api/analysis/pause", methods=["POST"])
    def pause_analysis():
        return jsonify({"status": "success", "acknowledged": controller.pause(), "state": controller.state})

    @app.route("/api/analysis/resume", methods=["POST"])
    def resume_analysis():
        return jsonify({"status": "success", "acknowledged": controller.resume(), "state": controller.state})

    @app.route("/api/analysis/stop", methods=["POST"])
    def stop_analysis():
        return jsonify({"status": "success", "acknowledged": controller.stop(), "state": controller.state})

    @app.route("/api/analysis/retry", methods=["POST"])
    def retry_analysis():
        try:
            started = controller.retry_failed()
        except RuntimeError as e:
            return _error(str(e), 409)
        if not started:
            return _error("No failed tickers to retry", 400)
        return _json({"status": "started", **controller.status()}, 202)

    @app.route("/api/analysis/status")
    def analysis_status():
        return _json({"status": "success", **controller.status()})

    @app.route("/api/analysis/results")
    def analysis_results():
        """Results for a tab: triple (alerts), bb (band touches) or all."""
        tab = request.args.get("tab", "all")
        if tab == "triple":
            results = store.triple_signals()
        elif tab == "bb":
            results = store.band_touches()
        elif tab == "all":
            results = store.all()
        else:
            return _error(f"Unknown tab '{tab}'", 400)
        return _json({
            "status": "success",
            "tab": tab,
            "count": len(results),
            "results": results,
        })

    @app.route("/api/analysis/results/<symbol>", methods=["DELETE"])
    def remove_result(symbol):
        if not store.remove(normalize_ticker(symbol)):
            return _error(f"No result for '{normalize_ticker(symbol)}'", 404)
        return jsonify({"status": "success"})

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------
    @app.route("/api/settings")
    def get_settings():
        return jsonify({"status": "success", "settings": settings_to_payload(controller.settings)})

    @app.route("/api/settings", methods=["PUT"])
    def put_settings():
        """Replace analysis settings; existing results are re-labelled immediately."""
        try:
            new_settings = settings_from_payload(request.get_json(silent=True))
            stale = controller.update_settings(new_settings)
        except SettingsError as e:
            return _error(str(e), 400)
        return _json({
            "status": "success",
            "settings": settings_to_payload(controller.settings),
            "requires_reanalysis": stale,
        })

    # ------------------------------------------------------------------
    # On-demand single ticker
    # ------------------------------------------------------------------
    @app.route("/api/ticker/<symbol>")
    def search_ticker(symbol):
        """Analyze a single ticker on-demand and upsert it into the results."""
        symbol = normalize_ticker(symbol)
        if not is_valid_symbol(symbol):
            return _error("Invalid ticker symbol", 400)

        try:
            result = analyze_ticker(symbol, scanner["fetcher"], controller.settings)
        except ScanError as e:
            result = error_result(symbol, e)
        except Exception as e:
            return _error(str(e), 500)
        store.upsert(result)

        if result["error_code"] == "NOT_FOUND":
            return _json({"status": "error", **result}, 404)
        if result["error"]:
            return _json({"status": "error", **result}, 502)
        return _json({"status": "success", **result})

    # ------------------------------------------------------------------
    # Market indicators
    # ------------------------------------------------------------------
    @app.route("/api/market-indicators")
    def market_indicators():
        return _json({
            "status": "success",
            "timestamp": datetime.datetime.now().isoformat(),
            **scanner["market"].get(),
        })

    return app


# ------------------------------------------------------------------
# Main
# ------------------------------------------------------------------
if __name__ == "__main__":
    config = load_config()
    app = create_app(build_scanner(config))
    port = config["port"]

    print(f"\n{'='*60}")
    print("  Triple Signal Scanner API")
    print("=" * 60)
    print(f"  Watchlist:   http://localhost:{port}/api/tickers")
    print(f"  Start run:   POST http://localhost:{port}/api/analysis/start")
    print(f"  Status:      http://localhost:{port}/api/analysis/status")
    print(f"  Results:     http://localhost:{port}/api/analysis/results?tab=triple")
    print(f"  Transport:   {app.config['SCANNER']['transport'].name}")
    print("=" * 60 + "\n")
    app.run(host="0.0.0.0", port=port, debug=bool(os.environ.get("FLASK_DEBUG")), threaded=True)
