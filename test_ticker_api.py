#!/usr/bin/env python3
"""Flask API routes, driven through the test client with a canned transport."""

import pytest

from fake_upstream import FakeTransport, chart_response, declining_closes, json_response, rising_closes
from scan_config import load_config
from scanner import build_scanner
from ticker_api import create_app


@pytest.fixture
def upstream():
    return FakeTransport({
        "DROP": chart_response(declining_closes(40)),
        "RISE": chart_response(rising_closes(40)),
        "^VIX": chart_response([18.0 + (i % 5) for i in range(60)]),
        "graphdata": json_response({
            "fear_and_greed": {"score": 22.4, "rating": "extreme fear", "previous_close": 30.1},
            "put_call_options": {"rating": "fear", "data": [{"x": 1, "y": 0.91}, {"x": 2, "y": 1.034}]},
            "market_volatility": {"rating": "fear", "data": [{"x": 1, "y": 24.5}]},
        }),
    })


@pytest.fixture
def scanner(upstream):
    config = {**load_config({}), "inter_ticker_delay": 0, "retry_backoff": 0}
    scanner = build_scanner(config, transport=upstream)
    yield scanner
    scanner["controller"].stop()
    scanner["controller"].join(5)


@pytest.fixture
def client(scanner):
    app = create_app(scanner)
    app.config["TESTING"] = True
    return app.test_client()


def test_watchlist_routes(client):
    resp = client.post("/api/tickers", json={"tickers": "aapl, msft; BAD_SYM aapl"})
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["added"] == ["AAPL", "MSFT"]
    assert data["rejected"] == ["BAD_SYM"]

    assert client.get("/api/tickers").get_json()["tickers"] == ["AAPL", "MSFT"]
    assert client.delete("/api/tickers/aapl").get_json()["tickers"] == ["MSFT"]
    assert client.delete("/api/tickers/AAPL").status_code == 404
    assert client.post("/api/tickers", json={}).status_code == 400

    client.delete("/api/tickers")
    assert client.get("/api/tickers").get_json()["tickers"] == []


def test_batch_run_and_result_tabs(client, scanner):
    client.post("/api/tickers", json={"tickers": ["DROP", "RISE", "GONE"]})
    resp = client.post("/api/analysis/start", json={})
    assert resp.status_code == 202
    assert resp.get_json()["total"] == 3
    assert scanner["controller"].join(5)

    status = client.get("/api/analysis/status").get_json()
    assert status["state"] == "completed"
    assert status["processed"] == 3

    triple = client.get("/api/analysis/results?tab=triple").get_json()
    assert [r["ticker"] for r in triple["results"]] == ["DROP"]
    bb = client.get("/api/analysis/results?tab=bb").get_json()
    assert [r["ticker"] for r in bb["results"]] == ["DROP"]
    everything = client.get("/api/analysis/results").get_json()
    assert everything["count"] == 3
    assert client.get("/api/analysis/results?tab=macd").status_code == 400

    assert client.delete("/api/analysis/results/gone").status_code == 200
    assert client.delete("/api/analysis/results/GONE").status_code == 404


def test_start_without_tickers(client):
    assert client.post("/api/analysis/start", json={}).status_code == 400
    assert client.post("/api/analysis/retry").status_code == 400


def test_control_routes_acknowledge(client):
    resp = client.post("/api/analysis/pause").get_json()
    assert resp["acknowledged"] is False
    assert resp["state"] == "idle"
    assert client.post("/api/analysis/stop").get_json()["acknowledged"] is False


def test_settings_roundtrip_and_relabel(client, scanner):
    client.post("/api/analysis/start", json={"tickers": ["DROP"]})
    scanner["controller"].join(5)

    settings = client.get("/api/settings").get_json()["settings"]
    assert settings["rsiTripleSignal"] == 35
    assert settings["bbStdDev"] == 1.0

    resp = client.put("/api/settings", json={**settings, "rsiTripleSignal": 0, "opacity": 0.8})
    assert resp.status_code == 200
    assert resp.get_json()["requires_reanalysis"] == []
    assert client.get("/api/analysis/results?tab=triple").get_json()["count"] == 0

    resp = client.put("/api/settings", json={"bbPeriod": 10})
    assert resp.get_json()["requires_reanalysis"] == ["bb_period"]

    assert client.put("/api/settings", json={"rsiPeriod": -1}).status_code == 400
    assert client.put("/api/settings", json={"rsiTripleSignal": 140}).status_code == 400


def test_single_ticker_search(client, scanner):
    resp = client.get("/api/ticker/drop")
    data = resp.get_json()
    assert resp.status_code == 200
    assert data["ticker"] == "DROP"
    assert data["alert"] is True
    assert scanner["store"].get("DROP") is not None

    assert client.get("/api/ticker/NOPE").status_code == 404
    assert client.get("/api/ticker/BAD_SYM").status_code == 400


def test_market_indicators(client, upstream):
    data = client.get("/api/market-indicators").get_json()
    assert data["fear_and_greed"]["score"] == 22
    assert data["put_call_ratio"]["current"] == 1.03
    assert data["vix"]["source"] == "yahoo"
    assert data["vix"]["current"] == 22.0

    calls = len(upstream.calls)
    client.get("/api/market-indicators")
    assert len(upstream.calls) == calls
