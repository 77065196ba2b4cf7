#!/usr/bin/env python3
"""
Execution Controller — walks a ticker queue through fetch -> indicators ->
classification on a single worker thread, with pause / resume / stop and a
retry path for tickers that failed on rate limits or network errors.

Run states:
    idle -> running -> (paused <-> running) -> (stopping) -> completed | stopped

The only suspension points are the pause wait (a Condition released by
resume() or stop()) and the network call itself, which stop() aborts through
the run's cancel event.
"""

import threading
import traceback

from indicator_engine import compute_snapshot, snapshot_complete
from results import ResultStore, build_result, error_result
from scan_config import (
    INTER_TICKER_DELAY,
    MAX_RETRY_ROUNDS,
    RETRY_BACKOFF_SECONDS,
    validate_settings,
)
from scan_errors import InsufficientData, NetworkError, RateLimited, ScanError, UserAbort
from series_fetcher import ensure_sufficient, normalize_ticker
from signal_classifier import classify, stale_settings

RETRYABLE_CODES = (NetworkError.code, RateLimited.code)


def analyze_ticker(ticker, fetcher, settings, cancel=None):
    """Run full analysis pipeline for a single ticker. Raises ScanError subclasses."""
    fetched = fetcher.fetch(ticker, cancel=cancel)
    series = ensure_sufficient(fetched["series"], settings)
    snapshot = compute_snapshot(series, settings)
    if not snapshot_complete(snapshot):
        raise InsufficientData("indicators undefined for this series")
    flags = classify(snapshot, series["adj_closes"][-1], series["closes"][-1], settings)
    return build_result(ticker, series, snapshot, flags, fetched["source"])


class ExecutionState:
    """Mutable state of one run; owned by the controller."""

    def __init__(self, queue):
        self.queue = list(queue)
        self.cursor = 0
        self.paused = False
        self.stopping = False
        self.waiting = False
        self.finished = False
        self.failed_tickers = []
        self.cancel = threading.Event()

    @property
    def total(self):
        return len(self.queue)

    @property
    def interrupted(self):
        """Stopped with tickers left unprocessed."""
        return self.stopping and self.cursor < self.total


class ExecutionController:
    def __init__(self, fetcher, store=None, settings=None,
                 inter_ticker_delay=INTER_TICKER_DELAY,
                 max_retry_rounds=MAX_RETRY_ROUNDS,
                 retry_backoff=RETRY_BACKOFF_SECONDS):
        self.fetcher = fetcher
        self.store = store if store is not None else ResultStore()
        self.settings = validate_settings(settings or {})
        self.inter_ticker_delay = inter_ticker_delay
        self.max_retry_rounds = max(1, max_retry_rounds)
        self.retry_backoff = retry_backoff

        self._cond = threading.Condition()
        self._state = None
        self._thread = None
        self._progress = None
        self._listeners = []

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, on_progress=None, on_result=None):
        """Register callbacks; they run on the worker thread."""
        self._listeners.append((on_progress, on_result))

    def _notify(self, index, payload):
        for listener in list(self._listeners):
            callback = listener[index]
            if callback is None:
                continue
            try:
                callback(payload)
            except Exception as e:
                print(f"  [WARN] listener {callback!r} failed: {e}")

    def _emit_progress(self, current, total, current_ticker):
        self._progress = {"current": current, "total": total, "current_ticker": current_ticker}
        self._notify(0, dict(self._progress))

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    def start(self, tickers, clear_results=False):
        """Begin a new run over `tickers`. Returns False when there is nothing to do."""
        queue = []
        for ticker in tickers:
            ticker = normalize_ticker(ticker)
            if ticker and ticker not in queue:
                queue.append(ticker)
        if not queue:
            return False

        with self._cond:
            if self._state is not None and not self._state.finished:
                raise RuntimeError("An analysis run is already active; stop it first")
            state = ExecutionState(queue)
            self._state = state

        if clear_results:
            self.store.clear()
        self._emit_progress(0, state.total, None)
        self._thread = threading.Thread(target=self._run, args=(state,), name="signal-scan", daemon=True)
        self._thread.start()
        return True

    def pause(self):
        with self._cond:
            state = self._state
            if state is None or state.finished or state.stopping:
                return False
            state.paused = True
            print("  [Controller] pause requested")
            return True

    def resume(self):
        with self._cond:
            state = self._state
            if state is None or not state.paused:
                return False
            state.paused = False
            self._cond.notify()
            print("  [Controller] resuming")
            return True

    def stop(self):
        """Terminal for the current run: wakes a paused loop and aborts the in-flight call."""
        with self._cond:
            state = self._state
            if state is None or state.finished:
                return False
            state.stopping = True
            state.paused = False
            state.cancel.set()
            self._cond.notify_all()
            print("  [Controller] stop requested")
            return True

    def retry_failed(self):
        """New run scoped to the previous run's rate-limited / network-failed tickers."""
        failed = self.failed_tickers
        if not failed:
            return False
        return self.start(failed)

    def run(self, tickers, clear_results=False):
        """Blocking variant of start(), used by the CLI."""
        started = self.start(tickers, clear_results=clear_results)
        if started:
            self.join()
        return self.store.all()

    def join(self, timeout=None):
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        return thread is None or not thread.is_alive()

    def clear(self):
        """Discard a finished run's state."""
        with self._cond:
            if self._state is not None and not self._state.finished:
                raise RuntimeError("Cannot clear an active run")
            self._state = None
            self._progress = None

    def update_settings(self, settings):
        """Swap settings and re-label stored results. Returns keys that need a re-fetch."""
        new_settings = validate_settings(settings)
        stale = stale_settings(self.settings, new_settings)
        self.settings = new_settings
        self.store.reclassify(new_settings)
        if stale:
            print(f"  [WARN] {', '.join(stale)} changed; existing results keep their old indicator values until re-analyzed")
        return stale

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def state(self):
        with self._cond:
            state = self._state
            if state is None:
                return "idle"
            if state.finished:
                return "stopped" if state.interrupted else "completed"
            if state.stopping:
                return "stopping"
            if state.paused:
                return "paused"
            return "running"

    @property
    def waiting(self):
        """True while the worker is blocked in the pause wait."""
        with self._cond:
            return self._state is not None and self._state.waiting

    @property
    def failed_tickers(self):
        with self._cond:
            return list(self._state.failed_tickers) if self._state else []

    def progress(self):
        return dict(self._progress) if self._progress else None

    def status(self):
        with self._cond:
            state = self._state
            processed = state.cursor if state else 0
            total = state.total if state else 0
        return {
            "state": self.state,
            "progress": self.progress(),
            "processed": processed,
            "total": total,
            "failed_tickers": self.failed_tickers,
        }

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------
    def _wait_if_paused(self, state):
        """Block while paused. Returns False when the run must exit."""
        with self._cond:
            if not state.paused or state.stopping:
                return not state.stopping
            cursor, total = state.cursor, state.total

        # listeners run outside the lock
        self._emit_progress(cursor, total, f"paused ({cursor}/{total})")
        print(f"  [Controller] paused at {cursor}/{total}, waiting for resume...")

        with self._cond:
            while state.paused and not state.stopping:
                state.waiting = True
                self._cond.wait()
            state.waiting = False
            return not state.stopping

    def _analyze_with_retry(self, state, ticker):
        """Analyze one ticker. Returns a result dict, or None if the run was aborted."""
        attempt = 0
        while True:
            attempt += 1
            try:
                return analyze_ticker(ticker, self.fetcher, self.settings, cancel=state.cancel)
            except UserAbort:
                return None
            except NetworkError as e:
                if attempt >= self.max_retry_rounds:
                    print(f"  [ERROR] {ticker}: giving up after {attempt} attempts ({e})")
                    return error_result(ticker, NetworkError(f"{e} (gave up after {attempt} attempts)"))
                wait = self.retry_backoff * attempt
                print(f"  [WARN] {ticker}: {e}; retrying in {wait:.1f}s")
                if state.cancel.wait(wait):
                    return None
            except ScanError as e:
                return error_result(ticker, e)
            except Exception as e:
                print(f"  [ERROR] {ticker}: unexpected failure: {e}")
                traceback.print_exc()
                return error_result(ticker, e)

    def _run(self, state):
        print(f"\n{'='*60}")
        print(f"  Analysis run started: {state.total} tickers")
        print(f"{'='*60}")
        try:
            while state.cursor < state.total:
                if not self._wait_if_paused(state):
                    break

                ticker = state.queue[state.cursor]
                self._emit_progress(state.cursor + 1, state.total, ticker)
                print(f"  Analyzing {ticker} ({state.cursor + 1}/{state.total})...", end=" ")

                result = self._analyze_with_retry(state, ticker)
                if result is None:
                    print("ABORTED")
                    break

                with self._cond:
                    if state.stopping:
                        print("DISCARDED (stopping)")
                        break
                    self.store.upsert(result)
                    if result["error_code"] in RETRYABLE_CODES:
                        state.failed_tickers.append(ticker)
                    state.cursor += 1

                if result["error"]:
                    print(result["error"])
                else:
                    flag = "TRIPLE" if result["alert"] else ("BB" if result["bb_touch"] else "-")
                    print(f"RSI={result['rsi']:.1f} MFI={result['mfi']:.1f} {flag}")
                self._notify(1, dict(result))

                if state.cursor < state.total and not result["cached"] and self.inter_ticker_delay > 0:
                    state.cancel.wait(self.inter_ticker_delay)
        finally:
            with self._cond:
                state.finished = True
                state.paused = False
                state.waiting = False
                label = "STOPPED" if state.interrupted else "COMPLETED"
            self._emit_progress(state.cursor, state.total, None)
            print(f"  Run {label}: {state.cursor}/{state.total} analyzed, {len(state.failed_tickers)} to retry")
