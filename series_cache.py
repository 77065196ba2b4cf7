#!/usr/bin/env python3
"""
Time-boxed in-memory cache: { "AAPL": { "data": {...}, "ts": timestamp } }

Entries are valid while now - ts < ttl. Expired entries read as a miss and
are dropped; put() always overwrites.
"""

import threading
import time

from scan_config import CACHE_TTL


class SeriesCache:
    def __init__(self, ttl=CACHE_TTL, clock=time.time):
        self.ttl = ttl
        self.clock = clock
        self._entries = {}
        self._lock = threading.Lock()

    def get(self, key):
        key = key.upper()
        now = self.clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if now - entry["ts"] < self.ttl:
                return entry["data"]
            del self._entries[key]
        return None

    def put(self, key, data):
        with self._lock:
            self._entries[key.upper()] = {"data": data, "ts": self.clock()}

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __contains__(self, key):
        return self.get(key) is not None

    def __len__(self):
        with self._lock:
            return len(self._entries)
