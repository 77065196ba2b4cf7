#!/usr/bin/env python3
"""
HTTP transport strategies.

Every strategy answers request(url, options) with the same response dict
({status, headers, body}) and raises the same errors, so the fetchers above
never branch on how a call leaves the process:
  - DirectTransport: plain requests.Session call
  - ProxyTransport:  same call routed through an HTTP(S) relay
resolve_transport() picks one from the host environment once at startup.
"""

import random

import requests

from scan_config import REQUEST_TIMEOUT
from scan_errors import NetworkError, UserAbort

# Browser-like agents; Yahoo throttles default library agents much faster
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

_BASE_HEADERS = {
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}

CHUNK_SIZE = 16 * 1024


class DirectTransport:
    """Calls the upstream directly from this process."""

    name = "direct"

    def __init__(self, session=None, timeout=REQUEST_TIMEOUT):
        self.session = session or requests.Session()
        self.timeout = timeout

    def _proxies(self):
        return None

    def request(self, url, options=None):
        options = options or {}
        cancel = options.get("cancel")
        if cancel is not None and cancel.is_set():
            raise UserAbort("request cancelled before sending")

        headers = {**_BASE_HEADERS, "User-Agent": random.choice(USER_AGENTS)}
        headers.update(options.get("headers") or {})

        try:
            resp = self.session.request(
                options.get("method", "GET"),
                url,
                params=options.get("params"),
                headers=headers,
                timeout=options.get("timeout", self.timeout),
                proxies=self._proxies(),
                stream=True,
            )
        except requests.RequestException as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e

        try:
            chunks = []
            for chunk in resp.iter_content(chunk_size=CHUNK_SIZE):
                if cancel is not None and cancel.is_set():
                    raise UserAbort("request cancelled during download")
                chunks.append(chunk)
            raw = b"".join(chunks)
        except requests.RequestException as e:
            raise NetworkError(f"{type(e).__name__}: {e}") from e
        finally:
            resp.close()

        return {
            "status": resp.status_code,
            "headers": {k.lower(): v for k, v in resp.headers.items()},
            "body": raw.decode(resp.encoding or "utf-8", errors="replace"),
        }


class ProxyTransport(DirectTransport):
    """Routes every call through a relay (corporate proxy, NAS relay, ...)."""

    name = "proxy"

    def __init__(self, proxy_url, session=None, timeout=REQUEST_TIMEOUT):
        super().__init__(session=session, timeout=timeout)
        self.proxy_url = proxy_url

    def _proxies(self):
        return {"http": self.proxy_url, "https": self.proxy_url}


def resolve_transport(env, timeout=REQUEST_TIMEOUT, session=None):
    """Pick the transport strategy for this host. `env` is a config dict or os.environ-like mapping."""
    proxy_url = env.get("proxy_url") or env.get("SIGNAL_SCAN_PROXY_URL")
    if proxy_url:
        return ProxyTransport(proxy_url, session=session, timeout=timeout)
    return DirectTransport(session=session, timeout=timeout)
