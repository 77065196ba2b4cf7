#!/usr/bin/env python3
"""Transport strategies with a stubbed requests session."""

import threading

import pytest
import requests

from scan_errors import NetworkError, UserAbort
from transport import DirectTransport, ProxyTransport, resolve_transport


class StubResponse:
    def __init__(self, status_code=200, chunks=(b'{"ok": true}',), headers=None, on_chunk=None):
        self.status_code = status_code
        self.chunks = chunks
        self.headers = headers or {"Content-Type": "application/json"}
        self.encoding = "utf-8"
        self.on_chunk = on_chunk
        self.closed = False

    def iter_content(self, chunk_size=None):
        for i, chunk in enumerate(self.chunks):
            if self.on_chunk is not None:
                self.on_chunk(i)
            yield chunk

    def close(self):
        self.closed = True


class StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_resolve_direct_by_default():
    transport = resolve_transport({})
    assert isinstance(transport, DirectTransport)
    assert transport.name == "direct"


def test_resolve_proxy_from_env():
    session = StubSession(StubResponse())
    transport = resolve_transport({"SIGNAL_SCAN_PROXY_URL": "http://relay.local:8080"}, session=session)
    assert isinstance(transport, ProxyTransport)

    transport.request("https://example.com/chart")
    _, _, kwargs = session.calls[0]
    assert kwargs["proxies"] == {"http": "http://relay.local:8080", "https": "http://relay.local:8080"}


def test_direct_request_returns_response_dict():
    session = StubSession(StubResponse(chunks=(b'{"chart"', b': 1}')))
    transport = DirectTransport(session=session, timeout=7)

    resp = transport.request("https://example.com/chart", {"params": {"interval": "1d"}, "headers": {"Referer": "x"}})
    assert resp == {"status": 200, "headers": {"content-type": "application/json"}, "body": '{"chart": 1}'}

    method, url, kwargs = session.calls[0]
    assert method == "GET"
    assert kwargs["params"] == {"interval": "1d"}
    assert kwargs["timeout"] == 7
    assert kwargs["headers"]["Referer"] == "x"
    assert "User-Agent" in kwargs["headers"]
    assert kwargs["proxies"] is None


def test_connection_failure_is_network_error():
    session = StubSession(error=requests.ConnectionError("connection reset"))
    with pytest.raises(NetworkError):
        DirectTransport(session=session).request("https://example.com")


def test_timeout_is_network_error():
    session = StubSession(error=requests.Timeout("read timed out"))
    with pytest.raises(NetworkError) as exc:
        DirectTransport(session=session).request("https://example.com")
    assert exc.value.retryable


def test_cancel_before_send():
    cancel = threading.Event()
    cancel.set()
    session = StubSession(StubResponse())
    with pytest.raises(UserAbort):
        DirectTransport(session=session).request("https://example.com", {"cancel": cancel})
    assert session.calls == []


def test_cancel_during_download_closes_response():
    cancel = threading.Event()

    def on_chunk(i):
        if i == 1:
            cancel.set()

    response = StubResponse(chunks=(b"a", b"b", b"c"), on_chunk=on_chunk)
    with pytest.raises(UserAbort):
        DirectTransport(session=StubSession(response)).request("https://example.com", {"cancel": cancel})
    assert response.closed
