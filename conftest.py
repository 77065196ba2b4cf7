import pytest

from execution_controller import ExecutionController
from fake_upstream import FakeTransport
from results import ResultStore
from series_cache import SeriesCache
from series_fetcher import SeriesFetcher


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def cache(clock):
    return SeriesCache(ttl=300, clock=clock)


@pytest.fixture
def fetcher(transport, cache, clock):
    return SeriesFetcher(transport, cache, clock=clock)


@pytest.fixture
def controller(fetcher):
    ctl = ExecutionController(fetcher, store=ResultStore(), inter_ticker_delay=0, retry_backoff=0)
    yield ctl
    ctl.stop()
    ctl.join(timeout=5)
