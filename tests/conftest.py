from __future__ import annotations

import pytest

from proxyconn.bench import LineSink
from proxyconn.handler import ProxyConnectionHandler
from proxyconn.ticker import ManualTicker


@pytest.fixture
def sink():
    s = LineSink().start()
    yield s
    s.close()


@pytest.fixture
def ticker():
    return ManualTicker()


@pytest.fixture
def handler(sink, ticker):
    h = ProxyConnectionHandler(sink.address, ticker, dial_timeout=2.0)
    h.start()
    yield h
    if not h.closed:
        h.close()
