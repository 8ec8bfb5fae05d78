from __future__ import annotations

import threading
import time

import pytest

from proxyconn.ticker import ManualTicker, Ticker


def test_manual_ticker_delivers_each_tick():
    t = ManualTicker()
    t.tick()
    t.tick()
    assert t.wait() is True
    assert t.wait() is True
    assert t.consumed == 2
    assert t.wait_consumed(2, timeout=0.1)


def test_manual_ticker_stop_wakes_waiter():
    t = ManualTicker()
    result = []
    th = threading.Thread(target=lambda: result.append(t.wait()))
    th.start()
    time.sleep(0.05)
    t.stop()
    th.join(2.0)
    assert result == [False]
    assert t.wait() is False


def test_ticker_waits_for_interval():
    t = Ticker(0.05)
    start = time.monotonic()
    assert t.wait() is True
    assert time.monotonic() - start >= 0.04


def test_stopped_ticker_returns_immediately():
    t = Ticker(10.0)
    t.stop()
    start = time.monotonic()
    assert t.wait() is False
    assert time.monotonic() - start < 1.0


def test_ticker_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Ticker(0)
