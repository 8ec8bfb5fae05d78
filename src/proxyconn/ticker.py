from __future__ import annotations

import threading
import time
from typing import Union

from .constants import DEFAULT_FLUSH_INTERVAL_S


class Ticker:
    """Wall-clock periodic signal.

    Ticks land on a fixed cadence measured from construction; ticks missed
    while the consumer was busy collapse into a single tick.
    """

    def __init__(self, interval_s: float = DEFAULT_FLUSH_INTERVAL_S):
        if interval_s <= 0:
            raise ValueError(f"tick interval must be positive, got {interval_s}")
        self.interval_s = interval_s
        self._stopped = threading.Event()
        self._next = time.monotonic() + interval_s

    def wait(self) -> bool:
        """Block until the next tick. Returns False once the ticker is stopped."""
        if self._stopped.wait(max(0.0, self._next - time.monotonic())):
            return False
        now = time.monotonic()
        while self._next <= now:
            self._next += self.interval_s
        return True

    def stop(self) -> None:
        self._stopped.set()


class ManualTicker:
    """Ticker driven by explicit ``tick()`` calls, for deterministic flushing."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._pending = 0
        self._stopped = False
        self.consumed = 0

    def tick(self) -> None:
        with self._cond:
            self._pending += 1
            self._cond.notify_all()

    def wait(self) -> bool:
        with self._cond:
            self._cond.wait_for(lambda: self._pending > 0 or self._stopped)
            if self._stopped:
                return False
            self._pending -= 1
            self.consumed += 1
            self._cond.notify_all()
            return True

    def wait_consumed(self, n: int, timeout: float = 5.0) -> bool:
        """Block until at least ``n`` ticks have been picked up by a waiter."""
        with self._cond:
            return self._cond.wait_for(lambda: self.consumed >= n, timeout=timeout)

    def stop(self) -> None:
        with self._cond:
            self._stopped = True
            self._cond.notify_all()


TickSource = Union[Ticker, ManualTicker]
