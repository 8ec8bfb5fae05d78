from __future__ import annotations

import io
import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Sink(Protocol):
    def send(self, data: memoryview) -> int: ...


class ResilientWriter(io.RawIOBase):
    """Raw writer that turns short sends into an all-or-nothing write.

    Sockets may accept only part of a buffer per ``send`` call. ``write`` keeps
    sending the unwritten suffix until everything is out, so a buffered writer
    stacked on top never sees a partial count. The first error raised by the
    sink aborts the call; bytes already transmitted are not reported.
    """

    def __init__(self, sink: Sink):
        super().__init__()
        self._sink = sink

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        if self.closed:
            raise ValueError("write to closed writer")

        view = memoryview(b).cast("B")
        total = len(view)
        remaining = total
        while remaining:
            n = self._sink.send(view[total - remaining :])
            if n == 0:
                raise BrokenPipeError("sink accepted no bytes")
            remaining -= n
            if remaining:
                logger.debug("short write: n=%d, remaining=%d", n, remaining)
        return total
