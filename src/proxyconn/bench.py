from __future__ import annotations

import socket
import struct
import threading
import time
from dataclasses import dataclass
from typing import List

from .constants import DEFAULT_BUFFER_SIZE
from .errors import ProxyError
from .handler import ProxyConnectionHandler, join_address
from .ticker import Ticker


class LineSink:
    """Loopback TCP listener that keeps every byte it receives.

    Stands in for a metrics proxy in benchmarks and tests. Each accepted
    connection is drained by its own thread into one shared buffer.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind((host, port))
        self.sock.listen(8)
        self.sock.settimeout(0.1)
        self.host, self.port = self.sock.getsockname()[:2]

        self._cond = threading.Condition()
        self._chunks: List[bytes] = []
        self._received = 0
        self._conns: List[socket.socket] = []
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, daemon=True)

    @property
    def address(self) -> str:
        return join_address(self.host, self.port)

    @property
    def connections(self) -> int:
        with self._cond:
            return len(self._conns)

    def start(self) -> "LineSink":
        self._thread.start()
        return self

    def _serve(self) -> None:
        while not self._stopped.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            with self._cond:
                self._conns.append(conn)
            threading.Thread(target=self._drain, args=(conn,), daemon=True).start()

    def _drain(self, conn: socket.socket) -> None:
        while True:
            try:
                chunk = conn.recv(65536)
            except OSError:
                return
            if not chunk:
                return
            with self._cond:
                self._chunks.append(chunk)
                self._received += len(chunk)
                self._cond.notify_all()

    def data(self) -> bytes:
        with self._cond:
            return b"".join(self._chunks)

    def wait_for(self, nbytes: int, timeout: float = 5.0) -> bytes:
        """Wait until at least ``nbytes`` arrived, then return everything received."""
        with self._cond:
            self._cond.wait_for(lambda: self._received >= nbytes, timeout=timeout)
            return b"".join(self._chunks)

    def close(self, abort: bool = False) -> None:
        """Stop listening and drop every client.

        With ``abort`` the clients are reset (RST) instead of closed cleanly,
        which makes the next write on their side fail quickly.
        """
        self._stopped.set()
        self._thread.join(timeout=1.0)
        self.sock.close()
        with self._cond:
            conns, self._conns = self._conns, []
        for conn in conns:
            try:
                # wakes the drain thread blocked in recv
                conn.shutdown(socket.SHUT_RD if abort else socket.SHUT_RDWR)
            except OSError:
                pass
            if abort:
                conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            conn.close()


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    lines_sent: int
    lines_received: int
    bytes_received: int
    failures: int
    duration_s: float
    lines_per_s: float


def run_benchmark(
    *,
    threads: int = 100,
    lines_per_thread: int = 1000,
    flush_interval_s: float = 0.05,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    timeout_s: float = 30.0,
) -> BenchmarkResult:
    sink = LineSink().start()
    handler = ProxyConnectionHandler(
        sink.address, Ticker(flush_interval_s), buffer_size=buffer_size
    )
    handler.start()

    sent = [0] * threads
    expected_bytes = [0] * threads
    ts = int(time.time())

    def worker(idx: int) -> None:
        for n in range(lines_per_thread):
            line = f"bench.metric {n} {ts} source=worker_{idx}\n"
            try:
                handler.send_data(line)
            except (ProxyError, OSError):
                continue
            sent[idx] += 1
            expected_bytes[idx] += len(line)

    start = time.perf_counter()
    try:
        try:
            handler.connect()
            workers = [
                threading.Thread(target=worker, args=(i,), daemon=True) for i in range(threads)
            ]
            for t in workers:
                t.start()
            for t in workers:
                t.join()
        finally:
            handler.close()
        received = sink.wait_for(sum(expected_bytes), timeout=timeout_s)
    finally:
        sink.close()

    duration_s = max(0.001, time.perf_counter() - start)
    lines_sent = sum(sent)
    return BenchmarkResult(
        lines_sent=lines_sent,
        lines_received=received.count(b"\n"),
        bytes_received=len(received),
        failures=handler.get_failure_count(),
        duration_s=duration_s,
        lines_per_s=lines_sent / duration_s,
    )
