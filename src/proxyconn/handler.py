from __future__ import annotations

import io
import logging
import socket
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

from .constants import DEFAULT_BUFFER_SIZE, DEFAULT_DIAL_TIMEOUT_S, DEFAULT_WRITE_TIMEOUT_S
from .errors import InvalidAddressError, NotConnectedError, ProxyConnectError
from .locks import RWLock
from .ticker import TickSource
from .writer import ResilientWriter

logger = logging.getLogger(__name__)


def split_address(address: str) -> Tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit() or not 0 < int(port) < 65536:
        raise InvalidAddressError(f"invalid proxy address: {address!r}, expected host:port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def join_address(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True, slots=True)
class Session:
    """An open socket together with the buffered writer layered over it."""

    sock: socket.socket
    raw: ResilientWriter
    writer: io.BufferedWriter

    @classmethod
    def open(
        cls,
        target: Tuple[str, int],
        dial_timeout: float,
        write_timeout: Optional[float],
        buffer_size: int,
    ) -> "Session":
        sock = socket.create_connection(target, timeout=dial_timeout)
        sock.settimeout(write_timeout)
        raw = ResilientWriter(sock)
        return cls(sock, raw, io.BufferedWriter(raw, buffer_size))

    def close(self) -> None:
        # Closing the raw layer first stops the buffered writer from flushing
        # into the socket when it is finalized.
        self.raw.close()
        self.sock.close()


class ProxyConnectionHandler:
    """Holds one long-lived TCP connection to a metrics proxy.

    Writes accumulate in a buffer that a background thread flushes on every
    tick of the injected ticker. A failed flush drops the connection; the
    caller decides when to ``connect()`` again. ``close()`` is single-use.
    """

    def __init__(
        self,
        address: str,
        ticker: TickSource,
        *,
        dial_timeout: float = DEFAULT_DIAL_TIMEOUT_S,
        write_timeout: Optional[float] = DEFAULT_WRITE_TIMEOUT_S,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        self._address = address
        self._target = split_address(address)
        self._ticker = ticker
        self.dial_timeout = dial_timeout
        self.write_timeout = write_timeout
        self.buffer_size = buffer_size

        self._lock = RWLock()
        self._session: Optional[Session] = None

        self._failures = 0
        self._failures_lock = threading.Lock()

        self._done: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    @property
    def address(self) -> str:
        return self._address

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._done = threading.Event()
        self._thread = threading.Thread(
            target=self._flush_loop,
            args=(self._done,),
            name=f"proxyconn-flush-{self.address}",
            daemon=True,
        )
        self._thread.start()

    def _flush_loop(self, done: threading.Event) -> None:
        while not done.is_set():
            if not self._ticker.wait():
                return
            try:
                self.flush()
            except Exception:
                logger.exception("periodic flush to %s failed", self.address)

    def connect(self) -> None:
        with self._lock.write():
            if self._session is not None:
                logger.info("replacing open connection to proxy at address: %s", self.address)
                try:
                    self._session.writer.flush()
                except Exception as exc:
                    self._record_failure()
                    logger.error("flush of replaced connection to %s failed: %s", self.address, exc)
                self._session.close()
                self._session = None
            try:
                self._session = Session.open(
                    self._target, self.dial_timeout, self.write_timeout, self.buffer_size
                )
            except OSError as exc:
                raise ProxyConnectError(self.address, exc) from exc
        logger.info("connected to proxy at address: %s", self.address)

    def connected(self) -> bool:
        with self._lock.read():
            return self._session is not None

    def flush(self) -> None:
        session: Optional[Session] = None
        try:
            with self._lock.read():
                session = self._session
                if session is None:
                    return
                session.writer.flush()
        except Exception as exc:
            logger.error("flush to %s failed: %s", self.address, exc)
            self._reset_connection(session)
            raise

    def send_data(self, lines: str) -> None:
        data = lines.encode("utf-8")
        session: Optional[Session] = None
        try:
            with self._lock.read():
                session = self._session
                if session is None:
                    raise NotConnectedError()
                session.writer.write(data)
        except NotConnectedError:
            raise
        except OSError as exc:
            self._record_failure()
            logger.warning("error sending data to %s: %s", self.address, exc)
            raise
        except Exception:
            # we couldn't write the line so something is wrong with the connection
            self._record_failure()
            logger.exception("unexpected error sending data to %s", self.address)
            self._reset_connection(session)
            raise

    def get_failure_count(self) -> int:
        return self._failures

    def close(self) -> None:
        if self._closed:
            raise RuntimeError(f"connection handler for {self.address} already closed")
        self._closed = True

        try:
            self.flush()
        except Exception as exc:
            logger.error("final flush to %s failed: %s", self.address, exc)
        finally:
            if self._done is not None:
                self._done.set()
            self._ticker.stop()
            if self._thread is not None:
                self._thread.join()

            with self._lock.write():
                if self._session is not None:
                    self._session.close()
                    self._session = None

    def _record_failure(self) -> None:
        with self._failures_lock:
            self._failures += 1

    def _reset_connection(self, stale: Optional[Session]) -> None:
        logger.warning("resetting proxy connection to %s", self.address)
        with self._lock.write():
            if stale is None:
                return
            stale.close()
            # connect() may already have swapped in a fresh session
            if self._session is stale:
                self._session = None
