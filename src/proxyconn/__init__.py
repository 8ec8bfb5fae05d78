"""proxyconn: a resilient TCP connection to a metrics proxy.

The package keeps a single long-lived connection, buffers metric lines, and
flushes them on a ticker:
- a raw writer that hides short socket writes
- a handler that owns the connection, the buffer, and the flush thread
- injectable tickers so flush cadence is deterministic under test

Formatting metric lines is left to the caller.
"""

from .errors import InvalidAddressError, NotConnectedError, ProxyConnectError, ProxyError
from .handler import ProxyConnectionHandler
from .ticker import ManualTicker, Ticker
from .writer import ResilientWriter

__all__ = [
    "InvalidAddressError",
    "ManualTicker",
    "NotConnectedError",
    "ProxyConnectError",
    "ProxyConnectionHandler",
    "ProxyError",
    "ResilientWriter",
    "Ticker",
]
