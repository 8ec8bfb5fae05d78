from __future__ import annotations

DEFAULT_METRICS_PORT = 2878

DEFAULT_DIAL_TIMEOUT_S = 10.0
DEFAULT_WRITE_TIMEOUT_S = 10.0
DEFAULT_FLUSH_INTERVAL_S = 1.0

DEFAULT_BUFFER_SIZE = 4096  # bytes held before the writer spills to the socket
