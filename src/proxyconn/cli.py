from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Iterable

from .bench import run_benchmark
from .constants import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_DIAL_TIMEOUT_S,
    DEFAULT_FLUSH_INTERVAL_S,
    DEFAULT_METRICS_PORT,
)
from .errors import ProxyConnectError, ProxyError
from .handler import ProxyConnectionHandler, join_address
from .ticker import Ticker

logger = logging.getLogger(__name__)


def send_lines(handler: ProxyConnectionHandler, lines: Iterable[str]) -> int:
    sent = 0
    for line in lines:
        if not line.strip():
            continue
        if not line.endswith("\n"):
            line += "\n"
        try:
            handler.send_data(line)
        except (ProxyError, OSError) as exc:
            logger.warning("dropped line: %s", exc)
            continue
        sent += 1
    return sent


def cmd_send(args: argparse.Namespace) -> int:
    address = join_address(args.host, args.port)
    handler = ProxyConnectionHandler(
        address,
        Ticker(args.flush_interval),
        dial_timeout=args.dial_timeout,
        buffer_size=args.buffer_size,
    )
    handler.start()
    try:
        handler.connect()
    except ProxyConnectError as exc:
        logger.error("%s", exc)
        handler.close()
        return 1

    try:
        if args.file == "-":
            sent = send_lines(handler, sys.stdin)
        else:
            with open(args.file, "r", encoding="utf-8") as f:
                sent = send_lines(handler, f)
    finally:
        handler.close()

    payload = {
        "role": "sender",
        "address": address,
        "lines": sent,
        "failures": handler.get_failure_count(),
    }
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        threads=args.threads,
        lines_per_thread=args.lines_per_thread,
        flush_interval_s=args.flush_interval,
        buffer_size=args.buffer_size,
    )
    payload = {"role": "bench", **asdict(r)}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="proxyconn", description="Stream metric lines to a proxy over TCP.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--flush-interval", type=float, default=DEFAULT_FLUSH_INTERVAL_S)
        x.add_argument("--buffer-size", type=int, default=DEFAULT_BUFFER_SIZE)
        x.add_argument("--json", action="store_true")

    send = sub.add_parser("send", help="send metric lines from a file or stdin")
    add_common(send)
    send.add_argument("--host", required=True)
    send.add_argument("--port", type=int, default=DEFAULT_METRICS_PORT)
    send.add_argument("--dial-timeout", type=float, default=DEFAULT_DIAL_TIMEOUT_S)
    send.add_argument("--file", default="-", help="file of metric lines, '-' for stdin")
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="concurrent senders against a loopback sink")
    add_common(bench)
    bench.add_argument("--threads", type=int, default=100)
    bench.add_argument("--lines-per-thread", type=int, default=1000)
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
