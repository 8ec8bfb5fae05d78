from __future__ import annotations

import json
import socket

from proxyconn.bench import run_benchmark
from proxyconn.cli import main


def test_benchmark_delivers_every_line():
    r = run_benchmark(threads=4, lines_per_thread=200, flush_interval_s=0.01)
    assert r.lines_sent == 800
    assert r.lines_received == 800
    assert r.failures == 0
    assert r.bytes_received > 0
    assert r.lines_per_s > 0


def test_cli_bench_json(capsys):
    assert main(["bench", "--threads", "2", "--lines-per-thread", "50", "--flush-interval", "0.01", "--json"]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["role"] == "bench"
    assert out["lines_received"] == 100


def test_cli_send_file(sink, tmp_path, capsys):
    lines = [f"cli.metric {n} 1700000000 source=cli" for n in range(5)]
    path = tmp_path / "metrics.txt"
    path.write_text("\n".join(lines) + "\n\n", encoding="utf-8")

    rc = main([
        "send",
        "--host", sink.host,
        "--port", str(sink.port),
        "--file", str(path),
        "--flush-interval", "0.01",
        "--json",
    ])
    assert rc == 0
    out = json.loads(capsys.readouterr().out)
    assert out["lines"] == 5
    assert out["failures"] == 0

    expected = ("\n".join(lines) + "\n").encode()
    assert sink.wait_for(len(expected)) == expected


def test_cli_send_connect_failure(tmp_path):
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    path = tmp_path / "metrics.txt"
    path.write_text("a 1\n", encoding="utf-8")

    assert main(["send", "--host", "127.0.0.1", "--port", str(port), "--file", str(path), "--dial-timeout", "2"]) == 1
