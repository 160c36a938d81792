"""Tests for network readiness waiting."""

from __future__ import annotations

from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import socket
import threading
from typing import TYPE_CHECKING

import pytest

from nctl_harness.errors import ReadinessTimeoutError
from nctl_harness.orchestration.readiness import http_status_probe, poll_until_ready, rest_port, wait_fixed

if TYPE_CHECKING:
    from collections.abc import Iterator


class FakeClock:
    """Monotonic clock advanced only by the fake sleeper."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class _StatusHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802 - http.server naming
        status = 200 if self.path == "/status" else 404
        body = b"{}"
        self.send_response(status)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: object) -> None:  # noqa: A002 - signature from base class
        return


@pytest.fixture
def status_server() -> Iterator[int]:
    """Serve ``/status`` on an ephemeral port."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _StatusHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()


def _closed_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.mark.parametrize(
    ("node", "net_id", "expected"),
    [(1, 1, 14101), (5, 1, 14105), (3, 2, 14203)],
)
def test_rest_port_follows_nctl_convention(node: int, net_id: int, expected: int) -> None:
    """REST ports are derived from the network and node ordinals."""
    assert rest_port(node, net_id=net_id) == expected


def test_wait_fixed_sleeps_exactly_once() -> None:
    """The blind wait is a single pause of the configured length."""
    calls: list[float] = []
    wait_fixed(60, calls.append)
    assert calls == [60]


def test_poll_returns_attempt_count_when_ready() -> None:
    """Polling stops on the first successful probe."""
    clock = FakeClock()
    answers = iter([False, False, False, True])

    attempts = poll_until_ready(lambda: next(answers), timeout=30, interval=5, sleeper=clock.sleep, clock=clock)

    assert attempts == 4
    assert clock.sleeps == [5, 5, 5]


def test_poll_ready_immediately_never_sleeps() -> None:
    """A network that is already up costs no waiting."""
    clock = FakeClock()
    assert poll_until_ready(lambda: True, timeout=10, interval=1, sleeper=clock.sleep, clock=clock) == 1
    assert clock.sleeps == []


def test_poll_times_out_and_clamps_last_sleep() -> None:
    """The final sleep never overshoots the deadline."""
    clock = FakeClock()

    with pytest.raises(ReadinessTimeoutError) as excinfo:
        poll_until_ready(lambda: False, timeout=12, interval=5, sleeper=clock.sleep, clock=clock)

    assert clock.sleeps == [5, 5, 2]
    assert excinfo.value.attempts == 4
    assert excinfo.value.exit_code == 124


def test_http_status_probe_ready_when_all_ports_answer(status_server: int) -> None:
    """Every port must answer ``/status`` with 200."""
    assert http_status_probe([status_server])() is True
    assert http_status_probe([status_server, status_server])() is True


def test_http_status_probe_not_ready_on_refused_connection(status_server: int) -> None:
    """A node that is not listening yet keeps the probe negative."""
    assert http_status_probe([status_server, _closed_port()])() is False


def test_http_status_probe_ignores_proxy_environment(status_server: int, monkeypatch: pytest.MonkeyPatch) -> None:
    """Local node endpoints are reached directly even when a proxy is configured."""
    monkeypatch.setenv("HTTP_PROXY", "http://127.0.0.1:9")
    monkeypatch.setenv("ALL_PROXY", "http://127.0.0.1:9")

    assert http_status_probe([status_server])() is True


def test_http_status_probe_not_ready_on_error_status(status_server: int) -> None:
    """Non-200 responses do not count as ready."""
    assert http_status_probe([status_server], path="/missing")() is False
