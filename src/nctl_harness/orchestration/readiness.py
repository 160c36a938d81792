"""Waiting for the local network to finish its asynchronous startup."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Callable

import httpx

from nctl_harness.errors import ReadinessTimeoutError
from nctl_harness.logger import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "NCTL_BASE_PORT_REST",
    "Probe",
    "http_status_probe",
    "poll_until_ready",
    "rest_port",
    "wait_fixed",
]

NCTL_BASE_PORT_REST = 14000
PROBE_TIMEOUT_SECONDS = 2.0

Probe = Callable[[], bool]
Sleeper = Callable[[float], None]
Clock = Callable[[], float]


def rest_port(node: int, *, net_id: int = 1) -> int:
    """Return the REST port NCTL assigns to ``node`` of network ``net_id``."""
    return NCTL_BASE_PORT_REST + net_id * 100 + node


def wait_fixed(seconds: float, sleeper: Sleeper = time.sleep) -> None:
    """Blind pause; does not observe the network at all."""
    logger.info(f"Sleeping {seconds:g} to allow network startup")
    sleeper(seconds)


def poll_until_ready(
    probe: Probe,
    *,
    timeout: float,
    interval: float,
    sleeper: Sleeper = time.sleep,
    clock: Clock = time.monotonic,
) -> int:
    """Call ``probe`` until it reports ready, returning the number of attempts.

    Raises ``ReadinessTimeoutError`` once ``timeout`` seconds have elapsed
    without a successful probe.
    """
    deadline = clock() + timeout
    attempts = 0
    while True:
        attempts += 1
        if probe():
            logger.info(f"Network ready after {attempts} probe(s)")
            return attempts
        remaining = deadline - clock()
        if remaining <= 0:
            raise ReadinessTimeoutError(timeout, attempts)
        logger.debug(f"Network not ready yet, retrying in {min(interval, remaining):g}s")
        sleeper(min(interval, remaining))


def http_status_probe(
    ports: Sequence[int],
    *,
    host: str = "127.0.0.1",
    path: str = "/status",
) -> Probe:
    """Build a probe that is ready when every port answers ``GET path`` with 200."""

    def probe() -> bool:
        with httpx.Client(
            timeout=PROBE_TIMEOUT_SECONDS,
            headers={"User-Agent": "nctl-harness"},
            trust_env=False,
        ) as client:
            return all(_endpoint_ok(client, f"http://{host}:{port}{path}") for port in ports)

    return probe


def _endpoint_ok(client: httpx.Client, url: str) -> bool:
    try:
        response = client.get(url)
    except httpx.HTTPError as exc:
        logger.debug(f"{url} not reachable: {exc}")
        return False
    return response.status_code == httpx.codes.OK
