"""Run a Prometheus container that collects metrics from the local network."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Callable, NoReturn

from nctl_harness.logger import logger
from nctl_harness.tools.process import ensure_binary, format_command

from .config import discover_node_targets, render_prometheus_config, write_prometheus_config

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nctl_harness.domain.models import MetricsConfig

__all__ = [
    "CONTAINER_CONFIG_PATH",
    "CONTAINER_RUNTIME",
    "PROMETHEUS_IMAGE",
    "PROMETHEUS_PORT",
    "build_container_command",
    "generate_config",
    "launch_prometheus",
]

CONTAINER_RUNTIME = "podman"
PROMETHEUS_IMAGE = "docker.io/prom/prometheus"
PROMETHEUS_PORT = 9090
CONTAINER_CONFIG_PATH = "/etc/prometheus/prometheus.yml"

ExecFunction = Callable[[str, "Sequence[str]"], object]


def build_container_command(config_path: Path) -> list[str]:
    """Return the fixed ``podman run`` invocation for ``config_path``."""
    return [
        CONTAINER_RUNTIME,
        "run",
        "--net=host",
        "-p",
        f"{PROMETHEUS_PORT}:{PROMETHEUS_PORT}",
        "-v",
        f"{config_path.resolve()}:{CONTAINER_CONFIG_PATH}:ro",
        PROMETHEUS_IMAGE,
    ]


def generate_config(config: MetricsConfig) -> str:
    """Discover the network's nodes and render the scrape configuration."""
    targets = discover_node_targets(config.assets_dir, net_id=config.net_id, node_count=config.node_count)
    logger.info(f"Scraping {len(targets)} node(s): {', '.join(target.address for target in targets)}")
    return render_prometheus_config(targets, scrape_interval=config.scrape_interval)


def launch_prometheus(
    config: MetricsConfig,
    *,
    exec_fn: ExecFunction = os.execvp,
) -> NoReturn:
    """Write ``prometheus.yml`` and replace the current process with the container."""
    output_dir = config.output_dir if config.output_dir is not None else Path.cwd()
    logger.info("Generating config.")
    config_path = write_prometheus_config(output_dir, generate_config(config))
    logger.info(f"Wrote {config_path}")

    ensure_binary(CONTAINER_RUNTIME)
    command = build_container_command(config_path)
    logger.info("Starting prometheus.")
    logger.info(f"$ {format_command(command)}")
    exec_fn(command[0], command)
    message = f"{CONTAINER_RUNTIME} exec returned unexpectedly"
    raise RuntimeError(message)
