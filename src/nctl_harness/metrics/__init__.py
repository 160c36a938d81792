"""Prometheus metrics collection for a local NCTL network."""

from .config import CONFIG_FILENAME, discover_node_targets, render_prometheus_config, write_prometheus_config
from .launcher import build_container_command, generate_config, launch_prometheus

__all__ = [
    "CONFIG_FILENAME",
    "build_container_command",
    "discover_node_targets",
    "generate_config",
    "launch_prometheus",
    "render_prometheus_config",
    "write_prometheus_config",
]
