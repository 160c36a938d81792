"""Generate a Prometheus scrape configuration for a local NCTL network."""

from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import Environment, PackageLoader, StrictUndefined, Template

from nctl_harness.domain.models import ScrapeTarget
from nctl_harness.errors import MetricsConfigError
from nctl_harness.logger import logger
from nctl_harness.orchestration.readiness import rest_port

if TYPE_CHECKING:
    from collections.abc import Sequence

__all__ = [
    "CONFIG_FILENAME",
    "discover_node_targets",
    "render_prometheus_config",
    "write_prometheus_config",
]

CONFIG_FILENAME = "prometheus.yml"
_NODE_DIR = re.compile(r"^node-(\d+)$")
MIN_PORT = 1
MAX_PORT = 65535


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("nctl_harness.metrics", "templates"),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def discover_node_targets(
    assets_dir: Path | None,
    *,
    net_id: int = 1,
    node_count: int = 5,
) -> list[ScrapeTarget]:
    """Return one scrape target per node of network ``net_id``.

    Nodes are read from ``<assets_dir>/net-<net_id>/nodes``. Each node's REST
    port is taken from its newest ``config.toml``, falling back to the NCTL
    port convention. Without an assets directory ``node_count`` nodes are
    assumed.
    """
    nodes_dir = assets_dir / f"net-{net_id}" / "nodes" if assets_dir is not None else None
    if nodes_dir is None or not nodes_dir.is_dir():
        if assets_dir is not None:
            logger.warning(f"No NCTL nodes under {nodes_dir}; assuming {node_count} nodes")
        return [
            ScrapeTarget(node=f"node-{index}", port=rest_port(index, net_id=net_id))
            for index in range(1, node_count + 1)
        ]

    targets: list[ScrapeTarget] = []
    for node_index, node_dir in _iter_node_dirs(nodes_dir):
        port = _configured_rest_port(node_dir) or rest_port(node_index, net_id=net_id)
        targets.append(ScrapeTarget(node=node_dir.name, port=port))
    return targets


def _iter_node_dirs(nodes_dir: Path) -> list[tuple[int, Path]]:
    found: list[tuple[int, Path]] = []
    for entry in nodes_dir.iterdir():
        match = _NODE_DIR.match(entry.name)
        if match and entry.is_dir():
            found.append((int(match.group(1)), entry))
    return sorted(found)


def _version_key(path: Path) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", path.name))


def _configured_rest_port(node_dir: Path) -> int | None:
    config_root = node_dir / "config"
    if not config_root.is_dir():
        return None
    candidates = sorted(
        (entry for entry in config_root.iterdir() if (entry / "config.toml").is_file()),
        key=_version_key,
    )
    if not candidates:
        return None
    config_path = candidates[-1] / "config.toml"
    try:
        payload = tomllib.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning(f"Ignoring unreadable node config {config_path}: {exc}")
        return None
    section = payload.get("rest_server")
    address = section.get("address") if isinstance(section, dict) else None
    if not isinstance(address, str) or ":" not in address:
        logger.warning(f"No usable rest_server.address in {config_path}")
        return None
    _, _, port_text = address.rpartition(":")
    if not port_text.isdigit() or not MIN_PORT <= int(port_text) <= MAX_PORT:
        logger.warning(f"Invalid REST port {port_text!r} in {config_path}")
        return None
    return int(port_text)


def render_prometheus_config(targets: Sequence[ScrapeTarget], *, scrape_interval: str = "5s") -> str:
    """Render the scrape configuration; at least one target is required."""
    if not targets:
        message = "No scrape targets found for the local network"
        raise MetricsConfigError(message)
    template: Template = _environment().get_template("prometheus.yml.j2")
    return template.render(targets=targets, scrape_interval=scrape_interval)


def write_prometheus_config(output_dir: Path, content: str) -> Path:
    """Write ``content`` to ``<output_dir>/prometheus.yml`` and return the path."""
    if not content.strip():
        message = "Refusing to write an empty Prometheus configuration"
        raise MetricsConfigError(message)
    path = output_dir / CONFIG_FILENAME
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
