"""Config loader helpers for nctl-harness."""

from .loader import (
    DEFAULT_CONFIG_NAME,
    LoadError,
    LoadResult,
    load_environment,
    load_harness_config,
)

__all__ = [
    "DEFAULT_CONFIG_NAME",
    "LoadError",
    "LoadResult",
    "load_environment",
    "load_harness_config",
]
