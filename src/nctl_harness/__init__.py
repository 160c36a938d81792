"""Operational tooling for a local NCTL test network."""

__all__ = ["__version__"]

__version__ = "0.1.0"
