"""Helpers for SCION networking tools: configuration, known hosts, path selectors, proxy helpers, sensor readings and tunnel payloads."""

__version__ = "0.1.0"
__all__ = ["config", "knownhosts", "skip", "selectors", "sensor", "tunnel"]