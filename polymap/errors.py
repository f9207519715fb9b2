from __future__ import annotations


class TopologyError(ValueError):
    """Raised when an edit would break a polygon's closed walk or the store indices."""


class ConfigError(KeyError):
    pass


__all__ = ["ConfigError", "TopologyError"]
