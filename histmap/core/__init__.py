"""Core functionality modules for histmap."""

__all__ = [
    "table",
    "settings",
    "store",
    "result",
    "aggregation",
    "config",
    "trace",
]
