"""histmap - time-aware feature database for historical maps."""

__version__ = "1.0.0"
__author__ = "histmap contributors"
__description__ = "Load, query, chart and export historical map data (GeoJSON, KML, CSV)"

from histmap.cli import app, main

__all__ = ["app", "main", "__version__"]
