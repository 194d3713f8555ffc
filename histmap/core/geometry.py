"""
Coordinate helpers: bounding boxes and geodesic lengths.

Positions are GeoJSON-ordered ``[lon, lat]`` pairs (an optional third value is
ignored). Lengths are great-circle distances in kilometres.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence, Tuple

# Mean earth radius (IUGG), metres.
EARTH_RADIUS_M = 6371008.8

Position = Sequence[float]
BoundingBox = Tuple[float, float, float, float]


def haversine_km(a: Position, b: Position) -> float:
    """Great-circle distance between two ``[lon, lat]`` positions, in km."""
    lon1, lat1 = float(a[0]), float(a[1])
    lon2, lat2 = float(b[0]), float(b[1])
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(h))) / 1000.0


def path_length_km(positions: Sequence[Position]) -> float:
    total = 0.0
    for i in range(1, len(positions)):
        total += haversine_km(positions[i - 1], positions[i])
    return total


def bounding_box(positions: Iterable[Position]) -> BoundingBox:
    """
    Return ``(min_lon, min_lat, max_lon, max_lat)``.

    An empty input yields ``(inf, inf, -inf, -inf)`` so that boxes can be
    combined with min()/max() without special cases.
    """
    min_lon = min_lat = math.inf
    max_lon = max_lat = -math.inf
    for pos in positions:
        lon, lat = float(pos[0]), float(pos[1])
        min_lon = min(min_lon, lon)
        min_lat = min(min_lat, lat)
        max_lon = max(max_lon, lon)
        max_lat = max(max_lat, lat)
    return (min_lon, min_lat, max_lon, max_lat)


def is_position(value: object) -> bool:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return False
    try:
        float(value[0])
        float(value[1])
    except (TypeError, ValueError):
        return False
    return True


def is_path(value: object) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0 and all(is_position(p) for p in value)


def is_rings(value: object) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0 and all(is_path(r) for r in value)
