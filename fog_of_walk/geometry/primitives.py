"""Distance and scale primitives shared by the simplifier, dedup and fog layers."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import TILE_SIZE_PX
from ..models import Point

MetricArray = NDArray[np.float64]

EARTH_RADIUS_M = 6371000.0
EARTH_CIRCUMFERENCE_M = 40075016.686
# Metres per pixel at zoom 0 on the equator for 256 px tiles.
METERS_PER_PIXEL_Z0 = 156543.03392
# Metres per degree of latitude in the equirectangular approximation.
METERS_PER_DEGREE = 111320.0
# Latitude where the Web Mercator square ends.
MAX_MERCATOR_LAT = 85.0511287798066


def haversine_distance(a: Point, b: Point) -> float:
    """Great-circle distance in metres between two points."""

    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat))
        * math.cos(math.radians(b.lat))
        * math.sin(d_lon / 2) ** 2
    )
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def haversine_array(lats: MetricArray, lons: MetricArray) -> MetricArray:
    """Distances in metres between consecutive entries of ``lats``/``lons``."""

    if lats.size < 2:
        return np.zeros(0, dtype=float)
    phi = np.radians(lats)
    d_phi = np.diff(phi)
    d_lambda = np.radians(np.diff(lons))
    h = np.sin(d_phi / 2) ** 2 + np.cos(phi[:-1]) * np.cos(phi[1:]) * np.sin(
        d_lambda / 2
    ) ** 2
    h = np.clip(h, 0.0, 1.0)
    return 2 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1 - h))


def perpendicular_distance(point: Point, line_start: Point, line_end: Point) -> float:
    """Distance from ``point`` to the infinite line through the chord.

    Coordinates are treated as planar ``(lat, lon)`` pairs in degrees. A
    zero-length chord yields 0.
    """

    px, py = point.lat, point.lon
    x1, y1 = line_start.lat, line_start.lon
    x2, y2 = line_end.lat, line_end.lon
    denominator = math.hypot(y2 - y1, x2 - x1)
    if denominator == 0:
        return 0.0
    numerator = abs((y2 - y1) * px - (x2 - x1) * py + x2 * y1 - y2 * x1)
    return numerator / denominator


def perpendicular_distances(
    coords: MetricArray, start: Sequence[float], end: Sequence[float]
) -> MetricArray:
    """Vectorised :func:`perpendicular_distance` for an ``(N, 2)`` array."""

    x1, y1 = float(start[0]), float(start[1])
    x2, y2 = float(end[0]), float(end[1])
    denominator = math.hypot(y2 - y1, x2 - x1)
    if denominator == 0 or coords.size == 0:
        return np.zeros(coords.shape[0], dtype=float)
    numerator = np.abs(
        (y2 - y1) * coords[:, 0] - (x2 - x1) * coords[:, 1] + x2 * y1 - y2 * x1
    )
    return numerator / denominator


def meters_per_pixel(latitude: float, zoom: float) -> float:
    """Web Mercator ground resolution at ``latitude`` for ``zoom``."""

    return METERS_PER_PIXEL_Z0 * math.cos(math.radians(latitude)) / (2.0**zoom)


def meters_to_pixels(meters: float, zoom: float, latitude: float) -> float:
    """Convert a ground distance to screen pixels; 0 where the scale collapses."""

    resolution = (
        EARTH_CIRCUMFERENCE_M
        * math.cos(math.radians(latitude))
        / ((2.0**zoom) * TILE_SIZE_PX)
    )
    if resolution <= 0:
        return 0.0
    return meters / resolution


def pixel_distance(a: Point, b: Point, zoom: float) -> float:
    """On-screen distance in pixels between two points at ``zoom``."""

    resolution = meters_per_pixel(a.lat, zoom)
    if resolution <= 0:
        return 0.0
    return haversine_distance(a, b) / resolution


def is_valid_coordinate(lat: float, lon: float) -> bool:
    """Return True for finite WGS84 coordinates inside the legal ranges."""

    return (
        math.isfinite(lat)
        and math.isfinite(lon)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lon <= 180.0
    )


def clamp_latitude(lat: float) -> float:
    return max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))


__all__ = [
    "EARTH_RADIUS_M",
    "MAX_MERCATOR_LAT",
    "METERS_PER_DEGREE",
    "clamp_latitude",
    "haversine_array",
    "haversine_distance",
    "is_valid_coordinate",
    "meters_per_pixel",
    "meters_to_pixels",
    "perpendicular_distance",
    "perpendicular_distances",
    "pixel_distance",
]
