"""Geometry primitives, projection and track metrics."""

from .primitives import (
    haversine_distance,
    meters_per_pixel,
    meters_to_pixels,
    perpendicular_distance,
    pixel_distance,
)
from .projection import WebMercatorProjection
from .metrics import calculate_center, track_length_m, tracks_bounds

__all__ = [
    "WebMercatorProjection",
    "calculate_center",
    "haversine_distance",
    "meters_per_pixel",
    "meters_to_pixels",
    "perpendicular_distance",
    "pixel_distance",
    "track_length_m",
    "tracks_bounds",
]
