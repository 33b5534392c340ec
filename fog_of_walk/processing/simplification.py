"""Polyline reduction: Douglas-Peucker and zoom-aware distance decimation."""

from __future__ import annotations

from typing import List, Sequence, Tuple, TypeVar, Union

import numpy as np

from ..config import (
    DISTANCE_FILTER_MIN_PIXELS,
    SIMPLIFICATION_MAX_TOLERANCE_DEG,
    SIMPLIFICATION_REFERENCE_ZOOM,
    SIMPLIFICATION_TOLERANCE_DEG,
)
from ..geometry.primitives import MetricArray, perpendicular_distances, pixel_distance
from ..models import Point, Track

PointLike = Union[Point, Sequence[float]]
P = TypeVar("P", Point, Sequence[float])


def douglas_peucker(points: Sequence[P], tolerance: float) -> List[P]:
    """Simplify ``points`` by maximum perpendicular deviation.

    ``tolerance`` is expressed in coordinate degrees. The result is always a
    subsequence of ``points`` that keeps both endpoints; sequences of two or
    fewer points come back unchanged. Ranges are processed with an explicit
    work stack, so long near-collinear inputs cannot exhaust the call stack.

    Args:
        points: Track points or ``(lat, lon)`` pairs.
        tolerance: Maximum allowed deviation; negative values behave as 0.

    Returns:
        A new list holding the retained elements in their original order.
    """

    items = list(points)
    count = len(items)
    if count <= 2:
        return items
    tolerance = max(0.0, tolerance)
    coords = _as_coordinate_array(items)
    keep = np.zeros(count, dtype=bool)
    keep[0] = keep[-1] = True

    stack: List[Tuple[int, int]] = [(0, count - 1)]
    while stack:
        start, end = stack.pop()
        if end - start < 2:
            continue
        distances = perpendicular_distances(
            coords[start + 1 : end], coords[start], coords[end]
        )
        offset = int(np.argmax(distances))
        if distances[offset] > tolerance:
            split = start + 1 + offset
            keep[split] = True
            stack.append((split, end))
            stack.append((start, split))

    return [items[i] for i in np.flatnonzero(keep)]


def simplify_tracks(tracks: Sequence[Track], tolerance: float) -> List[Track]:
    """Apply :func:`douglas_peucker` to every track (one output per input)."""

    return [
        track.with_points(douglas_peucker(track.points, tolerance))
        for track in tracks
    ]


def tolerance_for_zoom(
    zoom: float,
    base_tolerance: float = SIMPLIFICATION_TOLERANCE_DEG,
    reference_zoom: float = SIMPLIFICATION_REFERENCE_ZOOM,
    max_tolerance: float = SIMPLIFICATION_MAX_TOLERANCE_DEG,
) -> float:
    """Douglas-Peucker tolerance for ``zoom``.

    Doubles per zoom level below ``reference_zoom`` and stays at
    ``base_tolerance`` at or above it, so zooming in never simplifies harder.
    """

    levels_out = max(0.0, reference_zoom - zoom)
    return min(max_tolerance, base_tolerance * (2.0**levels_out))


def get_distance_filtered_points(
    track: Track,
    zoom: float,
    min_pixel_distance: float = DISTANCE_FILTER_MIN_PIXELS,
) -> Tuple[Point, ...]:
    """Decimate ``track`` so kept points are ``min_pixel_distance`` apart on screen.

    The first and last points are always kept. Every interior point is
    measured against the last kept point.
    """

    points = track.points
    if len(points) <= 2:
        return points
    kept: List[Point] = [points[0]]
    last = points[0]
    for current in points[1:-1]:
        if pixel_distance(last, current, zoom) >= min_pixel_distance:
            kept.append(current)
            last = current
    kept.append(points[-1])
    return tuple(kept)


def get_distance_filtered_tracks(
    tracks: Sequence[Track],
    zoom: float,
    min_pixel_distance: float = DISTANCE_FILTER_MIN_PIXELS,
) -> List[Track]:
    """Apply :func:`get_distance_filtered_points` to every track."""

    return [
        track.with_points(
            get_distance_filtered_points(track, zoom, min_pixel_distance)
        )
        for track in tracks
    ]


def _as_coordinate_array(items: Sequence[PointLike]) -> MetricArray:
    if isinstance(items[0], Point):
        return np.asarray([(p.lat, p.lon) for p in items], dtype=float)
    return np.asarray([(float(p[0]), float(p[1])) for p in items], dtype=float)


__all__ = [
    "douglas_peucker",
    "get_distance_filtered_points",
    "get_distance_filtered_tracks",
    "simplify_tracks",
    "tolerance_for_zoom",
]
