"""Tests for Douglas-Peucker and zoom-aware distance decimation."""

from __future__ import annotations

import math
import random

import pytest

from conftest import make_track, straight_track
from fog_of_walk.geometry.primitives import perpendicular_distance, pixel_distance
from fog_of_walk.models import Point
from fog_of_walk.processing.simplification import (
    douglas_peucker,
    get_distance_filtered_points,
    get_distance_filtered_tracks,
    simplify_tracks,
    tolerance_for_zoom,
)


def _wiggly_points(count: int = 200) -> list[Point]:
    return [
        Point(lat=50.45 + i * 0.0001, lon=30.52 + 0.0003 * math.sin(i / 3.0))
        for i in range(count)
    ]


def test_outlier_breaks_straight_run() -> None:
    points = [(0, 0), (0, 1), (0, 2), (5, 5), (0, 3)]
    assert douglas_peucker(points, 0.5) == [(0, 0), (0, 2), (5, 5), (0, 3)]


@pytest.mark.parametrize("points", [[], [(1.0, 2.0)], [(1.0, 2.0), (3.0, 4.0)]])
def test_short_inputs_returned_unchanged(points) -> None:
    assert douglas_peucker(points, 0.1) == points


def test_collinear_points_collapse_to_endpoints() -> None:
    points = [(0.0, float(i)) for i in range(10)]
    assert douglas_peucker(points, 0.0) == [(0.0, 0.0), (0.0, 9.0)]


def test_zero_length_chord_distance_is_zero() -> None:
    loop = [(0.0, 0.0), (1.0, 1.0), (0.0, 0.0)]
    assert douglas_peucker(loop, 0.1) == [(0.0, 0.0), (0.0, 0.0)]


def test_negative_tolerance_behaves_like_zero() -> None:
    points = _wiggly_points(50)
    assert douglas_peucker(points, -1.0) == douglas_peucker(points, 0.0)


@pytest.mark.parametrize("tolerance", [0.00005, 0.0001, 0.0005])
def test_dropped_points_within_tolerance_of_kept_chord(tolerance: float) -> None:
    points = _wiggly_points()
    kept = douglas_peucker(points, tolerance)
    positions = [points.index(p) for p in kept]

    assert kept[0] == points[0] and kept[-1] == points[-1]
    assert positions == sorted(positions)
    for left, right in zip(positions, positions[1:]):
        for i in range(left + 1, right):
            distance = perpendicular_distance(points[i], points[left], points[right])
            assert distance <= tolerance


@pytest.mark.parametrize("tolerance", [0.00005, 0.0002])
def test_douglas_peucker_is_idempotent_and_deterministic(tolerance: float) -> None:
    points = _wiggly_points()
    once = douglas_peucker(points, tolerance)

    assert douglas_peucker(once, tolerance) == once
    assert douglas_peucker(points, tolerance) == once


def test_long_input_does_not_recurse() -> None:
    points = [Point(lat=i * 1e-6, lon=(i % 2) * 1e-3) for i in range(5000)]
    assert len(douglas_peucker(points, 1e-9)) == len(points)


def test_simplify_tracks_returns_new_values() -> None:
    track = make_track([(0, 0), (0, 1), (0, 2), (5, 5), (0, 3)], track_id="x")
    [simplified] = simplify_tracks([track], 0.5)

    assert simplified is not track
    assert simplified.id == "x"
    assert len(track.points) == 5
    assert [p.latlon for p in simplified.points] == [(0, 0), (0, 2), (5, 5), (0, 3)]


@pytest.mark.parametrize("base", [0.00005, 0.0001])
def test_tolerance_never_grows_with_zoom(base: float) -> None:
    values = [tolerance_for_zoom(z, base_tolerance=base) for z in range(0, 21)]

    assert all(a >= b for a, b in zip(values, values[1:]))
    assert tolerance_for_zoom(15, base_tolerance=base, reference_zoom=15) == base
    assert tolerance_for_zoom(18, base_tolerance=base, reference_zoom=15) == base
    assert tolerance_for_zoom(0, base_tolerance=base, max_tolerance=0.01) <= 0.01


def test_distance_filter_keeps_endpoints_and_spacing(north_track) -> None:
    zoom = 13
    kept = get_distance_filtered_points(north_track, zoom, 10)

    assert kept[0] == north_track.points[0]
    assert kept[-1] == north_track.points[-1]
    assert len(kept) < len(north_track.points)
    for a, b in zip(kept[:-2], kept[1:-1]):
        assert pixel_distance(a, b, zoom) >= 10


@pytest.mark.parametrize("min_pixels", [5.0, 10.0, 25.0])
def test_distance_filter_count_grows_with_zoom(min_pixels: float) -> None:
    track = straight_track(count=300, step=(0.0001, 0.0))
    counts = [
        len(get_distance_filtered_points(track, zoom, min_pixels))
        for zoom in range(1, 19)
    ]

    assert all(a <= b for a, b in zip(counts, counts[1:]))
    assert counts[0] == 2
    assert counts[-1] == len(track.points)


@pytest.mark.parametrize("seed", [1, 7, 42])
@pytest.mark.parametrize("zoom", [12, 14, 16])
def test_distance_filter_count_shrinks_with_min_pixels(seed: int, zoom: int) -> None:
    # Irregular spacing along a line of constant latitude.
    rng = random.Random(seed)
    lon = 30.52
    coords = []
    for _ in range(60):
        coords.append((50.45, lon))
        lon += rng.uniform(0.00001, 0.002)
    track = make_track(coords)

    counts = [
        len(get_distance_filtered_points(track, zoom, min_pixels))
        for min_pixels in range(1, 200, 3)
    ]

    assert all(a >= b for a, b in zip(counts, counts[1:]))
    assert counts[0] > counts[-1]


def test_distance_filter_leaves_short_tracks_alone() -> None:
    track = make_track([(50.0, 30.0), (50.0, 30.0000001)])
    assert get_distance_filtered_points(track, 1) == track.points


def test_distance_filtered_tracks_preserve_identity_fields(north_track, east_track) -> None:
    filtered = get_distance_filtered_tracks([north_track, east_track], 12)
    assert [t.id for t in filtered] == ["north", "east"]
    assert all(len(t.points) >= 2 for t in filtered)
