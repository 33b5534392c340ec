"""Tests for the precomputed tile visibility index."""

from __future__ import annotations

import math

import pytest

from conftest import KYIV, make_track, straight_track, viewport_around
from fog_of_walk.tiles.index import TileIndex, clamp_zoom
from fog_of_walk.tiles.system import lat_lng_to_tile


def test_whole_track_visible_when_viewport_covers_it(north_track) -> None:
    index = TileIndex([north_track])
    index.update_visible_tiles(viewport_around(50.46, 30.52, 0.03, 14))

    visible = index.get_visible_points(14)

    assert visible == {0: set(range(len(north_track.points)))}


def test_no_points_before_any_viewport_update(north_track) -> None:
    index = TileIndex([north_track])
    assert index.get_visible_points(14) == {}


def test_far_viewport_yields_empty_map(north_track) -> None:
    index = TileIndex([north_track])
    index.update_visible_tiles(viewport_around(-33.86, 151.2, 0.01, 14))
    assert index.get_visible_points(14) == {}


def test_query_at_other_zoom_than_active_tiles(north_track) -> None:
    index = TileIndex([north_track])
    index.update_visible_tiles(viewport_around(50.46, 30.52, 0.03, 14))
    assert index.get_visible_points(10) == {}


@pytest.mark.parametrize("zoom", [12, 15, 17])
def test_visible_points_match_active_tiles(zoom: int) -> None:
    tracks = [
        straight_track("a", count=80),
        straight_track("b", start=(50.455, 30.50), step=(0.0, 0.0006), count=80),
    ]
    index = TileIndex(tracks)
    # Only part of both tracks is on screen.
    index.update_visible_tiles(viewport_around(50.462, 30.52, 0.004, zoom))

    visible = index.get_visible_points(zoom)
    active = index.active_tiles

    assert visible
    for track_index, track in enumerate(tracks):
        for point_index, point in enumerate(track.points):
            tile = lat_lng_to_tile(point.lat, point.lon, zoom)
            in_view = point_index in visible.get(track_index, set())
            assert in_view == (tile in active)


def test_zoom_is_clamped_to_indexed_range(north_track) -> None:
    index = TileIndex([north_track])
    index.update_visible_tiles(viewport_around(50.46, 30.52, 0.03, 22))

    assert {tile.z for tile in index.active_tiles} == {18}
    assert index.get_visible_points(22) == index.get_visible_points(18)
    assert index.get_visible_points(22)[0] == set(range(len(north_track.points)))


def test_clamp_zoom() -> None:
    assert clamp_zoom(0.3) == 1
    assert clamp_zoom(14.9) == 14
    assert clamp_zoom(25) == 18
    assert clamp_zoom(math.inf) == 18
    assert clamp_zoom(-math.inf) == 1


def test_non_finite_points_are_not_indexed() -> None:
    track = make_track([(50.45, 30.52), (math.nan, math.nan), (50.4505, 30.52)])
    index = TileIndex([track])
    index.update_visible_tiles(viewport_around(50.45, 30.52, 0.01, 15))

    assert index.get_visible_points(15) == {0: {0, 2}}
    assert index.point_tile(0, 1, 15) is None
    assert index.point_tile(0, 0, 15) == lat_lng_to_tile(50.45, 30.52, 15)


def test_per_zoom_levels_refer_to_their_own_tracks(north_track) -> None:
    coarse = north_track.with_points(north_track.points[::10])
    levels = {z: ([coarse] if z < 14 else [north_track]) for z in range(1, 19)}
    index = TileIndex(levels)

    assert index.tracks_for_zoom(10)[0] is coarse
    assert index.tracks_for_zoom(16)[0] is north_track

    index.update_visible_tiles(viewport_around(50.46, 30.52, 0.03, 10))
    visible = index.get_visible_points(10)
    assert visible == {0: set(range(len(coarse.points)))}


def test_missing_level_is_empty(north_track) -> None:
    index = TileIndex({15: [north_track]})
    assert tuple(index.tracks_for_zoom(5)) == ()
    index.update_visible_tiles(viewport_around(50.46, 30.52, 0.03, 5))
    assert index.get_visible_points(5) == {}


def test_buckets_and_membership(north_track) -> None:
    index = TileIndex([north_track], min_zoom=10, max_zoom=12)
    tile = lat_lng_to_tile(*KYIV, 12)

    assert tile in index
    assert (0, 0) in index.points_in_tile(tile)
    assert index.bucket_count >= 3


def test_invalid_zoom_range_rejected(north_track) -> None:
    with pytest.raises(ValueError):
        TileIndex([north_track], min_zoom=10, max_zoom=5)
