"""Tests for the render pipeline orchestration."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import math
import threading
from typing import List

import pytest

from conftest import make_track, straight_track, viewport_around
from fog_of_walk.rendering.map_view import MapView
from fog_of_walk.rendering.pipeline import (
    PipelineConfig,
    RenderFrame,
    RenderPipeline,
    build_levels,
    build_polylines,
)
from fog_of_walk.tiles.system import lat_lng_to_tile


@pytest.fixture
def tracks():
    return [
        straight_track("a"),
        straight_track("b"),
        straight_track("c", start=(50.45, 30.53)),
    ]


@pytest.fixture
def pipeline():
    instance = RenderPipeline()
    yield instance
    instance.close()


def test_set_tracks_builds_levels_for_every_zoom(pipeline, tracks) -> None:
    snapshot = pipeline.set_tracks(tracks)

    assert sorted(snapshot.levels) == list(range(1, 19))
    # "b" repeats "a" exactly and is deduplicated away.
    assert [t.id for t in snapshot.base_tracks] == ["a", "c"]
    assert snapshot.source_tracks == tuple(tracks)
    for level in snapshot.levels.values():
        assert all(len(t.points) >= 2 for t in level)


def test_dedup_can_be_disabled(tracks) -> None:
    with RenderPipeline(PipelineConfig(dedup_enabled=False)) as pipeline:
        snapshot = pipeline.set_tracks(tracks)
    assert [t.id for t in snapshot.base_tracks] == ["a", "b", "c"]


def test_level_detail_peaks_at_highest_zoom() -> None:
    wiggly = make_track(
        [(50.45 + i * 0.0002, 30.52 + 0.0004 * math.sin(i / 2.0)) for i in range(300)]
    )
    levels = build_levels([wiggly], PipelineConfig())
    counts = [len(levels[z][0].points) if levels[z] else 0 for z in range(1, 19)]

    # Zoomed out, the tolerance swamps the wiggle and only endpoints survive.
    assert counts[:10] == [2] * 10
    assert counts[-1] == max(counts)
    assert counts[-1] > 10


def test_frame_is_consistent_with_snapshot(pipeline, tracks) -> None:
    snapshot = pipeline.set_tracks(tracks)
    frame = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 14))

    assert frame.zoom == 14
    assert frame.snapshot_version == snapshot.version
    assert frame.tracks == snapshot.levels[14]
    assert set(frame.visible_points) == {0, 1}
    for track_index, indices in frame.visible_points.items():
        track = frame.tracks[track_index]
        for point_index in indices:
            point = track.points[point_index]
            assert lat_lng_to_tile(point.lat, point.lon, 14) in snapshot.index.active_tiles

    assert [p.track_index for p in frame.polylines] == [0, 1]
    for polyline in frame.polylines:
        track = frame.tracks[polyline.track_index]
        indices = frame.visible_points[polyline.track_index]
        assert polyline.start_index <= min(indices)
        assert polyline.end_index >= max(indices)
        assert polyline.positions == [
            p.latlon for p in track.points[polyline.start_index : polyline.end_index + 1]
        ]
    # Without an attached map there is no pixel space for the fog mask.
    assert frame.fog is None


def test_attached_map_produces_matching_fog(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    view = MapView((50.46, 30.525), 14, size=(800, 600))

    pipeline.attach(view)
    frame = pipeline.latest_frame

    assert frame is not None and frame.fog is not None
    assert frame.visible_points
    assert [p.track_index for p in frame.fog.paths] == sorted(frame.visible_points)
    assert [p.track_index for p in frame.polylines] == sorted(frame.visible_points)

    view.set_zoom(16)
    assert pipeline.latest_frame.zoom == 16
    assert pipeline.latest_frame.sequence > frame.sequence

    pipeline.detach()
    view.pan_to(0.0, 0.0)
    assert pipeline.latest_frame.zoom == 16
    assert view.handler_count("moveend") == 0


def test_viewport_zoom_is_clamped(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    frame = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 22.4))

    assert frame.zoom == 18
    assert frame.visible_points


def test_nan_zoom_viewport_still_builds_fog(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    pipeline.attach(MapView((50.46, 30.525), 14, size=(800, 600)))

    frame = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, math.nan))

    assert frame.zoom == 18
    assert frame.fog is not None
    assert math.isfinite(frame.fog.zoom)


def test_far_viewport_has_nothing_visible(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    frame = pipeline.update_viewport(viewport_around(-33.86, 151.2, 0.02, 14))

    assert frame.visible_points == {}
    assert frame.polylines == []
    assert frame.visible_point_count == 0


def test_identical_track_sets_reuse_cached_snapshot(pipeline, tracks) -> None:
    first = pipeline.set_tracks(tracks)
    again = pipeline.set_tracks(list(tracks))
    other = pipeline.set_tracks(tracks[:1])
    back = pipeline.set_tracks(tracks)

    assert again is first
    assert other.version == first.version + 1
    assert back is first
    assert pipeline.snapshot is first


def test_older_frame_is_never_published(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    older = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 13))
    newer = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 15))

    assert newer.sequence > older.sequence
    assert pipeline.publish(older) is False
    assert pipeline.latest_frame is newer


def test_frame_listeners_receive_published_frames(pipeline, tracks) -> None:
    received: List[RenderFrame] = []
    pipeline.add_frame_listener(received.append)
    pipeline.set_tracks(tracks)

    frame = pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 14))
    pipeline.remove_frame_listener(received.append)
    pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 15))

    assert received == [frame]


def test_new_tracks_rerender_last_viewport(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks[:1])
    pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 14))

    snapshot = pipeline.add_tracks(tracks[2:])

    assert [t.id for t in snapshot.source_tracks] == ["a", "c"]
    assert pipeline.latest_frame.snapshot_version == snapshot.version
    assert set(pipeline.latest_frame.visible_points) == {0, 1}


def test_clear_drops_tracks(pipeline, tracks) -> None:
    pipeline.set_tracks(tracks)
    pipeline.update_viewport(viewport_around(50.46, 30.525, 0.02, 14))

    pipeline.clear()

    assert pipeline.snapshot is None
    assert pipeline.tracks == ()
    assert pipeline.latest_frame.visible_points == {}
    assert pipeline.latest_frame.snapshot_version is None


def test_superseded_async_precomputation_is_discarded(tracks) -> None:
    executor = ThreadPoolExecutor(max_workers=1)
    gate = threading.Event()
    executor.submit(gate.wait, 10)
    pipeline = RenderPipeline(executor=executor)
    try:
        stale = pipeline.set_tracks_async(tracks[:1])
        fresh = pipeline.set_tracks_async(tracks)
        gate.set()

        assert stale.result(timeout=30) is None
        snapshot = fresh.result(timeout=30)
        assert snapshot is not None
        assert pipeline.snapshot is snapshot
        assert snapshot.source_tracks == tuple(tracks)
    finally:
        pipeline.close()
        executor.shutdown(wait=True)


def test_async_precomputation_installs_snapshot(pipeline, tracks) -> None:
    future = pipeline.set_tracks_async(tracks)
    snapshot = future.result(timeout=30)

    assert pipeline.snapshot is snapshot
    assert [t.id for t in snapshot.base_tracks] == ["a", "c"]


def test_malformed_geometry_is_excluded(pipeline) -> None:
    broken = make_track([(50.45, 30.52)], track_id="single")
    gappy = make_track(
        [
            (50.45, 30.52),
            (50.4505, 30.52),
            (50.451, 30.52),
            (math.nan, 30.52),
            (50.4515, 30.52),
            (50.452, 30.52),
            (50.4525, 30.52),
        ],
        track_id="gappy",
    )

    snapshot = pipeline.set_tracks([broken, gappy])

    assert [t.id for t in snapshot.base_tracks] == ["gappy", "gappy"]
    frame = pipeline.update_viewport(viewport_around(50.45, 30.52, 0.01, 15))
    assert frame.visible_point_count > 0


def test_build_polylines_skips_unknown_tracks(north_track) -> None:
    polylines = build_polylines([north_track], {0: {3}, 5: {1}}, 5)

    assert len(polylines) == 1
    assert (polylines[0].start_index, polylines[0].end_index) == (0, 8)
