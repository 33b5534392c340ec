"""Tests for malformed geometry exclusion."""

from __future__ import annotations

import math

from conftest import make_track
from fog_of_walk.models import number_fragments
from fog_of_walk.processing.validation import (
    drop_degenerate,
    is_renderable,
    sanitize_track,
    sanitize_tracks,
)


def test_valid_track_returned_unchanged(north_track) -> None:
    assert sanitize_track(north_track)[0] is north_track


def test_invalid_points_split_track() -> None:
    track = make_track(
        [
            (50.0, 30.0),
            (50.001, 30.0),
            (math.nan, 30.0),
            (50.002, 30.0),
            (50.003, 30.0),
            (91.0, 30.0),
            (50.004, 30.0),
        ],
        track_id="x",
    )

    parts = sanitize_track(track)

    assert [len(p.points) for p in parts] == [2, 2]
    assert [p.fragment for p in parts] == [0, 1]
    assert all(p.id == "x" for p in parts)


def test_degenerate_tracks_are_dropped(north_track) -> None:
    single = make_track([(50.0, 30.0)], track_id="single")
    empty = make_track([], track_id="empty")
    broken = make_track([(math.inf, 0.0), (0.0, 200.0)], track_id="broken")

    cleaned = sanitize_tracks([single, north_track, empty, broken])

    assert cleaned == [north_track]
    assert not is_renderable(single)
    assert drop_degenerate([single, north_track]) == [north_track]


def test_number_fragments_counts_per_track_id() -> None:
    tracks = [
        make_track([(50.0, 30.0), (50.001, 30.0)], track_id="a", fragment=3),
        make_track([(50.0, 30.0), (50.001, 30.0)], track_id="b", fragment=1),
        make_track([(50.0, 30.0), (50.001, 30.0)], track_id="a", fragment=3),
    ]

    numbered = number_fragments(tracks)

    assert [(t.id, t.fragment) for t in numbered] == [("a", 0), ("b", 0), ("a", 1)]
    assert [t.points for t in numbered] == [t.points for t in tracks]
