"""Exclusion of malformed and degenerate track geometry."""

from __future__ import annotations

import logging
from typing import List, Sequence

from ..geometry.primitives import is_valid_coordinate
from ..models import Point, Track, number_fragments

_log = logging.getLogger(__name__)

MIN_RENDERABLE_POINTS = 2


def is_renderable(track: Track) -> bool:
    """Tracks with fewer than two points contribute nothing to rendering."""

    return len(track.points) >= MIN_RENDERABLE_POINTS


def drop_degenerate(tracks: Sequence[Track]) -> List[Track]:
    return [track for track in tracks if is_renderable(track)]


def sanitize_track(track: Track) -> List[Track]:
    """Split ``track`` around invalid coordinates.

    Each run of valid points becomes its own track value; runs shorter than
    two points are dropped. A fully valid track is returned unchanged.
    """

    runs: List[List[Point]] = [[]]
    invalid = 0
    for point in track.points:
        if is_valid_coordinate(point.lat, point.lon):
            runs[-1].append(point)
            continue
        invalid += 1
        if runs[-1]:
            runs.append([])
    if invalid == 0:
        return [track] if is_renderable(track) else []

    _log.debug(
        "Track %s (%s): excluded %d invalid points", track.id, track.filename, invalid
    )
    kept = [run for run in runs if len(run) >= MIN_RENDERABLE_POINTS]
    return number_fragments(track.with_points(run) for run in kept)


def sanitize_tracks(tracks: Sequence[Track]) -> List[Track]:
    """Return only renderable, finite, in-range geometry from ``tracks``."""

    cleaned: List[Track] = []
    dropped = 0
    for track in tracks:
        parts = sanitize_track(track)
        if not parts:
            dropped += 1
        cleaned.extend(parts)
    if dropped:
        _log.info("Excluded %d tracks without renderable geometry", dropped)
    return number_fragments(cleaned)


__all__ = [
    "MIN_RENDERABLE_POINTS",
    "drop_degenerate",
    "is_renderable",
    "sanitize_track",
    "sanitize_tracks",
]
