"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable track factories so the
rendering tests do not each rebuild their own geometry.
"""
from __future__ import annotations

import os
import sys
from typing import Iterable, Sequence, Tuple

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from fog_of_walk.models import Point, Track, ViewportBounds

KYIV = (50.45, 30.52)


# --- Factory helpers -------------------------------------------------
def make_track(
    coords: Iterable[Sequence[float]],
    *,
    track_id: str = "t1",
    filename: str = "track.gpx",
    **kwargs,
) -> Track:
    points = tuple(Point(lat=float(lat), lon=float(lon)) for lat, lon in coords)
    return Track(id=track_id, filename=filename, points=points, **kwargs)


def straight_track(
    track_id: str = "t1",
    *,
    start: Tuple[float, float] = KYIV,
    count: int = 40,
    step: Tuple[float, float] = (0.0005, 0.0),
    filename: str | None = None,
) -> Track:
    """Evenly spaced points heading away from ``start`` (0.0005 deg ~ 55 m)."""

    coords = [
        (start[0] + i * step[0], start[1] + i * step[1]) for i in range(count)
    ]
    return make_track(coords, track_id=track_id, filename=filename or f"{track_id}.gpx")


def viewport_around(
    lat: float, lon: float, half_span: float, zoom: float
) -> ViewportBounds:
    return ViewportBounds(
        north=lat + half_span,
        south=lat - half_span,
        east=lon + half_span,
        west=lon - half_span,
        zoom=zoom,
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def north_track() -> Track:
    return straight_track("north")


@pytest.fixture
def east_track() -> Track:
    return straight_track("east", step=(0.0, 0.0008))
