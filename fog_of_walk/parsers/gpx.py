"""GPX track parsing via gpxpy."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List

import gpxpy
import gpxpy.gpx

from ..errors import TrackParseError
from ..models import Point, Track


def parse_gpx_text(
    text: str, filename: str, id_factory: Callable[[], str]
) -> List[Track]:
    """Return one :class:`Track` per ``<trk>`` holding at least one point.

    Segments of a ``<trk>`` are concatenated in document order.

    Raises:
        TrackParseError: If the document is not valid GPX.
    """

    try:
        gpx = gpxpy.parse(text)
    except gpxpy.gpx.GPXException as exc:
        raise TrackParseError(f"Invalid GPX in {filename}: {exc}") from exc

    tracks: List[Track] = []
    for trk in gpx.tracks:
        points = [
            Point(
                lat=float(pt.latitude),
                lon=float(pt.longitude),
                time=pt.time,
                elevation=pt.elevation,
            )
            for segment in trk.segments
            for pt in segment.points
            if pt.latitude is not None and pt.longitude is not None
        ]
        if not points:
            continue
        tracks.append(
            Track(
                id=id_factory(),
                filename=filename,
                points=tuple(points),
                name=trk.name,
                activity_type=trk.type,
                source=gpx.creator,
            )
        )
    return tracks


def parse_gpx_file(path: Path, id_factory: Callable[[], str]) -> List[Track]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise TrackParseError(f"Cannot read {path}: {exc}") from exc
    return parse_gpx_text(text, path.name, id_factory)


__all__ = ["parse_gpx_file", "parse_gpx_text"]
