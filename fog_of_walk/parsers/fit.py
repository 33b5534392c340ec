"""Garmin FIT activity parsing via fitparse."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

from fitparse import FitFile, FitParseError

from ..errors import TrackParseError
from ..models import Point, Track

# FIT stores positions as signed 32-bit semicircles.
_SEMICIRCLE_TO_DEG = 180.0 / 2**31


def _semicircles(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return float(value) * _SEMICIRCLE_TO_DEG


def parse_fit_file(path: Path, id_factory: Callable[[], str]) -> List[Track]:
    """Return the activity's GPS records as a single track.

    Records without a position fix are skipped. An activity with no
    positioned records yields an empty list.

    Raises:
        TrackParseError: If the file cannot be decoded.
    """

    try:
        fit = FitFile(str(path))
        points: List[Point] = []
        for record in fit.get_messages("record"):
            lat = _semicircles(record.get_value("position_lat"))
            lon = _semicircles(record.get_value("position_long"))
            if lat is None or lon is None:
                continue
            elevation = record.get_value("enhanced_altitude")
            if elevation is None:
                elevation = record.get_value("altitude")
            points.append(
                Point(
                    lat=lat,
                    lon=lon,
                    time=record.get_value("timestamp"),
                    elevation=elevation,
                )
            )
        sport = None
        for session in fit.get_messages("session"):
            sport = session.get_value("sport")
            if sport is not None:
                break
        manufacturer = None
        for file_id in fit.get_messages("file_id"):
            manufacturer = file_id.get_value("manufacturer")
            break
    except (FitParseError, OSError) as exc:
        raise TrackParseError(f"Invalid FIT file {path.name}: {exc}") from exc

    if not points:
        return []
    return [
        Track(
            id=id_factory(),
            filename=path.name,
            points=tuple(points),
            name=path.stem,
            activity_type=str(sport) if sport is not None else None,
            source=str(manufacturer) if manufacturer is not None else None,
        )
    ]


__all__ = ["parse_fit_file"]
