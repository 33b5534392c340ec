"""Summary metrics (distance, duration, pace, centre) for parsed tracks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

import numpy as np

from ..models import Bounds, LatLon, Track
from .primitives import haversine_array

# Fallback map centre when no track carries any point (Kyiv).
DEFAULT_CENTER: LatLon = (50.45, 30.5233)


@dataclass(slots=True)
class SpeedMetrics:
    avg_speed_kmh: Optional[float]
    max_speed_kmh: Optional[float]

    @property
    def formatted_avg(self) -> str:
        if self.avg_speed_kmh is None:
            return "unknown"
        return f"{self.avg_speed_kmh:.1f} km/h"

    @property
    def formatted_max(self) -> str:
        if self.max_speed_kmh is None:
            return "unknown"
        return f"{self.max_speed_kmh:.1f} km/h"


def track_length_m(track: Track) -> float:
    """Total haversine length of the track in metres."""

    if len(track.points) < 2:
        return 0.0
    lats = np.fromiter((p.lat for p in track.points), dtype=float)
    lons = np.fromiter((p.lon for p in track.points), dtype=float)
    return float(np.sum(haversine_array(lats, lons)))


def track_length_with_units(track: Track) -> Dict[str, float]:
    metres = track_length_m(track)
    return {
        "meters": round(metres, 2),
        "kilometers": round(metres / 1000, 2),
        "miles": round(metres / 1609.344, 2),
        "feet": round(metres * 3.28084, 2),
    }


def track_duration_s(track: Track) -> Optional[float]:
    """Seconds between the first and last timestamped point."""

    timed = [p.time for p in track.points if p.time is not None]
    if len(timed) < 2:
        return None
    return (timed[-1] - timed[0]).total_seconds()


def format_duration(duration_s: float) -> str:
    """Format seconds as ``H:MM:SS`` (or ``M:SS`` under an hour)."""

    total = int(duration_s)
    hours, remainder = divmod(total, 3600)
    minutes, seconds = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def calculate_pace(distance_km: float, duration_s: float) -> float:
    """Minutes per kilometre; 0 when either input is zero."""

    if distance_km == 0 or duration_s == 0:
        return 0.0
    return (duration_s / 60.0) / distance_km


def format_pace(pace_min_per_km: float) -> str:
    minutes = int(pace_min_per_km)
    seconds = int(round((pace_min_per_km - minutes) * 60))
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    return f"{minutes}:{seconds:02d}/km"


def speed_metrics(track: Track) -> SpeedMetrics:
    """Average and maximum speed across timestamped consecutive points."""

    timed = [p for p in track.points if p.time is not None]
    if len(timed) < 2:
        return SpeedMetrics(None, None)
    lats = np.fromiter((p.lat for p in timed), dtype=float)
    lons = np.fromiter((p.lon for p in timed), dtype=float)
    distances = haversine_array(lats, lons)
    deltas = np.asarray(
        [(b.time - a.time).total_seconds() for a, b in zip(timed, timed[1:])],
        dtype=float,
    )
    moving = deltas > 0
    if not moving.any():
        return SpeedMetrics(None, None)
    speeds = distances[moving] / deltas[moving] * 3.6
    total_time = (timed[-1].time - timed[0].time).total_seconds()
    avg = float(np.sum(distances[moving]) / total_time * 3.6) if total_time > 0 else None
    return SpeedMetrics(avg_speed_kmh=avg, max_speed_kmh=float(np.max(speeds)))


def calculate_center(tracks: Sequence[Track]) -> LatLon:
    """Mean position of every point across ``tracks``."""

    count = sum(len(t.points) for t in tracks)
    if count == 0:
        return DEFAULT_CENTER
    lat = sum(p.lat for t in tracks for p in t.points) / count
    lon = sum(p.lon for t in tracks for p in t.points) / count
    return (lat, lon)


def tracks_bounds(tracks: Sequence[Track]) -> Optional[Bounds]:
    """Bounding box of all points, or None when there are none."""

    lats = [p.lat for t in tracks for p in t.points]
    if not lats:
        return None
    lons = [p.lon for t in tracks for p in t.points]
    return Bounds(north=max(lats), south=min(lats), east=max(lons), west=min(lons))


__all__ = [
    "DEFAULT_CENTER",
    "SpeedMetrics",
    "calculate_center",
    "calculate_pace",
    "format_duration",
    "format_pace",
    "speed_metrics",
    "track_duration_s",
    "track_length_m",
    "track_length_with_units",
    "tracks_bounds",
]
