"""Dataclasses describing tracks, tiles and viewports."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

LatLon = Tuple[float, float]
VisiblePointsMap = Dict[int, Set[int]]
TrackPointRef = Tuple[int, int]


@dataclass(frozen=True, slots=True)
class Point:
    """A single WGS84 fix. Immutable once parsed."""

    lat: float
    lon: float
    time: Optional[datetime] = None
    elevation: Optional[float] = None

    @property
    def latlon(self) -> LatLon:
        return (self.lat, self.lon)


@dataclass(frozen=True, slots=True)
class Track:
    """One continuous recorded path.

    Tracks are never mutated; simplification, deduplication and filtering
    produce new values through :meth:`with_points`.
    """

    id: str
    filename: str
    points: Tuple[Point, ...] = ()
    name: Optional[str] = None
    activity_type: Optional[str] = None
    source: Optional[str] = None
    # Position of the fragment when deduplication splits a track.
    fragment: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.points, tuple):
            object.__setattr__(self, "points", tuple(self.points))

    def __len__(self) -> int:
        return len(self.points)

    def with_points(self, points: Iterable[Point], **changes: object) -> "Track":
        """Return a copy of the track holding ``points``."""

        return replace(self, points=tuple(points), **changes)


def number_fragments(tracks: Iterable[Track]) -> List[Track]:
    """Renumber fragments 0, 1, 2, ... per track id, keeping order."""

    counters: Dict[str, int] = {}
    numbered: List[Track] = []
    for track in tracks:
        index = counters.get(track.id, 0)
        counters[track.id] = index + 1
        if track.fragment != index:
            track = replace(track, fragment=index)
        numbered.append(track)
    return numbered


@dataclass(frozen=True, slots=True)
class TileKey:
    """Slippy-map tile address (Web Mercator, 2^z tiles per axis)."""

    x: int
    y: int
    z: int


@dataclass(frozen=True, slots=True)
class Bounds:
    """Geographic bounding box in degrees."""

    north: float
    south: float
    east: float
    west: float

    def intersects(self, other: "Bounds") -> bool:
        return not (
            other.west > self.east
            or other.east < self.west
            or other.south > self.north
            or other.north < self.south
        )

    def contains(self, lat: float, lon: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lon <= self.east


@dataclass(frozen=True, slots=True)
class ViewportBounds:
    """Visible bounding box plus the (possibly fractional) map zoom."""

    north: float
    south: float
    east: float
    west: float
    zoom: float

    @property
    def bounds(self) -> Bounds:
        return Bounds(
            north=self.north, south=self.south, east=self.east, west=self.west
        )

    def with_zoom(self, zoom: float) -> "ViewportBounds":
        return replace(self, zoom=zoom)


@dataclass(slots=True)
class TrackPolyline:
    """Point run handed to the polyline renderer for one visible track."""

    track_index: int
    track_id: str
    filename: str
    start_index: int
    end_index: int
    positions: List[LatLon] = field(default_factory=list)


__all__ = [
    "Bounds",
    "LatLon",
    "Point",
    "TileKey",
    "Track",
    "TrackPointRef",
    "TrackPolyline",
    "ViewportBounds",
    "VisiblePointsMap",
    "number_fragments",
]
