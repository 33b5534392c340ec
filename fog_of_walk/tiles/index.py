"""Precomputed tile buckets answering per-frame visibility queries.

Building the index is the expensive step (every point of every track at every
zoom level); it runs once per track-set change. Queries only touch the tiles
currently on screen, which keeps panning cheap even for tracks holding tens of
thousands of points.
"""

from __future__ import annotations

import logging
import math
from typing import Dict, FrozenSet, List, Mapping, Optional, Sequence, Union

import numpy as np
from numpy.typing import NDArray

from ..config import (
    TILE_INDEX_MAX_ZOOM,
    TILE_INDEX_MIN_ZOOM,
    TILE_VIEWPORT_BUFFER_TILES,
)
from ..geometry.primitives import MAX_MERCATOR_LAT
from ..models import TileKey, Track, TrackPointRef, ViewportBounds, VisiblePointsMap
from .system import get_tiles_in_bounds, tile_to_key

IndexArray = NDArray[np.int64]
TrackLevels = Mapping[int, Sequence[Track]]

_log = logging.getLogger(__name__)


def clamp_zoom(
    zoom: float,
    min_zoom: int = TILE_INDEX_MIN_ZOOM,
    max_zoom: int = TILE_INDEX_MAX_ZOOM,
) -> int:
    """Floor ``zoom`` and clamp it into the indexed range."""

    if not math.isfinite(zoom):
        return min_zoom if zoom < 0 else max_zoom
    return int(math.floor(max(min_zoom, min(max_zoom, zoom))))


def tiles_for_coordinates(
    lats: NDArray[np.float64], lons: NDArray[np.float64], zoom: int
) -> tuple[IndexArray, IndexArray]:
    """Vectorised tile ``(x, y)`` lookup for coordinate arrays."""

    n = 1 << zoom
    lat_rad = np.radians(np.clip(lats, -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT))
    xs = np.floor((lons + 180.0) / 360.0 * n)
    ys = np.floor((1.0 - np.arcsinh(np.tan(lat_rad)) / np.pi) / 2.0 * n)
    xs = np.clip(xs, 0, n - 1).astype(np.int64)
    ys = np.clip(ys, 0, n - 1).astype(np.int64)
    return xs, ys


class TileIndex:
    """Tile -> ``(trackIndex, pointIndex)`` buckets for zooms ``min..max``.

    ``tracks`` is either one track sequence shared by every zoom level or a
    mapping ``zoom -> tracks`` holding a level-of-detail array per zoom. The
    point indices returned by :meth:`get_visible_points` always refer to
    :meth:`tracks_for_zoom` at the same zoom.

    The buckets are immutable once the constructor returns; only the active
    tile set changes between frames.
    """

    def __init__(
        self,
        tracks: Union[Sequence[Track], TrackLevels],
        *,
        min_zoom: int = TILE_INDEX_MIN_ZOOM,
        max_zoom: int = TILE_INDEX_MAX_ZOOM,
        buffer_tiles: int = TILE_VIEWPORT_BUFFER_TILES,
    ) -> None:
        if min_zoom > max_zoom:
            raise ValueError("min_zoom must not exceed max_zoom")
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.buffer_tiles = buffer_tiles
        self._levels: Dict[int, Sequence[Track]] = self._normalise_levels(tracks)
        self._buckets: Dict[str, List[TrackPointRef]] = {}
        self._point_tiles: Dict[int, List[Optional[IndexArray]]] = {}
        self._active_tiles: FrozenSet[TileKey] = frozenset()
        self._build()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------
    def _normalise_levels(
        self, tracks: Union[Sequence[Track], TrackLevels]
    ) -> Dict[int, Sequence[Track]]:
        zooms = range(self.min_zoom, self.max_zoom + 1)
        if isinstance(tracks, Mapping):
            return {z: tuple(tracks.get(z, ())) for z in zooms}
        shared = tuple(tracks)
        return {z: shared for z in zooms}

    def _build(self) -> None:
        indexed = 0
        for zoom, tracks in self._levels.items():
            per_track: List[Optional[IndexArray]] = []
            for track_index, track in enumerate(tracks):
                per_track.append(self._index_track(track_index, track, zoom))
                indexed += len(track.points)
            self._point_tiles[zoom] = per_track
        _log.debug(
            "Built tile index: %d buckets from %d point placements",
            len(self._buckets),
            indexed,
        )

    def _index_track(
        self, track_index: int, track: Track, zoom: int
    ) -> Optional[IndexArray]:
        if not track.points:
            return None
        lats = np.fromiter((p.lat for p in track.points), dtype=float)
        lons = np.fromiter((p.lon for p in track.points), dtype=float)
        valid = np.isfinite(lats) & np.isfinite(lons)
        tiles = np.full((lats.size, 2), -1, dtype=np.int64)
        if not valid.any():
            return tiles
        xs, ys = tiles_for_coordinates(lats[valid], lons[valid], zoom)
        point_indices = np.nonzero(valid)[0]
        tiles[point_indices, 0] = xs
        tiles[point_indices, 1] = ys

        # Group consecutive point indices by tile code to limit dict traffic.
        n = 1 << zoom
        codes = xs * n + ys
        order = np.argsort(codes, kind="stable")
        sorted_codes = codes[order]
        boundaries = np.nonzero(np.diff(sorted_codes))[0] + 1
        for group in np.split(order, boundaries):
            if group.size == 0:
                continue
            first = int(group[0])
            key = tile_to_key(TileKey(x=int(xs[first]), y=int(ys[first]), z=zoom))
            bucket = self._buckets.setdefault(key, [])
            bucket.extend((track_index, int(point_indices[i])) for i in group)
        return tiles

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def update_visible_tiles(self, viewport: ViewportBounds) -> None:
        """Store the tiles covering ``viewport`` as the active tile set."""

        zoom = clamp_zoom(viewport.zoom, self.min_zoom, self.max_zoom)
        tiles = get_tiles_in_bounds(viewport.with_zoom(zoom), self.buffer_tiles)
        self._active_tiles = frozenset(tiles)

    def get_visible_points(self, zoom: float) -> VisiblePointsMap:
        """Union the buckets of active tiles at ``floor(clamp(zoom))``."""

        visible: VisiblePointsMap = {}
        if not self._active_tiles:
            return visible
        target = clamp_zoom(zoom, self.min_zoom, self.max_zoom)
        for tile in self._active_tiles:
            if tile.z != target:
                continue
            bucket = self._buckets.get(tile_to_key(tile))
            if not bucket:
                continue
            for track_index, point_index in bucket:
                visible.setdefault(track_index, set()).add(point_index)
        return visible

    def tracks_for_zoom(self, zoom: float) -> Sequence[Track]:
        """Track array the indices returned for ``zoom`` refer to."""

        return self._levels[clamp_zoom(zoom, self.min_zoom, self.max_zoom)]

    def point_tile(
        self, track_index: int, point_index: int, zoom: float
    ) -> Optional[TileKey]:
        """Precomputed tile of one point, or None when it was not indexed."""

        target = clamp_zoom(zoom, self.min_zoom, self.max_zoom)
        per_track = self._point_tiles.get(target, [])
        if not 0 <= track_index < len(per_track):
            return None
        tiles = per_track[track_index]
        if tiles is None or not 0 <= point_index < tiles.shape[0]:
            return None
        x, y = int(tiles[point_index, 0]), int(tiles[point_index, 1])
        if x < 0:
            return None
        return TileKey(x=x, y=y, z=target)

    def points_in_tile(self, tile: TileKey) -> List[TrackPointRef]:
        return list(self._buckets.get(tile_to_key(tile), ()))

    @property
    def active_tiles(self) -> FrozenSet[TileKey]:
        return self._active_tiles

    @property
    def bucket_count(self) -> int:
        return len(self._buckets)

    def __contains__(self, tile: object) -> bool:
        return isinstance(tile, TileKey) and tile_to_key(tile) in self._buckets


__all__ = ["TileIndex", "clamp_zoom", "tiles_for_coordinates"]
