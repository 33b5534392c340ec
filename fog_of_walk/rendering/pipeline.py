"""Render pipeline orchestrating reduction, tile visibility and fog geometry.

Two lifetimes are kept apart:

* The *snapshot* (validated, deduplicated tracks, one level-of-detail array
  per zoom, and the tile index over those levels) is built once per
  track-set change and replaced wholesale.
* The *frame* (visible point map, polylines, fog mask) is rebuilt on every
  viewport settle from the current snapshot.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
import logging
import math
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from cachetools import LRUCache

from ..config import (
    DEDUP_COARSE_TILE_M,
    DEDUP_ENABLED,
    DEDUP_FINE_TILE_M,
    DISTANCE_FILTER_MIN_PIXELS,
    POLYLINE_CONTEXT_POINTS,
    SIMPLIFICATION_MAX_TOLERANCE_DEG,
    SIMPLIFICATION_REFERENCE_ZOOM,
    SIMPLIFICATION_TOLERANCE_DEG,
    SNAPSHOT_CACHE_SIZE,
    TILE_INDEX_MAX_ZOOM,
    TILE_INDEX_MIN_ZOOM,
    TILE_VIEWPORT_BUFFER_TILES,
)
from ..models import Track, TrackPolyline, ViewportBounds, VisiblePointsMap
from ..processing.deduplication import two_pass_deduplicate
from ..processing.simplification import (
    get_distance_filtered_tracks,
    simplify_tracks,
    tolerance_for_zoom,
)
from ..processing.validation import drop_degenerate, sanitize_tracks
from ..tiles.index import TileIndex, clamp_zoom
from ..utils import track_set_fingerprint
from .fog import FogMask, FogRenderer, visible_index_range
from .map_view import MapView
from .viewport import ViewportTracker

TrackLevels = Dict[int, Tuple[Track, ...]]
FrameListener = Callable[["RenderFrame"], None]


@dataclass(slots=True)
class PipelineConfig:
    """Tuning values for one :class:`RenderPipeline`."""

    min_pixel_distance: float = DISTANCE_FILTER_MIN_PIXELS
    base_tolerance: float = SIMPLIFICATION_TOLERANCE_DEG
    reference_zoom: float = SIMPLIFICATION_REFERENCE_ZOOM
    max_tolerance: float = SIMPLIFICATION_MAX_TOLERANCE_DEG
    dedup_enabled: bool = DEDUP_ENABLED
    dedup_coarse_m: float = DEDUP_COARSE_TILE_M
    dedup_fine_m: float = DEDUP_FINE_TILE_M
    min_zoom: int = TILE_INDEX_MIN_ZOOM
    max_zoom: int = TILE_INDEX_MAX_ZOOM
    buffer_tiles: int = TILE_VIEWPORT_BUFFER_TILES
    polyline_context: int = POLYLINE_CONTEXT_POINTS
    snapshot_cache_size: int = SNAPSHOT_CACHE_SIZE


@dataclass(slots=True)
class TrackSetSnapshot:
    """Everything derived from one track collection."""

    version: int
    fingerprint: str
    source_tracks: Tuple[Track, ...]
    base_tracks: Tuple[Track, ...]
    levels: TrackLevels
    index: TileIndex

    def tracks_for_zoom(self, zoom: float) -> Tuple[Track, ...]:
        return tuple(self.index.tracks_for_zoom(zoom))


@dataclass(slots=True)
class RenderFrame:
    """Per-viewport output handed to the polyline and fog renderers."""

    sequence: int
    viewport: ViewportBounds
    zoom: int
    snapshot_version: Optional[int]
    tracks: Tuple[Track, ...] = ()
    visible_points: VisiblePointsMap = field(default_factory=dict)
    polylines: List[TrackPolyline] = field(default_factory=list)
    fog: Optional[FogMask] = None

    @property
    def visible_point_count(self) -> int:
        return sum(len(indices) for indices in self.visible_points.values())


def build_levels(tracks: Sequence[Track], config: PipelineConfig) -> TrackLevels:
    """Per-zoom level-of-detail arrays: Douglas-Peucker then distance filtering.

    Tracks that end up with fewer than two points at a zoom are left out of
    that zoom's array.
    """

    levels: TrackLevels = {}
    for zoom in range(config.min_zoom, config.max_zoom + 1):
        tolerance = tolerance_for_zoom(
            zoom,
            base_tolerance=config.base_tolerance,
            reference_zoom=config.reference_zoom,
            max_tolerance=config.max_tolerance,
        )
        simplified = simplify_tracks(tracks, tolerance)
        filtered = get_distance_filtered_tracks(
            simplified, zoom, config.min_pixel_distance
        )
        levels[zoom] = tuple(drop_degenerate(filtered))
    return levels


def prepare_base_tracks(
    tracks: Sequence[Track], config: PipelineConfig
) -> Tuple[Track, ...]:
    """Validate then (optionally) deduplicate ``tracks``."""

    cleaned = sanitize_tracks(tracks)
    if config.dedup_enabled and cleaned:
        cleaned = two_pass_deduplicate(
            cleaned, config.dedup_coarse_m, config.dedup_fine_m
        )
    return tuple(drop_degenerate(cleaned))


def build_polylines(
    tracks: Sequence[Track], visible_points: VisiblePointsMap, context: int
) -> List[TrackPolyline]:
    """Point runs around each track's visible range, padded by ``context``."""

    polylines: List[TrackPolyline] = []
    for track_index in sorted(visible_points):
        if not 0 <= track_index < len(tracks):
            continue
        track = tracks[track_index]
        span = visible_index_range(
            visible_points[track_index], len(track.points), context
        )
        if span is None or span[1] - span[0] < 1:
            continue
        start, end = span
        polylines.append(
            TrackPolyline(
                track_index=track_index,
                track_id=track.id,
                filename=track.filename,
                start_index=start,
                end_index=end,
                positions=[p.latlon for p in track.points[start : end + 1]],
            )
        )
    return polylines


class RenderPipeline:
    """Owns the track snapshot, the viewport subscription and frame sequencing.

    ``set_tracks`` rebuilds synchronously; ``set_tracks_async`` precomputes on
    a worker thread and discards the result when newer tracks arrived in the
    meantime. Frames carry increasing sequence numbers and an older frame
    never replaces a newer published one.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        *,
        fog_renderer: Optional[FogRenderer] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.fog_renderer = fog_renderer or FogRenderer()
        self._log = logging.getLogger(self.__class__.__name__)
        self._lock = threading.RLock()
        self._executor = executor
        self._owns_executor = executor is None
        self._snapshots: LRUCache[str, TrackSetSnapshot] = LRUCache(
            maxsize=max(1, self.config.snapshot_cache_size)
        )
        self._snapshot: Optional[TrackSetSnapshot] = None
        self._generation = 0
        self._version = 0
        self._sequence = 0
        self._latest_frame: Optional[RenderFrame] = None
        self._last_viewport: Optional[ViewportBounds] = None
        self._map_view: Optional[MapView] = None
        self._tracker: Optional[ViewportTracker] = None
        self._listeners: List[FrameListener] = []

    # ------------------------------------------------------------------
    # Track set
    # ------------------------------------------------------------------
    @property
    def snapshot(self) -> Optional[TrackSetSnapshot]:
        return self._snapshot

    @property
    def tracks(self) -> Tuple[Track, ...]:
        snapshot = self._snapshot
        return snapshot.source_tracks if snapshot is not None else ()

    def set_tracks(self, tracks: Sequence[Track]) -> TrackSetSnapshot:
        """Replace the track set and rebuild the snapshot synchronously."""

        generation = self._next_generation()
        snapshot = self._prepare(tuple(tracks))
        self._install(generation, snapshot)
        return snapshot

    def add_tracks(self, tracks: Sequence[Track]) -> TrackSetSnapshot:
        return self.set_tracks(self.tracks + tuple(tracks))

    def set_tracks_async(
        self, tracks: Sequence[Track]
    ) -> "Future[Optional[TrackSetSnapshot]]":
        """Precompute the snapshot off the caller's thread.

        The future resolves to the installed snapshot, or to None when a later
        call superseded this one before it finished.
        """

        generation = self._next_generation()
        frozen = tuple(tracks)
        return self._get_executor().submit(self._prepare_and_install, generation, frozen)

    def clear(self) -> None:
        """Drop every track (the "clear tracks" action)."""

        with self._lock:
            self._generation += 1
            self._snapshot = None
        self._log.info("Cleared tracks")
        self._rerender()

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            return self._generation

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _prepare_and_install(
        self, generation: int, tracks: Tuple[Track, ...]
    ) -> Optional[TrackSetSnapshot]:
        if not self._is_current(generation):
            self._log.debug("Skipping superseded precomputation %d", generation)
            return None
        snapshot = self._prepare(tracks)
        if not self._install(generation, snapshot):
            return None
        return snapshot

    def _prepare(self, tracks: Tuple[Track, ...]) -> TrackSetSnapshot:
        fingerprint = track_set_fingerprint(tracks)
        with self._lock:
            cached = self._snapshots.get(fingerprint)
        if cached is not None:
            self._log.debug("Reusing snapshot v%d for %d tracks", cached.version, len(tracks))
            return cached

        base = prepare_base_tracks(tracks, self.config)
        levels = build_levels(base, self.config)
        index = TileIndex(
            levels,
            min_zoom=self.config.min_zoom,
            max_zoom=self.config.max_zoom,
            buffer_tiles=self.config.buffer_tiles,
        )
        with self._lock:
            self._version += 1
            snapshot = TrackSetSnapshot(
                version=self._version,
                fingerprint=fingerprint,
                source_tracks=tracks,
                base_tracks=base,
                levels=levels,
                index=index,
            )
            self._snapshots[fingerprint] = snapshot
        self._log.info(
            "Prepared snapshot v%d: %d tracks -> %d base tracks, %d tile buckets",
            snapshot.version,
            len(tracks),
            len(base),
            index.bucket_count,
        )
        return snapshot

    def _install(self, generation: int, snapshot: TrackSetSnapshot) -> bool:
        with self._lock:
            if generation != self._generation:
                self._log.debug(
                    "Discarding stale snapshot v%d (generation %d < %d)",
                    snapshot.version,
                    generation,
                    self._generation,
                )
                return False
            self._snapshot = snapshot
        self._rerender()
        return True

    # ------------------------------------------------------------------
    # Viewport / frames
    # ------------------------------------------------------------------
    @property
    def latest_frame(self) -> Optional[RenderFrame]:
        return self._latest_frame

    def add_frame_listener(self, listener: FrameListener) -> None:
        self._listeners.append(listener)

    def remove_frame_listener(self, listener: FrameListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update_viewport(self, viewport: ViewportBounds) -> RenderFrame:
        """Compute (and publish) the frame for ``viewport``."""

        with self._lock:
            self._sequence += 1
            sequence = self._sequence
            self._last_viewport = viewport
            snapshot = self._snapshot
            map_view = self._map_view
            zoom = clamp_zoom(viewport.zoom, self.config.min_zoom, self.config.max_zoom)
            if snapshot is None:
                frame = RenderFrame(
                    sequence=sequence,
                    viewport=viewport,
                    zoom=zoom,
                    snapshot_version=None,
                )
            else:
                snapshot.index.update_visible_tiles(viewport)
                visible = snapshot.index.get_visible_points(viewport.zoom)
                frame = RenderFrame(
                    sequence=sequence,
                    viewport=viewport,
                    zoom=zoom,
                    snapshot_version=snapshot.version,
                    tracks=snapshot.tracks_for_zoom(viewport.zoom),
                    visible_points=visible,
                )

        if frame.visible_points:
            frame.polylines = build_polylines(
                frame.tracks, frame.visible_points, self.config.polyline_context
            )
        if map_view is not None:
            frame.fog = self.fog_renderer.build_mask(
                frame.tracks,
                frame.visible_points,
                map_view,
                viewport.zoom if math.isfinite(viewport.zoom) else zoom,
            )
        self.publish(frame)
        return frame

    def publish(self, frame: RenderFrame) -> bool:
        """Make ``frame`` current unless a newer frame is already published."""

        with self._lock:
            latest = self._latest_frame
            if latest is not None and frame.sequence <= latest.sequence:
                self._log.debug(
                    "Dropping stale frame %d (latest %d)",
                    frame.sequence,
                    latest.sequence,
                )
                return False
            self._latest_frame = frame
            listeners = list(self._listeners)
        for listener in listeners:
            listener(frame)
        return True

    def _rerender(self) -> None:
        viewport = self._last_viewport
        if viewport is not None:
            self.update_viewport(viewport)

    # ------------------------------------------------------------------
    # Map attachment
    # ------------------------------------------------------------------
    @property
    def map_view(self) -> Optional[MapView]:
        return self._map_view

    def attach(self, map_view: MapView) -> None:
        """Follow ``map_view`` settle events; replaces any previous attachment."""

        self.detach()
        with self._lock:
            self._map_view = map_view
        tracker = ViewportTracker(map_view, self.update_viewport)
        self._tracker = tracker
        tracker.subscribe()

    def detach(self) -> None:
        tracker = self._tracker
        if tracker is not None:
            tracker.unsubscribe()
        with self._lock:
            self._tracker = None
            self._map_view = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="fog-precompute"
                )
            return self._executor

    def close(self) -> None:
        self.detach()
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "RenderPipeline":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = [
    "PipelineConfig",
    "RenderFrame",
    "RenderPipeline",
    "TrackSetSnapshot",
    "build_levels",
    "build_polylines",
    "prepare_base_tracks",
]
