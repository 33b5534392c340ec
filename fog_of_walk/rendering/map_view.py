"""Headless map widget: view state, projection and pan/zoom settle events."""

from __future__ import annotations

from collections import defaultdict
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import LOCATE_MIN_ZOOM
from ..geometry.projection import PixelArray, PixelPoint, WebMercatorProjection
from ..models import Bounds, LatLon, ViewportBounds

MapEventHandler = Callable[[], None]

SETTLE_EVENTS = ("zoomend", "moveend")


class MapView:
    """Minimal stand-in for an interactive slippy map.

    Holds a centre, a (possibly fractional) zoom and a pixel size, converts
    between geographic and layer coordinates, and fires ``zoomend`` /
    ``moveend`` after every view change. The rendering core only reads from
    it; it never drives tile fetching.
    """

    def __init__(
        self,
        center: LatLon,
        zoom: float,
        *,
        size: Tuple[int, int] = (1024, 768),
        min_zoom: float = 0,
        max_zoom: float = 19,
        projection: Optional[WebMercatorProjection] = None,
    ) -> None:
        self.width, self.height = size
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.projection = projection or WebMercatorProjection()
        self._center = center
        self._zoom = self._clamp_zoom(zoom)
        self._handlers: Dict[str, List[MapEventHandler]] = defaultdict(list)
        self._log = logging.getLogger(self.__class__.__name__)
        # Set by ViewportTracker while it is subscribed.
        self.viewport_tracker: Optional[object] = None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    def on(self, event: str, handler: MapEventHandler) -> None:
        self._handlers[event].append(handler)

    def off(self, event: str, handler: MapEventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def fire(self, event: str) -> None:
        for handler in list(self._handlers.get(event, ())):
            handler()

    def handler_count(self, event: str) -> int:
        return len(self._handlers.get(event, ()))

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------
    def get_zoom(self) -> float:
        return self._zoom

    def get_center(self) -> LatLon:
        return self._center

    def pixel_origin(self) -> PixelPoint:
        """World pixel of the viewport's top-left corner."""

        cx, cy = self.projection.project(self._center[0], self._center[1], self._zoom)
        return cx - self.width / 2.0, cy - self.height / 2.0

    def get_bounds(self) -> Bounds:
        ox, oy = self.pixel_origin()
        north, west = self.projection.unproject(ox, oy, self._zoom)
        south, east = self.projection.unproject(
            ox + self.width, oy + self.height, self._zoom
        )
        return Bounds(north=north, south=south, east=east, west=west)

    def viewport(self) -> ViewportBounds:
        bounds = self.get_bounds()
        return ViewportBounds(
            north=bounds.north,
            south=bounds.south,
            east=bounds.east,
            west=bounds.west,
            zoom=self._zoom,
        )

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------
    def lat_lng_to_layer_point(self, lat: float, lon: float) -> PixelPoint:
        x, y = self.projection.project(lat, lon, self._zoom)
        ox, oy = self.pixel_origin()
        return x - ox, y - oy

    def lat_lngs_to_layer_points(
        self, lats: Sequence[float], lons: Sequence[float]
    ) -> PixelArray:
        points = self.projection.project_many(lats, lons, self._zoom)
        if points.size == 0:
            return points
        origin = np.asarray(self.pixel_origin(), dtype=float)
        return points - origin

    def layer_point_to_lat_lng(self, x: float, y: float) -> LatLon:
        ox, oy = self.pixel_origin()
        return self.projection.unproject(x + ox, y + oy, self._zoom)

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def pan_to(self, lat: float, lon: float) -> None:
        self._center = (lat, lon)
        self.fire("moveend")

    def set_zoom(self, zoom: float) -> None:
        self._zoom = self._clamp_zoom(zoom)
        for event in SETTLE_EVENTS:
            self.fire(event)

    def set_view(self, center: LatLon, zoom: float) -> None:
        self._center = center
        self._zoom = self._clamp_zoom(zoom)
        for event in SETTLE_EVENTS:
            self.fire(event)

    def center_on(
        self, lat: float, lon: float, min_zoom: float = LOCATE_MIN_ZOOM
    ) -> None:
        """Recentre on a located position, zooming in to ``min_zoom`` if needed."""

        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValueError(f"Cannot centre on non-finite position ({lat}, {lon})")
        self.set_view((lat, lon), max(self._zoom, min_zoom))

    def fit_bounds(
        self, bounds: Bounds, padding: Tuple[int, int] = (20, 20)
    ) -> None:
        """Centre on ``bounds`` at the largest integer zoom that fits it."""

        usable_w = max(1.0, self.width - 2 * padding[0])
        usable_h = max(1.0, self.height - 2 * padding[1])
        nw = self.projection.project(bounds.north, bounds.west, 0)
        se = self.projection.project(bounds.south, bounds.east, 0)
        span_x = abs(se[0] - nw[0])
        span_y = abs(se[1] - nw[1])
        if span_x == 0 and span_y == 0:
            zoom = self.max_zoom
        else:
            ratios = [
                usable / span
                for usable, span in ((usable_w, span_x), (usable_h, span_y))
                if span > 0
            ]
            zoom = math.floor(math.log2(min(ratios)))
        centre_x = (nw[0] + se[0]) / 2.0
        centre_y = (nw[1] + se[1]) / 2.0
        center = self.projection.unproject(centre_x, centre_y, 0)
        self._log.debug("Fitting bounds %s at zoom %s", bounds, zoom)
        self.set_view(center, zoom)

    def _clamp_zoom(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))


__all__ = ["MapEventHandler", "MapView", "SETTLE_EVENTS"]
