"""Fog-of-war mask geometry.

The mask is rebuilt from scratch on every viewport settle: a white rectangle
covering the buffered viewport, with black round-capped paths and circles
carved out wherever a visible track point reveals the ground. The overlay
(flat dark rectangle, or an inverted copy of the base map) is drawn through
that mask.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import logging
import math
from typing import List, Optional, Sequence, Tuple
import xml.etree.ElementTree as ET

import numpy as np
from shapely.geometry import LineString, Point as ShapelyPoint, box
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform, unary_union

from ..config import (
    BASE_TILE_URL,
    DISCOVERY_RADIUS_M,
    FOG_BUFFER_PX,
    FOG_CIRCLE_STEP_ZOOM,
    FOG_CONTEXT_POINTS,
    FOG_FILL,
    FOG_MIN_RADIUS_PX,
    TILE_SIZE_PX,
    TILE_VIEWPORT_BUFFER_TILES,
)
from ..geometry.primitives import meters_to_pixels
from ..geometry.projection import PixelPoint, WebMercatorProjection
from ..models import TileKey, Track, ViewportBounds, VisiblePointsMap
from ..tiles.system import get_tiles_in_bounds
from .map_view import MapView

_log = logging.getLogger(__name__)

_SVG_NS = "http://www.w3.org/2000/svg"


def _fmt(value: float) -> str:
    return f"{value:.2f}"


class FogStyle(str, Enum):
    DARK = "dark"
    INVERTED = "inverted"


@dataclass(slots=True)
class FogRect:
    x: float
    y: float
    width: float
    height: float


@dataclass(slots=True)
class FogPath:
    """Stroked reveal path through one track's visible point range."""

    track_index: int
    points: List[PixelPoint]
    stroke_width: float

    def svg_d(self) -> str:
        return " ".join(
            f"{'M' if i == 0 else 'L'} {x:.2f} {y:.2f}"
            for i, (x, y) in enumerate(self.points)
        )


@dataclass(slots=True)
class FogCircle:
    cx: float
    cy: float
    r: float


@dataclass(slots=True)
class FogTileImage:
    """Base-map tile placed under the inverted overlay."""

    tile: TileKey
    x: float
    y: float
    size: float
    url: str


@dataclass(slots=True)
class FogMask:
    """Complete per-frame fog geometry in layer pixel coordinates."""

    rect: FogRect
    zoom: float
    style: FogStyle = FogStyle.DARK
    fill: str = FOG_FILL
    paths: List[FogPath] = field(default_factory=list)
    circles: List[FogCircle] = field(default_factory=list)
    tiles: List[FogTileImage] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.paths and not self.circles

    def revealed_area(self) -> BaseGeometry:
        """Union of the stroked paths and circles as a shapely geometry."""

        shapes: List[BaseGeometry] = []
        for path in self.paths:
            radius = path.stroke_width / 2.0
            shapes.append(
                LineString(path.points).buffer(
                    radius, cap_style="round", join_style="round"
                )
            )
        for circle in self.circles:
            shapes.append(ShapelyPoint(circle.cx, circle.cy).buffer(circle.r))
        return unary_union(shapes)

    def fog_area(self) -> BaseGeometry:
        rect = box(
            self.rect.x,
            self.rect.y,
            self.rect.x + self.rect.width,
            self.rect.y + self.rect.height,
        )
        if self.is_empty:
            return rect
        return rect.difference(self.revealed_area())

    def is_revealed(self, x: float, y: float) -> bool:
        """True when the layer point lies inside the revealed area."""

        if self.is_empty:
            return False
        return self.revealed_area().intersects(ShapelyPoint(x, y))

    def to_svg(self, mask_id: str = "fog-mask") -> str:
        """Serialise the mask and overlay as a standalone SVG document."""

        rect_attrs = {
            "x": _fmt(self.rect.x),
            "y": _fmt(self.rect.y),
            "width": _fmt(self.rect.width),
            "height": _fmt(self.rect.height),
        }
        svg = ET.Element(
            "svg",
            {
                "xmlns": _SVG_NS,
                "xmlns:xlink": "http://www.w3.org/1999/xlink",
                "viewBox": " ".join(rect_attrs[k] for k in ("x", "y", "width", "height")),
                "width": rect_attrs["width"],
                "height": rect_attrs["height"],
            },
        )
        defs = ET.SubElement(svg, "defs")
        mask = ET.SubElement(defs, "mask", {"id": mask_id})
        ET.SubElement(mask, "rect", {**rect_attrs, "fill": "white"})
        for path in self.paths:
            ET.SubElement(
                mask,
                "path",
                {
                    "d": path.svg_d(),
                    "stroke": "black",
                    "stroke-width": _fmt(path.stroke_width),
                    "stroke-linecap": "round",
                    "stroke-linejoin": "round",
                    "fill": "none",
                },
            )
        for circle in self.circles:
            ET.SubElement(
                mask,
                "circle",
                {
                    "cx": _fmt(circle.cx),
                    "cy": _fmt(circle.cy),
                    "r": _fmt(circle.r),
                    "fill": "black",
                },
            )

        if self.style is FogStyle.INVERTED:
            group = ET.SubElement(
                svg,
                "g",
                {
                    "mask": f"url(#{mask_id})",
                    "style": "filter: invert(1) hue-rotate(180deg)",
                },
            )
            for image in self.tiles:
                ET.SubElement(
                    group,
                    "image",
                    {
                        "href": image.url,
                        "x": _fmt(image.x),
                        "y": _fmt(image.y),
                        "width": _fmt(image.size),
                        "height": _fmt(image.size),
                    },
                )
        else:
            ET.SubElement(
                svg,
                "rect",
                {**rect_attrs, "fill": self.fill, "mask": f"url(#{mask_id})"},
            )
        return ET.tostring(svg, encoding="unicode")


def discovery_radius_pixels(
    radius_m: float,
    zoom: float,
    latitude: float,
    min_px: float = FOG_MIN_RADIUS_PX,
) -> float:
    """Screen radius for a real-world discovery radius, never below ``min_px``."""

    return max(min_px, meters_to_pixels(radius_m, zoom, latitude))


def circle_step(zoom: float) -> int:
    """Subsampling step for reveal circles; shrinks as the map zooms in."""

    return max(1, math.floor(FOG_CIRCLE_STEP_ZOOM - zoom))


def visible_index_range(
    indices: Sequence[int] | set[int], length: int, padding: int
) -> Optional[Tuple[int, int]]:
    """Inclusive ``[min - padding, max + padding]`` clipped to the track."""

    if not indices or length == 0:
        return None
    lo = max(0, min(indices) - padding)
    hi = min(length - 1, max(indices) + padding)
    if hi < lo:
        return None
    return lo, hi


class FogRenderer:
    """Build :class:`FogMask` values from the current visible point map."""

    def __init__(
        self,
        *,
        radius_m: float = DISCOVERY_RADIUS_M,
        buffer_px: float = FOG_BUFFER_PX,
        context_points: int = FOG_CONTEXT_POINTS,
        min_radius_px: float = FOG_MIN_RADIUS_PX,
        style: FogStyle = FogStyle.DARK,
        fill: str = FOG_FILL,
        tile_url: str = BASE_TILE_URL,
    ) -> None:
        self.radius_m = radius_m
        self.buffer_px = buffer_px
        self.context_points = context_points
        self.min_radius_px = min_radius_px
        self.style = FogStyle(style)
        self.fill = fill
        self.tile_url = tile_url

    def build_mask(
        self,
        tracks: Sequence[Track],
        visible_points: VisiblePointsMap,
        map_view: MapView,
        zoom: Optional[float] = None,
    ) -> FogMask:
        """Return the fog mask for ``tracks`` at the current view.

        ``visible_points`` must index into ``tracks``. Tracks without visible
        points (or without any points) contribute nothing.
        """

        if zoom is None or not math.isfinite(zoom):
            zoom = map_view.get_zoom()
        mask = FogMask(
            rect=FogRect(
                x=-self.buffer_px,
                y=-self.buffer_px,
                width=map_view.width + 2 * self.buffer_px,
                height=map_view.height + 2 * self.buffer_px,
            ),
            zoom=zoom,
            style=self.style,
            fill=self.fill,
        )
        step = circle_step(zoom)
        for track_index, track in enumerate(tracks):
            indices = visible_points.get(track_index)
            span = visible_index_range(
                indices or (), len(track.points), self.context_points
            )
            if span is None:
                continue
            run = track.points[span[0] : span[1] + 1]
            if len(run) < 2:
                continue
            radius = discovery_radius_pixels(
                self.radius_m, zoom, run[0].lat, self.min_radius_px
            )
            pixels = map_view.lat_lngs_to_layer_points(
                [p.lat for p in run], [p.lon for p in run]
            )
            positions = [(float(x), float(y)) for x, y in pixels]
            mask.paths.append(
                FogPath(track_index=track_index, points=positions, stroke_width=2 * radius)
            )
            mask.circles.extend(
                FogCircle(cx=x, cy=y, r=radius)
                for offset, (x, y) in enumerate(positions)
                if offset % step == 0
            )
        if self.style is FogStyle.INVERTED:
            mask.tiles = self._base_tiles(map_view, zoom)
        _log.debug(
            "Fog mask at zoom %.2f: %d paths, %d circles",
            zoom,
            len(mask.paths),
            len(mask.circles),
        )
        return mask

    def _base_tiles(self, map_view: MapView, zoom: float) -> List[FogTileImage]:
        tile_zoom = max(0, math.floor(zoom))
        size = TILE_SIZE_PX * (2.0 ** (zoom - tile_zoom))
        ox, oy = map_view.pixel_origin()
        viewport = map_view.viewport()
        images: List[FogTileImage] = []
        for tile in get_tiles_in_bounds(viewport, TILE_VIEWPORT_BUFFER_TILES):
            images.append(
                FogTileImage(
                    tile=tile,
                    x=tile.x * size - ox,
                    y=tile.y * size - oy,
                    size=size,
                    url=self.tile_url.format(z=tile.z, x=tile.x, y=tile.y),
                )
            )
        return images


def fog_polygon(
    tracks: Sequence[Track],
    visible_points: VisiblePointsMap,
    viewport: ViewportBounds,
    *,
    radius_m: float = DISCOVERY_RADIUS_M,
    context_points: int = FOG_CONTEXT_POINTS,
    pad_ratio: float = 0.5,
    projection: Optional[WebMercatorProjection] = None,
) -> BaseGeometry:
    """Geographic fog polygon (GeoJSON ``lon, lat`` order) for static exports.

    The padded viewport box minus a metric buffer of ``radius_m`` around each
    track's visible range, computed in EPSG:3857 and reprojected to degrees.
    """

    projection = projection or WebMercatorProjection()
    lat_pad = (viewport.north - viewport.south) * pad_ratio
    lon_pad = (viewport.east - viewport.west) * pad_ratio
    corner_x, corner_y = projection.to_meters(
        [viewport.south - lat_pad, viewport.north + lat_pad],
        [viewport.west - lon_pad, viewport.east + lon_pad],
    )
    area = box(corner_x[0], corner_y[0], corner_x[1], corner_y[1])

    revealed: List[BaseGeometry] = []
    for track_index, track in enumerate(tracks):
        span = visible_index_range(
            visible_points.get(track_index) or (), len(track.points), context_points
        )
        if span is None:
            continue
        run = track.points[span[0] : span[1] + 1]
        if len(run) < 2:
            continue
        xs, ys = projection.to_meters([p.lat for p in run], [p.lon for p in run])
        # Mercator metres stretch by 1/cos(lat) relative to ground metres.
        scale = 1.0 / max(1e-6, math.cos(math.radians(float(np.mean([p.lat for p in run])))))
        revealed.append(
            LineString(np.column_stack((xs, ys))).buffer(
                radius_m * scale, cap_style="round", join_style="round"
            )
        )

    fog = area.difference(unary_union(revealed)) if revealed else area
    return transform(lambda x, y: projection.to_lonlat(x, y), fog)


__all__ = [
    "FogCircle",
    "FogMask",
    "FogPath",
    "FogRect",
    "FogRenderer",
    "FogStyle",
    "FogTileImage",
    "circle_step",
    "discovery_radius_pixels",
    "fog_polygon",
    "visible_index_range",
]
