"""Static folium export of a rendered frame: track polylines under the fog."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import folium

from ..config import DISCOVERY_RADIUS_M, FOG_CONTEXT_POINTS, FOG_OPACITY
from ..geometry.metrics import calculate_center
from ..models import LatLon
from ..utils import track_color
from .fog import fog_polygon
from .pipeline import RenderFrame

PathLike = Union[str, Path]

_FOG_COLOR = "#000000"
_TRACK_WEIGHT = 3
_TRACK_OPACITY = 0.9


def _frame_center(frame: RenderFrame) -> LatLon:
    viewport = frame.viewport
    if viewport.south <= viewport.north and viewport.west <= viewport.east:
        return (
            (viewport.north + viewport.south) / 2.0,
            (viewport.east + viewport.west) / 2.0,
        )
    return calculate_center(frame.tracks)


def create_fog_map(
    frame: RenderFrame,
    *,
    radius_m: float = DISCOVERY_RADIUS_M,
    fog_opacity: float = FOG_OPACITY,
    context_points: int = FOG_CONTEXT_POINTS,
    output_html_path: Optional[PathLike] = None,
) -> folium.Map:
    """Create an interactive map with the frame's tracks and fog overlay.

    Args:
        frame: Frame produced by :meth:`RenderPipeline.update_viewport`.
        radius_m: Discovery radius carved out of the fog around visible points.
        fog_opacity: Fill opacity of the fog polygon.
        context_points: Index padding around each track's visible range.
        output_html_path: Optional path to persist the resulting map as HTML.

    Returns:
        A :class:`folium.Map` holding one polyline per visible track and a
        GeoJSON fog layer.
    """

    folium_map = folium.Map(
        location=_frame_center(frame),
        zoom_start=frame.zoom,
        control_scale=True,
    )

    fog = fog_polygon(
        frame.tracks,
        frame.visible_points,
        frame.viewport,
        radius_m=radius_m,
        context_points=context_points,
    )
    if not fog.is_empty:
        folium.GeoJson(
            fog.__geo_interface__,
            name="Fog",
            style_function=lambda _feature: {
                "fillColor": _FOG_COLOR,
                "fillOpacity": fog_opacity,
                "color": _FOG_COLOR,
                "weight": 0,
            },
        ).add_to(folium_map)

    for polyline in frame.polylines:
        if len(polyline.positions) < 2:
            continue
        folium.PolyLine(
            polyline.positions,
            color=track_color(polyline.filename),
            weight=_TRACK_WEIGHT,
            opacity=_TRACK_OPACITY,
            tooltip=polyline.filename,
        ).add_to(folium_map)

    if output_html_path is not None:
        output_path = Path(output_html_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        folium_map.save(str(output_path))

    return folium_map


__all__ = ["create_fog_map"]
