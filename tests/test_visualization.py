"""Tests for the folium fog map export."""

from __future__ import annotations

from pathlib import Path

import folium

from conftest import straight_track
from fog_of_walk.rendering.map_view import MapView
from fog_of_walk.rendering.pipeline import RenderPipeline
from fog_of_walk.rendering.visualization import create_fog_map
from fog_of_walk.utils import track_color


def _frame():
    tracks = [straight_track("a"), straight_track("c", start=(50.45, 30.53))]
    with RenderPipeline() as pipeline:
        pipeline.set_tracks(tracks)
        pipeline.attach(MapView((50.46, 30.525), 14, size=(800, 600)))
        return pipeline.latest_frame


def test_create_fog_map_draws_tracks_and_fog(tmp_path: Path) -> None:
    frame = _frame()
    output_path = tmp_path / "maps" / "fog.html"

    map_object = create_fog_map(frame, output_html_path=output_path)

    assert isinstance(map_object, folium.Map)
    assert output_path.exists(), "Expected the HTML map output to be written"

    children = list(map_object._children.values())
    polylines = [c for c in children if isinstance(c, folium.vector_layers.PolyLine)]
    assert len(polylines) == len(frame.polylines) == 2
    assert {p.options.get("color") for p in polylines} == {
        track_color("a.gpx"),
        track_color("c.gpx"),
    }
    assert any(isinstance(c, folium.GeoJson) for c in children)


def test_fog_map_without_visible_tracks_is_all_fog(tmp_path: Path) -> None:
    with RenderPipeline() as pipeline:
        pipeline.set_tracks([straight_track("a")])
        pipeline.attach(MapView((-33.86, 151.2), 14, size=(800, 600)))
        frame = pipeline.latest_frame

    map_object = create_fog_map(frame)

    children = list(map_object._children.values())
    assert not any(isinstance(c, folium.vector_layers.PolyLine) for c in children)
    assert any(isinstance(c, folium.GeoJson) for c in children)
