"""Viewport tracking, fog geometry and the render pipeline."""

from .fog import (
    FogMask,
    FogRenderer,
    FogStyle,
    circle_step,
    discovery_radius_pixels,
    fog_polygon,
)
from .map_view import MapView
from .pipeline import PipelineConfig, RenderFrame, RenderPipeline, TrackSetSnapshot
from .viewport import ViewportTracker
from .visualization import create_fog_map

__all__ = [
    "FogMask",
    "FogRenderer",
    "FogStyle",
    "MapView",
    "PipelineConfig",
    "RenderFrame",
    "RenderPipeline",
    "TrackSetSnapshot",
    "ViewportTracker",
    "circle_step",
    "create_fog_map",
    "discovery_radius_pixels",
    "fog_polygon",
]
