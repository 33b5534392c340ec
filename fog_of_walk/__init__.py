"""Fog of Walk: viewport-adaptive GPS track rendering with a fog-of-war overlay."""

from .errors import (
    FogOfWalkError,
    TrackParseError,
    UnsupportedFileTypeError,
    ViewportSubscriptionError,
)
from .models import Point, TileKey, Track, ViewportBounds
from .parsers import parse_activity_files
from .rendering import MapView, PipelineConfig, RenderFrame, RenderPipeline

__all__ = [
    "FogOfWalkError",
    "MapView",
    "PipelineConfig",
    "Point",
    "RenderFrame",
    "RenderPipeline",
    "TileKey",
    "Track",
    "TrackParseError",
    "UnsupportedFileTypeError",
    "ViewportBounds",
    "ViewportSubscriptionError",
    "parse_activity_files",
]
