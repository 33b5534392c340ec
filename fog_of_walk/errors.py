"""Central error types used across the application."""

from __future__ import annotations


class FogOfWalkError(RuntimeError):
    """Base error for the fog of walk package."""


class TrackParseError(FogOfWalkError):
    """Raised when an activity file cannot be decoded into tracks."""


class UnsupportedFileTypeError(TrackParseError):
    """Raised when no parser handles the file extension."""


class ViewportSubscriptionError(FogOfWalkError):
    """Raised when a viewport tracker subscription is misused."""


__all__ = [
    "FogOfWalkError",
    "TrackParseError",
    "UnsupportedFileTypeError",
    "ViewportSubscriptionError",
]
