"""Slippy-map tile math and the precomputed visibility index."""

from .system import (
    get_tiles_in_bounds,
    key_to_tile,
    lat_lng_to_tile,
    tile_to_bounds,
    tile_to_key,
)
from .index import TileIndex, clamp_zoom

__all__ = [
    "TileIndex",
    "clamp_zoom",
    "get_tiles_in_bounds",
    "key_to_tile",
    "lat_lng_to_tile",
    "tile_to_bounds",
    "tile_to_key",
]
