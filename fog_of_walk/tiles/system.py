"""Slippy-map tile math (Web Mercator, 2^z tiles per axis)."""

from __future__ import annotations

import math
from typing import Iterable, List, Tuple

from ..config import TILE_VIEWPORT_BUFFER_TILES
from ..geometry.primitives import clamp_latitude
from ..models import Bounds, TileKey, ViewportBounds


def tile_count(zoom: int) -> int:
    """Number of tiles along one axis at ``zoom``."""

    return 1 << max(0, int(zoom))


def lat_lng_to_tile(lat: float, lon: float, zoom: int) -> TileKey:
    """Return the tile containing ``(lat, lon)`` at integer ``zoom``.

    Latitudes beyond the Mercator limit and longitudes on the antimeridian
    are clamped onto the edge tiles so every result is a valid address.
    """

    zoom = max(0, int(zoom))
    n = tile_count(zoom)
    lat_rad = math.radians(clamp_latitude(lat))
    x = math.floor((lon + 180.0) / 360.0 * n)
    y = math.floor((1.0 - math.asinh(math.tan(lat_rad)) / math.pi) / 2.0 * n)
    return TileKey(x=_clamp_index(x, n), y=_clamp_index(y, n), z=zoom)


def tile_to_bounds(tile: TileKey) -> Bounds:
    """Geographic bounds of ``tile``."""

    n = tile_count(tile.z)
    west = tile.x / n * 360.0 - 180.0
    east = (tile.x + 1) / n * 360.0 - 180.0
    north = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * tile.y / n))))
    south = math.degrees(math.atan(math.sinh(math.pi * (1 - 2 * (tile.y + 1) / n))))
    return Bounds(north=north, south=south, east=east, west=west)


def get_tiles_in_bounds(
    viewport: ViewportBounds, buffer_tiles: int = TILE_VIEWPORT_BUFFER_TILES
) -> List[TileKey]:
    """Return the tiles covering ``viewport`` at its floored zoom.

    The rectangle grows by ``buffer_tiles`` on each side and is clamped to
    ``[0, 2^z - 1]``. A viewport with ``west > east`` crosses the antimeridian
    and is covered by two column ranges.
    """

    zoom = max(0, math.floor(viewport.zoom))
    n = tile_count(zoom)
    buffer_tiles = max(0, int(buffer_tiles))
    top_left = lat_lng_to_tile(viewport.north, viewport.west, zoom)
    bottom_right = lat_lng_to_tile(viewport.south, viewport.east, zoom)

    min_y = max(0, top_left.y - buffer_tiles)
    max_y = min(n - 1, bottom_right.y + buffer_tiles)

    if viewport.west <= viewport.east:
        columns: Iterable[int] = range(
            max(0, top_left.x - buffer_tiles),
            min(n - 1, bottom_right.x + buffer_tiles) + 1,
        )
    else:
        seen = set()
        ordered: List[int] = []
        spans = (
            (top_left.x - buffer_tiles, n - 1),
            (0, bottom_right.x + buffer_tiles),
        )
        for start, stop in spans:
            for x in range(max(0, start), min(n - 1, stop) + 1):
                if x not in seen:
                    seen.add(x)
                    ordered.append(x)
        columns = ordered

    return [TileKey(x=x, y=y, z=zoom) for x in columns for y in range(min_y, max_y + 1)]


def tile_to_key(tile: TileKey) -> str:
    """Serialise a tile as ``"{z}-{x}-{y}"``."""

    return f"{tile.z}-{tile.x}-{tile.y}"


def key_to_tile(key: str) -> TileKey:
    """Parse a ``"{z}-{x}-{y}"`` key produced by :func:`tile_to_key`."""

    parts = key.split("-")
    if len(parts) != 3:
        raise ValueError(f"Malformed tile key {key!r}")
    z, x, y = (int(part) for part in parts)
    return TileKey(x=x, y=y, z=z)


def tile_parent(tile: TileKey) -> TileKey:
    if tile.z == 0:
        return tile
    return TileKey(x=tile.x // 2, y=tile.y // 2, z=tile.z - 1)


def tile_children(tile: TileKey) -> Tuple[TileKey, TileKey, TileKey, TileKey]:
    x, y, z = tile.x * 2, tile.y * 2, tile.z + 1
    return (
        TileKey(x=x, y=y, z=z),
        TileKey(x=x + 1, y=y, z=z),
        TileKey(x=x, y=y + 1, z=z),
        TileKey(x=x + 1, y=y + 1, z=z),
    )


def _clamp_index(value: int, n: int) -> int:
    return max(0, min(n - 1, value))


__all__ = [
    "get_tiles_in_bounds",
    "key_to_tile",
    "lat_lng_to_tile",
    "tile_children",
    "tile_count",
    "tile_parent",
    "tile_to_bounds",
    "tile_to_key",
]
