"""Web Mercator projection between WGS84 degrees and zoom-scaled pixels."""

from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray
from pyproj import CRS, Transformer

from ..config import TILE_SIZE_PX
from .primitives import MAX_MERCATOR_LAT

PixelArray = NDArray[np.float64]
PixelPoint = Tuple[float, float]

# Half the side of the EPSG:3857 square in metres.
_ORIGIN_SHIFT = 20037508.342789244


class WebMercatorProjection:
    """Project lat/lon into the global pixel plane used by slippy maps.

    The pixel plane at zoom ``z`` is ``TILE_SIZE_PX * 2^z`` pixels wide with
    its origin at the north-west corner (lon -180, lat ~85.05).
    """

    def __init__(self, tile_size: int = TILE_SIZE_PX) -> None:
        self.tile_size = tile_size
        self._forward = Transformer.from_crs(
            CRS.from_epsg(4326), CRS.from_epsg(3857), always_xy=True
        )
        self._backward = Transformer.from_crs(
            CRS.from_epsg(3857), CRS.from_epsg(4326), always_xy=True
        )

    def world_size(self, zoom: float) -> float:
        return self.tile_size * (2.0**zoom)

    def to_meters(
        self, lats: Sequence[float], lons: Sequence[float]
    ) -> Tuple[PixelArray, PixelArray]:
        """Return EPSG:3857 metre coordinates for the given degrees."""

        lat_arr = np.clip(
            np.asarray(lats, dtype=float), -MAX_MERCATOR_LAT, MAX_MERCATOR_LAT
        )
        lon_arr = np.asarray(lons, dtype=float)
        xs, ys = self._forward.transform(lon_arr, lat_arr)
        return np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)

    def from_meters(
        self, xs: Sequence[float], ys: Sequence[float]
    ) -> Tuple[PixelArray, PixelArray]:
        """Return ``(lats, lons)`` for EPSG:3857 metre coordinates."""

        lons, lats = self._backward.transform(
            np.asarray(xs, dtype=float), np.asarray(ys, dtype=float)
        )
        return np.asarray(lats, dtype=float), np.asarray(lons, dtype=float)

    def to_lonlat(
        self, xs: Sequence[float], ys: Sequence[float]
    ) -> Tuple[PixelArray, PixelArray]:
        """Inverse of :meth:`to_meters` in GeoJSON ``(lon, lat)`` order."""

        lats, lons = self.from_meters(xs, ys)
        return lons, lats

    def project_many(
        self, lats: Sequence[float], lons: Sequence[float], zoom: float
    ) -> PixelArray:
        """Project arrays of degrees to an ``(N, 2)`` array of world pixels."""

        if len(lats) == 0:
            return np.empty((0, 2), dtype=float)
        xs, ys = self.to_meters(lats, lons)
        scale = self.world_size(zoom) / (2 * _ORIGIN_SHIFT)
        px = (xs + _ORIGIN_SHIFT) * scale
        py = (_ORIGIN_SHIFT - ys) * scale
        return np.column_stack((px, py))

    def project(self, lat: float, lon: float, zoom: float) -> PixelPoint:
        point = self.project_many([lat], [lon], zoom)[0]
        return float(point[0]), float(point[1])

    def unproject(self, x: float, y: float, zoom: float) -> Tuple[float, float]:
        """Return ``(lat, lon)`` for a world pixel at ``zoom``."""

        scale = (2 * _ORIGIN_SHIFT) / self.world_size(zoom)
        mx = x * scale - _ORIGIN_SHIFT
        my = _ORIGIN_SHIFT - y * scale
        lats, lons = self.from_meters([mx], [my])
        return float(lats[0]), float(lons[0])


__all__ = ["PixelArray", "PixelPoint", "WebMercatorProjection"]
