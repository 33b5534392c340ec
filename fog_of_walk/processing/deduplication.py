"""Cross-track overlap reduction on an equirectangular spatial hash grid."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import DEDUP_COARSE_TILE_M, DEDUP_FINE_TILE_M
from ..geometry.primitives import METERS_PER_DEGREE
from ..models import Point, Track, number_fragments

CellKey = Tuple[int, int]

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class _CellClaim:
    """First point seen in a cell and the track that owns it."""

    point: Point
    owner: str


def point_to_cell_key(point: Point, tile_size_meters: float) -> CellKey:
    """Grid cell of ``point`` using the equirectangular metre approximation."""

    lat_m = point.lat * METERS_PER_DEGREE
    lon_m = point.lon * METERS_PER_DEGREE * math.cos(math.radians(point.lat))
    return (
        math.floor(lat_m / tile_size_meters),
        math.floor(lon_m / tile_size_meters),
    )


def deduplicate_by_tiles_map(
    tracks: Sequence[Track], tile_size_meters: float
) -> List[Track]:
    """Collapse ground shared by several tracks onto the first track seen.

    Tracks are visited in input order and a cell belongs to the first track
    that touches it. Later tracks skip points in foreign cells; when a track
    enters foreign ground its current fragment ends on the owner's point for
    that cell, and when it leaves, a new fragment starts from the owner's
    point of the last foreign cell. Fragments of two or fewer points are
    dropped. Ownership is keyed by track id, so a track (or its fragments)
    never deduplicates against itself.

    Args:
        tracks: Input tracks; their order decides ownership.
        tile_size_meters: Edge of a grid cell in metres.

    Returns:
        New track values; the first track's geometry is returned unchanged.

    Raises:
        ValueError: If ``tile_size_meters`` is not positive.
    """

    if not tile_size_meters > 0:
        raise ValueError("tile_size_meters must be greater than zero")

    claims: Dict[CellKey, _CellClaim] = {}
    deduplicated: List[Track] = []
    suppressed = 0

    for track in tracks:
        owner = track.id
        fragments: List[List[Point]] = []
        current: List[Point] = []
        previous_foreign: Optional[_CellClaim] = None

        for point in track.points:
            if not (math.isfinite(point.lat) and math.isfinite(point.lon)):
                continue
            key = point_to_cell_key(point, tile_size_meters)
            claim = claims.get(key)
            is_duplicate = claim is not None and claim.owner != owner

            if previous_foreign is not None and not is_duplicate:
                fragments.append(current)
                current = [previous_foreign.point]
            if not is_duplicate:
                if claim is None:
                    claims[key] = _CellClaim(point=point, owner=owner)
                current.append(point)
            elif previous_foreign is None:
                current.append(claim.point)
            previous_foreign = claim if is_duplicate else None

        fragments.append(current)
        kept = [fragment for fragment in fragments if len(fragment) > 2]
        if len(kept) != len(fragments):
            suppressed += len(fragments) - len(kept)
        deduplicated.extend(track.with_points(fragment) for fragment in kept)

    _log.debug(
        "Dedup at %.1fm: %d tracks -> %d fragments (%d suppressed)",
        tile_size_meters,
        len(tracks),
        len(deduplicated),
        suppressed,
    )
    return number_fragments(deduplicated)


def two_pass_deduplicate(
    tracks: Sequence[Track],
    coarse_tile_m: float = DEDUP_COARSE_TILE_M,
    fine_tile_m: float = DEDUP_FINE_TILE_M,
) -> List[Track]:
    """Run a coarse then a fine :func:`deduplicate_by_tiles_map` pass."""

    coarse = deduplicate_by_tiles_map(tracks, coarse_tile_m)
    return deduplicate_by_tiles_map(coarse, fine_tile_m)


__all__ = ["deduplicate_by_tiles_map", "point_to_cell_key", "two_pass_deduplicate"]
