"""Track reduction stages: validation, simplification and deduplication."""

from .deduplication import (
    deduplicate_by_tiles_map,
    point_to_cell_key,
    two_pass_deduplicate,
)
from .simplification import (
    douglas_peucker,
    get_distance_filtered_points,
    get_distance_filtered_tracks,
    simplify_tracks,
    tolerance_for_zoom,
)
from .validation import drop_degenerate, sanitize_tracks

__all__ = [
    "deduplicate_by_tiles_map",
    "douglas_peucker",
    "drop_degenerate",
    "get_distance_filtered_points",
    "get_distance_filtered_tracks",
    "point_to_cell_key",
    "sanitize_tracks",
    "simplify_tracks",
    "tolerance_for_zoom",
    "two_pass_deduplicate",
]
