"""Central configuration for the Fog of Walk rendering pipeline.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Every tuning value can be overridden through environment
variables (optionally via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Tile system / index
# ---------------------------------------------------------------------------
# Zoom range covered by the tile index. Queries outside it are clamped.
TILE_INDEX_MIN_ZOOM = 1
TILE_INDEX_MAX_ZOOM = 18

# Extra tiles added on every side of the viewport so small pans do not
# immediately expose empty tiles.
TILE_VIEWPORT_BUFFER_TILES = _env_int("TILE_VIEWPORT_BUFFER_TILES", 1)

# Recentering on a located position zooms in to at least this level.
LOCATE_MIN_ZOOM = _env_int("LOCATE_MIN_ZOOM", 16)

# Pixel edge of a slippy-map tile.
TILE_SIZE_PX = 256


# ---------------------------------------------------------------------------
# Simplification
# ---------------------------------------------------------------------------
# Minimum on-screen spacing (pixels) between consecutive kept points.
DISTANCE_FILTER_MIN_PIXELS = _env_float("DISTANCE_FILTER_MIN_PIXELS", 10.0)

# Douglas-Peucker tolerance (degrees) applied at and above the reference zoom.
SIMPLIFICATION_TOLERANCE_DEG = _env_float("SIMPLIFICATION_TOLERANCE_DEG", 0.00005)

# Below the reference zoom the tolerance doubles per zoom level out.
SIMPLIFICATION_REFERENCE_ZOOM = _env_int("SIMPLIFICATION_REFERENCE_ZOOM", 15)

# Upper bound for the zoom-scaled tolerance (degrees).
SIMPLIFICATION_MAX_TOLERANCE_DEG = _env_float("SIMPLIFICATION_MAX_TOLERANCE_DEG", 0.01)


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------
# Toggle the cross-track overlap reduction entirely.
DEDUP_ENABLED = _env_bool("DEDUP_ENABLED", True)

# Cell sizes (metres) for the coarse and the fine dedup pass.
DEDUP_COARSE_TILE_M = _env_float("DEDUP_COARSE_TILE_M", 50.0)
DEDUP_FINE_TILE_M = _env_float("DEDUP_FINE_TILE_M", 10.0)


# ---------------------------------------------------------------------------
# Fog of war
# ---------------------------------------------------------------------------
# Real-world radius (metres) revealed around every visible track point.
DISCOVERY_RADIUS_M = _env_float("DISCOVERY_RADIUS_M", 100.0)

# The reveal radius never shrinks below this many pixels.
FOG_MIN_RADIUS_PX = _env_float("FOG_MIN_RADIUS_PX", 2.0)

# Fog rectangle extends this far (pixels) past every viewport edge.
FOG_BUFFER_PX = _env_int("FOG_BUFFER_PX", 2000)

# Index padding around the visible range when stroking the mask path.
FOG_CONTEXT_POINTS = 3

# Circle subsampling step is max(1, floor(FOG_CIRCLE_STEP_ZOOM - zoom)).
FOG_CIRCLE_STEP_ZOOM = 12

# Fill used for the flat fog overlay.
FOG_FILL = os.getenv("FOG_FILL", "rgba(0,0,0,0.8)")
FOG_OPACITY = _env_float("FOG_OPACITY", 0.8)

# Base map used by the inverted fog style and the HTML export.
BASE_TILE_URL = os.getenv(
    "BASE_TILE_URL", "https://tile.openstreetmap.org/{z}/{x}/{y}.png"
)


# ---------------------------------------------------------------------------
# Track polylines
# ---------------------------------------------------------------------------
# Index padding around the visible range for rendered polylines.
POLYLINE_CONTEXT_POINTS = 5


# ---------------------------------------------------------------------------
# Caching / identifiers
# ---------------------------------------------------------------------------
# Number of prepared track-set snapshots kept for reuse.
SNAPSHOT_CACHE_SIZE = _env_int("SNAPSHOT_CACHE_SIZE", 4)

# Length of the random identifier assigned to parsed tracks.
TRACK_ID_LENGTH = 12
