"""Activity file parsers dispatched by file extension."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Union

from ..config import TRACK_ID_LENGTH
from ..errors import TrackParseError, UnsupportedFileTypeError
from ..models import Track
from ..utils import generate_light_id
from .fit import parse_fit_file
from .gpx import parse_gpx_file, parse_gpx_text
from .kml import parse_kml_file, parse_kml_text, parse_kmz_file

PathLike = Union[str, Path]
FileParser = Callable[[Path, Callable[[], str]], List[Track]]

_log = logging.getLogger(__name__)

PARSERS: Dict[str, FileParser] = {
    ".gpx": parse_gpx_file,
    ".fit": parse_fit_file,
    ".kml": parse_kml_file,
    ".kmz": parse_kmz_file,
}

SUPPORTED_EXTENSIONS = tuple(sorted(PARSERS))


def _new_track_id() -> str:
    return generate_light_id(TRACK_ID_LENGTH)


def parse_activity_file(path: PathLike) -> List[Track]:
    """Parse one activity file into tracks.

    Raises:
        UnsupportedFileTypeError: If no parser handles the file extension.
        TrackParseError: If the file cannot be read or decoded.
    """

    path = Path(path)
    parser = PARSERS.get(path.suffix.lower())
    if parser is None:
        raise UnsupportedFileTypeError(f"Unsupported file type: {path.name}")
    return parser(path, _new_track_id)


def parse_activity_files(paths: Iterable[PathLike]) -> List[Track]:
    """Parse every file, skipping (and logging) the ones that fail."""

    tracks: List[Track] = []
    for path in paths:
        try:
            parsed = parse_activity_file(path)
        except UnsupportedFileTypeError as exc:
            _log.warning("Skipping %s: %s", path, exc)
            continue
        except TrackParseError as exc:
            _log.warning("Failed to parse %s: %s", path, exc)
            continue
        if not parsed:
            _log.info("No tracks found in %s", path)
        tracks.extend(parsed)
    _log.info("Parsed %d tracks", len(tracks))
    return tracks


__all__ = [
    "PARSERS",
    "SUPPORTED_EXTENSIONS",
    "parse_activity_file",
    "parse_activity_files",
    "parse_gpx_text",
    "parse_kml_text",
]
