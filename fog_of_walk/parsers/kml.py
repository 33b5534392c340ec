"""KML and KMZ parsing (LineString and gx:Track / gx:MultiTrack placemarks)."""

from __future__ import annotations

from datetime import datetime
import logging
from pathlib import Path
from typing import Callable, Iterator, List, Optional
from xml.etree.ElementTree import Element
import zipfile

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as ET

from ..errors import TrackParseError
from ..models import Point, Track

_log = logging.getLogger(__name__)

# Preferred entry names inside a KMZ archive, tried before any other *.kml.
_KMZ_ENTRY_NAMES = ("doc.kml", "index.kml", "main.kml")


def _local(tag: str) -> str:
    """Strip the ``{namespace}`` prefix ElementTree puts on tags."""

    return tag.rsplit("}", 1)[-1]


def _children(element: Element, name: str) -> Iterator[Element]:
    return (child for child in element if _local(child.tag) == name)


def _first_text(element: Element, name: str) -> Optional[str]:
    for child in _children(element, name):
        return (child.text or "").strip() or None
    return None


def _parse_when(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


def _line_string_points(line: Element) -> List[Point]:
    text = _first_text(line, "coordinates") or ""
    points: List[Point] = []
    for chunk in text.split():
        parts = chunk.split(",")
        if len(parts) < 2:
            continue
        try:
            lon, lat = float(parts[0]), float(parts[1])
            elevation = float(parts[2]) if len(parts) > 2 else None
        except ValueError:
            _log.debug("Skipping malformed KML coordinate %r", chunk)
            continue
        points.append(Point(lat=lat, lon=lon, elevation=elevation))
    return points


def _gx_track_points(track: Element) -> List[Point]:
    whens = [_parse_when(el.text) for el in _children(track, "when")]
    points: List[Point] = []
    for position, coord in enumerate(_children(track, "coord")):
        parts = (coord.text or "").split()
        if len(parts) < 2:
            continue
        try:
            lon, lat = float(parts[0]), float(parts[1])
            elevation = float(parts[2]) if len(parts) > 2 else None
        except ValueError:
            _log.debug("Skipping malformed gx:coord %r", coord.text)
            continue
        when = whens[position] if position < len(whens) else None
        points.append(Point(lat=lat, lon=lon, time=when, elevation=elevation))
    return points


def _placemark_point_runs(placemark: Element) -> Iterator[List[Point]]:
    for element in placemark.iter():
        name = _local(element.tag)
        if name == "LineString":
            yield _line_string_points(element)
        elif name == "Track":
            yield _gx_track_points(element)


def parse_kml_text(
    text: str | bytes, filename: str, id_factory: Callable[[], str]
) -> List[Track]:
    """Return a track for every LineString or gx:Track with points.

    Raises:
        TrackParseError: If the document is not well-formed XML or declares
            entities.
    """

    try:
        root = ET.fromstring(text)
    except (ET.ParseError, DefusedXmlException) as exc:
        raise TrackParseError(f"Invalid KML in {filename}: {exc}") from exc

    tracks: List[Track] = []
    for placemark in root.iter():
        if _local(placemark.tag) != "Placemark":
            continue
        name = _first_text(placemark, "name")
        for points in _placemark_point_runs(placemark):
            if not points:
                continue
            tracks.append(
                Track(
                    id=id_factory(),
                    filename=filename,
                    points=tuple(points),
                    name=name,
                )
            )
    return tracks


def parse_kml_file(path: Path, id_factory: Callable[[], str]) -> List[Track]:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise TrackParseError(f"Cannot read {path}: {exc}") from exc
    return parse_kml_text(data, path.name, id_factory)


def _kmz_entry(archive: zipfile.ZipFile) -> str:
    names = [info.filename for info in archive.infolist() if not info.is_dir()]
    for preferred in _KMZ_ENTRY_NAMES:
        if preferred in names:
            return preferred
    for name in names:
        if name.lower().endswith(".kml"):
            return name
    raise TrackParseError("No KML document found in KMZ archive")


def parse_kmz_file(path: Path, id_factory: Callable[[], str]) -> List[Track]:
    """Unpack the archive's main KML document and parse it."""

    try:
        with zipfile.ZipFile(path) as archive:
            entry = _kmz_entry(archive)
            data = archive.read(entry)
    except (zipfile.BadZipFile, OSError) as exc:
        raise TrackParseError(f"Invalid KMZ file {path.name}: {exc}") from exc
    return parse_kml_text(data, path.name, id_factory)


__all__ = ["parse_kml_file", "parse_kml_text", "parse_kmz_file"]
