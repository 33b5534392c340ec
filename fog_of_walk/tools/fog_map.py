"""Render activity files to a static fog-of-war map."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

from ..config import DISCOVERY_RADIUS_M
from ..geometry.metrics import calculate_center, tracks_bounds
from ..parsers import SUPPORTED_EXTENSIONS, parse_activity_files
from ..rendering.fog import FogRenderer, FogStyle
from ..rendering.map_view import MapView
from ..rendering.pipeline import PipelineConfig, RenderFrame, RenderPipeline
from ..rendering.visualization import create_fog_map

_DEFAULT_ZOOM = 13


def render_frame(
    files: Sequence[Path],
    *,
    zoom: Optional[float] = None,
    radius_m: float = DISCOVERY_RADIUS_M,
    style: FogStyle = FogStyle.DARK,
    size: tuple[int, int] = (1024, 768),
    dedup: bool = True,
) -> Optional[RenderFrame]:
    """Parse ``files`` and return the frame for a view fitted to the tracks.

    Args:
        files: Activity files (GPX, FIT, KML or KMZ).
        zoom: Fixed map zoom; when omitted the view fits every track.
        radius_m: Discovery radius in metres.
        style: Fog overlay style.
        size: Viewport size in pixels.
        dedup: Whether to run cross-track deduplication.

    Returns:
        The rendered frame, or ``None`` when no file produced a track.
    """

    tracks = parse_activity_files(files)
    if not tracks:
        return None

    pipeline = RenderPipeline(
        PipelineConfig(dedup_enabled=dedup),
        fog_renderer=FogRenderer(radius_m=radius_m, style=style),
    )
    with pipeline:
        snapshot = pipeline.set_tracks(tracks)
        map_view = MapView(
            calculate_center(snapshot.base_tracks or tracks),
            _DEFAULT_ZOOM if zoom is None else zoom,
            size=size,
        )
        bounds = tracks_bounds(snapshot.base_tracks)
        if zoom is None and bounds is not None:
            map_view.fit_bounds(bounds)
        pipeline.attach(map_view)
        return pipeline.latest_frame


def _build_parser() -> argparse.ArgumentParser:
    """Return the CLI argument parser for the fog map tool."""

    parser = argparse.ArgumentParser(
        description=(
            "Render GPS activity files as an HTML map with a fog-of-war overlay"
            f" (supported: {', '.join(SUPPORTED_EXTENSIONS)})."
        )
    )
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("fog_map.html"),
        help="Output HTML path (default: fog_map.html)",
    )
    parser.add_argument("--svg", type=Path, help="Optional path for the fog mask SVG")
    parser.add_argument(
        "--zoom",
        type=float,
        help="Map zoom; defaults to fitting all tracks",
    )
    parser.add_argument(
        "--radius-m",
        type=float,
        default=DISCOVERY_RADIUS_M,
        help=f"Discovery radius in metres (default: {DISCOVERY_RADIUS_M:g})",
    )
    parser.add_argument(
        "--style",
        choices=[style.value for style in FogStyle],
        default=FogStyle.DARK.value,
    )
    parser.add_argument("--width", type=int, default=1024)
    parser.add_argument("--height", type=int, default=768)
    parser.add_argument(
        "--no-dedup",
        action="store_true",
        help="Keep overlapping sections of different tracks",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """CLI entry point used via ``python -m fog_of_walk.tools.fog_map``."""

    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
    )

    frame = render_frame(
        args.files,
        zoom=args.zoom,
        radius_m=args.radius_m,
        style=FogStyle(args.style),
        size=(args.width, args.height),
        dedup=not args.no_dedup,
    )
    if frame is None:
        logging.error("No tracks could be read from %d file(s)", len(args.files))
        return 1

    try:
        create_fog_map(frame, radius_m=args.radius_m, output_html_path=args.output)
    except OSError as exc:
        logging.error("Failed to write map: %s", exc)
        return 1

    if args.svg is not None and frame.fog is not None:
        try:
            args.svg.parent.mkdir(parents=True, exist_ok=True)
            args.svg.write_text(frame.fog.to_svg(), encoding="utf-8")
        except OSError as exc:
            logging.error("Failed to write SVG mask: %s", exc)
            return 1
        logging.info("Fog mask written to %s", args.svg)

    logging.info(
        "Rendered %d visible points across %d tracks at zoom %d",
        frame.visible_point_count,
        len(frame.polylines),
        frame.zoom,
    )
    logging.info("Fog map written to %s", args.output)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
