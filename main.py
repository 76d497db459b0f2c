"""
Entry point and compatibility facade for the meme export pipeline.

This module exposes a stable API and a CLI.

Packages:
- memeshot.scene: Scene snapshot model and JSON loaders
- memeshot.image: Pixel buffers and border trimming
- memeshot.geometry: Capture-relative geometry resolution
- memeshot.render: Fallback compositor
- memeshot.pipeline: Export orchestration (`ExportOrchestrator`, `run_export`)
"""

from __future__ import annotations

import logging

from memeshot.config import CONFIG_PATH, ExportSettings, load_export_settings, settings_from_dict
from memeshot.errors import (
    EncodingError,
    ExportError,
    ExportUnavailable,
    GeometryError,
    RasterizerFailure,
    TargetMissing,
)
from memeshot.geometry import resolve_geometry
from memeshot.image import find_content_box, trim_borders
from memeshot.pipeline import (
    ExportOrchestrator,
    FileSink,
    ImageFileRasterizer,
    LoggingNotifier,
    build_presentation,
    run_export,
)
from memeshot.render import compose_fallback
from memeshot.scene import load_snapshot

__all__ = [
    # config
    "CONFIG_PATH",
    "ExportSettings",
    "load_export_settings",
    # errors
    "ExportError",
    "TargetMissing",
    "RasterizerFailure",
    "GeometryError",
    "EncodingError",
    "ExportUnavailable",
    # stages
    "find_content_box",
    "trim_borders",
    "resolve_geometry",
    "compose_fallback",
    # pipeline
    "ExportOrchestrator",
    "FileSink",
    "ImageFileRasterizer",
    "LoggingNotifier",
    "build_presentation",
    "run_export",
    "load_snapshot",
]


def _cli() -> None:
    """CLI for exporting a scene snapshot to PNG.

    --scene / -s: Path to the scene JSON (editor state)
    --layout / -l: Path to the layout JSON (rendered rectangles)
    --capture / -c: Already rasterized screenshot of the scene (optional);
                    without it the image is reconstructed from geometry
    --out-dir / -o: Output directory (default: current directory)
    --config: Path to export settings JSON (default: config/export.json)
    --tolerance: Border trimming tolerance 0..255 (overrides config)
    --verbose / -v: Debug logging
    """
    import argparse

    parser = argparse.ArgumentParser(description="Export a meme scene snapshot to a PNG image.")
    parser.add_argument("--scene", "-s", type=str, required=True, help="Path to scene JSON")
    parser.add_argument("--layout", "-l", type=str, required=True, help="Path to layout JSON")
    parser.add_argument("--capture", "-c", type=str, help="Path to an already rasterized capture of the scene")
    parser.add_argument("--out-dir", "-o", type=str, default=".", help="Directory to write the PNG into (default: .)")
    parser.add_argument("--config", type=str, help="Path to export settings JSON")
    parser.add_argument("--tolerance", type=int, help="Border trimming tolerance 0..255 (default from config: 8)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_export_settings(args.config)
        if args.tolerance is not None:
            settings = settings_from_dict({"trim_tolerance": args.tolerance}, base=settings)
        scene, layout = load_snapshot(args.scene, args.layout)
    except (OSError, ValueError) as e:
        print(str(e))
        raise SystemExit(2)

    sink = FileSink(args.out_dir)
    rasterizer = ImageFileRasterizer(args.capture) if args.capture else None
    orchestrator = ExportOrchestrator(sink, LoggingNotifier(), rasterizer=rasterizer, settings=settings)
    result = run_export(orchestrator, scene, layout, build_presentation(scene, layout))

    if not result.ok:
        print(f"Export failed: {result.error}")
        raise SystemExit(1)
    print(f"Saved meme to: {sink.last_path}")
    print(f"Path: {'reconstructed' if result.reconstructed else 'captured'}")


if __name__ == "__main__":
    _cli()
