"""Export a Build: per-animation sheets, sliced frames and a sprite manifest.

Layout under ``out_dir``::

    ulpc/{animation}/sheet.png                       (sheets modes)
    ulpc_frames/{Animation}_{facing}/{slug}_{animation}_{NNN}.png
    {slug}_sprite_manifest.json                      (frame modes)

Every animation is composed in memory before anything is written, so a
fatal error in any animation leaves ``out_dir`` untouched.  The manifest is
checked against ``contracts/schemas/sprite_manifest.v1.json`` before writing.
"""

import json
import os
from pathlib import Path

import jsonschema
from pydantic import BaseModel, Field

from app.config import ExportOptions, FrameSize
from app.utils.logging import get_logger
from compose.compositor import ComposedRaster, Compositor
from compose.slicer import slice_sheet
from models.build import Build

logger = get_logger("compose.export")

MANIFEST_SCHEMA_TAG = "ulpc.manifest/1.0"
_MANIFEST_SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "schemas" / "sprite_manifest.v1.json"


class ExportResult(BaseModel):
    sheets: dict[str, Path] = Field(default_factory=dict)
    """Animation → written sheet."""

    frames: dict[str, int] = Field(default_factory=dict)
    """Frame folder → number of frames written."""

    manifest_path: Path | None = None
    manifest: dict | None = None


def effective_options(build: Build, options: ExportOptions | None = None) -> ExportOptions:
    """Defaults ← Build ``animations``/``output`` ← explicitly set caller options."""
    merged: dict = {}
    if build.animations:
        merged["animations"] = list(build.animations)
    if build.output is not None:
        out = build.output
        if out.mode is not None:
            merged["mode"] = out.mode
        if out.zero_pad is not None:
            merged["zero_pad"] = out.zero_pad
        if out.fps is not None:
            merged["fps"] = out.fps
        if out.frame_size is not None:
            merged["frame_size"] = FrameSize(w=out.frame_size.w, h=out.frame_size.h)
    if options is not None:
        merged.update({name: getattr(options, name) for name in options.model_fields_set})
    return ExportOptions(**merged)


def _write_atomic(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_bytes(data)
    os.replace(tmp, path)


def export_build(
    build: Build,
    compositor: Compositor,
    out_dir: str | Path,
    slug: str,
    options: ExportOptions | None = None,
) -> ExportResult:
    """Compose, write and slice every requested animation of *build*."""
    opts = effective_options(build, options)
    out = Path(out_dir)

    frame_size = (opts.frame_size.w, opts.frame_size.h) if opts.frame_size else None
    if frame_size is not None and compositor.frame_size is None:
        compositor = Compositor(
            compositor.locator,
            grid_metadata=compositor.grid_metadata,
            validator=compositor.validator,
            z_order=compositor.z_order,
            frame_size=frame_size,
            validate=compositor.validator is not None,
        )

    rasters: dict[str, ComposedRaster] = compositor.compose_all(build, opts.animations)

    result = ExportResult()
    manifest: dict = {"schema": MANIFEST_SCHEMA_TAG, "slug": slug, "animations": {}}

    for animation, raster in rasters.items():
        sheet_rel: str | None = None
        if opts.writes_sheets:
            sheet_path = out / "ulpc" / animation / "sheet.png"
            _write_atomic(sheet_path, raster.to_png_bytes())
            result.sheets[animation] = sheet_path
            sheet_rel = sheet_path.relative_to(out).as_posix()
            logger.info("sheet_written", animation=animation, path=str(sheet_path))

        if not opts.writes_frames:
            continue

        sliced = slice_sheet(
            raster,
            raster.grid,
            animation,
            out_dir=out / "ulpc_frames",
            slug=slug,
            zero_pad=opts.zero_pad,
            fps=opts.fps,
            orientation_dirs=opts.orientation_dirs,
        )
        for folder, names in sliced.manifest.frames.items():
            result.frames[folder] = result.frames.get(folder, 0) + len(names)

        size = sliced.manifest.frame_size.model_dump()
        manifest.setdefault("frame_size", size)
        entry: dict = {
            "frames": sliced.total_frames,
            "fps": opts.fps,
            "frame_size": size,
            "folders": sliced.manifest.frames,
        }
        if sheet_rel:
            entry["sheet"] = sheet_rel
        if sliced.manifest.orientations:
            entry["orientations"] = sliced.manifest.orientations
        manifest["animations"][animation] = entry

    if opts.writes_frames:
        schema = json.loads(_MANIFEST_SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(instance=manifest, schema=schema)
        manifest_path = out / f"{slug}_sprite_manifest.json"
        _write_atomic(manifest_path, json.dumps(manifest, indent=2).encode("utf-8"))
        result.manifest_path = manifest_path
        result.manifest = manifest

    logger.info(
        "export_done",
        slug=slug,
        animations=list(rasters),
        sheets=len(result.sheets),
        frame_folders=len(result.frames),
    )
    return result
