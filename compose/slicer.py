"""Frame slicer — composed sheet → per-facing frames + manifest.

Row facings come from the grid's explicit ``directions`` or, for multi-row
sheets without them, from :data:`DEFAULT_FACING_BY_ROW`.  When all four of
back/left/front/right are present, those rows are emitted first in that
cycle order, followed by every other row in source order.

Frames are numbered sequentially in output order
(``{slug}_{animation}_{NNN}.png``) and grouped into ``{Animation}_{facing}``
folders.  Written frames are staged in a scratch directory and moved into
place only after every frame has been encoded, so a failure leaves no
partial output behind.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

from PIL import Image

from app.errors import GeometryMismatchError
from app.utils.logging import get_logger
from compose.compositor import ComposedRaster
from models.frames import FrameManifest, FrameSizeRecord, GridInfo, SlicedFrame, SliceResult

logger = get_logger("compose.slicer")

# LPC sheets list facings top to bottom as up, left, down, right.
DEFAULT_FACING_BY_ROW: Mapping[int, str] = {
    0: "back",
    1: "left",
    2: "front",
    3: "right",
}

CANONICAL_CYCLE: tuple[str, ...] = ("back", "left", "front", "right")


def row_facings(grid: GridInfo) -> list[str | None]:
    """Facing label of each source row; ``None`` for unlabeled rows."""
    if grid.directions and len(grid.directions) == grid.rows:
        return list(grid.directions)
    if grid.rows > 1:
        return [DEFAULT_FACING_BY_ROW.get(r) for r in range(grid.rows)]
    return [None] * grid.rows


def canonical_row_order(facings: Sequence[str | None]) -> list[int]:
    """Source row indices in output order."""
    if not all(f in facings for f in CANONICAL_CYCLE):
        return list(range(len(facings)))
    leading = [facings.index(f) for f in CANONICAL_CYCLE]
    rest = [r for r in range(len(facings)) if r not in leading]
    return leading + rest


def _folder_for(animation: str, label: str | None, orientation_dirs: bool) -> str:
    if orientation_dirs and label:
        return f"{animation[:1].upper()}{animation[1:]}_{label}"
    return animation


def slice_sheet(
    raster: Image.Image | ComposedRaster,
    grid: GridInfo | None,
    animation_name: str,
    out_dir: str | Path | None = None,
    slug: str | None = None,
    zero_pad: int = 3,
    fps: float = 8,
    orientation_dirs: bool = True,
) -> SliceResult:
    """Cut *raster* into frames per *grid*.

    Args:
        raster: Sheet image, or a ComposedRaster (whose grid is used when
            *grid* is ``None``).
        grid: Declared geometry.
        animation_name: Used in folder and file names and the manifest.
        out_dir: When given, frames are written beneath it; otherwise frames
            are returned in memory only.
        slug: File-name prefix (``{slug}_{animation}_{NNN}.png``).
        zero_pad: Digits in the sequential frame index.
        fps: Recorded in the manifest.
        orientation_dirs: Group frames by facing folder.

    Raises:
        GeometryMismatchError: sheet size is not an exact multiple of the
            frame size, or disagrees with the declared rows/cols.
    """
    if isinstance(raster, ComposedRaster):
        grid = grid or raster.grid
        image = raster.image
    else:
        image = raster
    if grid is None:
        raise ValueError("slice_sheet needs a grid")

    width, height = image.size
    if width % grid.frame_w or height % grid.frame_h:
        raise GeometryMismatchError(
            f"sheet ({width}x{height}) not divisible by frame ({grid.frame_w}x{grid.frame_h})",
            width=width, height=height, frame_w=grid.frame_w, frame_h=grid.frame_h,
        )
    cols, rows = width // grid.frame_w, height // grid.frame_h
    if (cols, rows) != (grid.cols, grid.rows):
        raise GeometryMismatchError(
            f"grid mismatch (expected {grid.cols}x{grid.rows}, got {cols}x{rows})",
            expected=(grid.cols, grid.rows), got=(cols, rows),
        )

    facings = row_facings(grid)
    order = canonical_row_order(facings)
    labels = [facings[r] if facings[r] else (f"row{r}" if rows > 1 else None) for r in order]

    prefix = f"{slug}_{animation_name}" if slug else animation_name
    frames: list[SlicedFrame] = []
    folders: dict[str, list[str]] = {}
    index = 0
    for out_row, src_row in enumerate(order):
        folder = _folder_for(animation_name, labels[out_row], orientation_dirs)
        top = src_row * grid.frame_h
        for col in range(cols):
            left = col * grid.frame_w
            name = f"{prefix}_{index:0{zero_pad}d}.png"
            crop = image.crop((left, top, left + grid.frame_w, top + grid.frame_h))
            frames.append(
                SlicedFrame(folder=folder, name=name, source_row=src_row, col=col, index=index, image=crop)
            )
            folders.setdefault(folder, []).append(name)
            index += 1

    if out_dir is not None:
        _write_frames(Path(out_dir), frames)

    manifest = FrameManifest(
        animation=animation_name,
        fps=fps,
        frame_size=FrameSizeRecord(w=grid.frame_w, h=grid.frame_h),
        orientations=[label for label in labels if label] or None,
        frames=folders,
    )
    logger.info(
        "slice_done",
        animation=animation_name,
        frames=len(frames),
        rows=rows,
        cols=cols,
        orientations=manifest.orientations,
    )
    return SliceResult(
        total_frames=len(frames),
        frames_per_row=cols,
        rows=rows,
        frames=frames,
        manifest=manifest,
    )


def _write_frames(out_dir: Path, frames: list[SlicedFrame]) -> None:
    """Encode every frame into a scratch dir, then move them into *out_dir*."""
    out_dir.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=".slice-", dir=out_dir))
    try:
        for frame in frames:
            target = staging / frame.folder / frame.name
            target.parent.mkdir(parents=True, exist_ok=True)
            frame.image.save(target, format="PNG")
        for frame in frames:
            final = out_dir / frame.folder / frame.name
            final.parent.mkdir(parents=True, exist_ok=True)
            os.replace(staging / frame.folder / frame.name, final)
            frame.path = final
    finally:
        shutil.rmtree(staging, ignore_errors=True)
