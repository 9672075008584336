"""Per-layer grid geometry.

A layer's frame size comes from, in order:
  1. an explicit override (Build ``output.frame_size`` or caller option)
  2. grid metadata beside the sheet definitions:
       ``{defs}/{category}/index.json`` then ``{defs}/{category}/{variant}.json``
  3. the classic LPC 64x64 frame

Supported metadata shapes::

    {"animations": {"walk": {"frame_w": 64, "frame_h": 64, "rows": 4, "cols": 9}}}
    {"animations": [{"name": "walk", "frame": {"w": 64, "h": 64}, "directions": [...]}]}
    {"frame": {"w": 64, "h": 64}, "rows": 4, "cols": 9}
    {"grid": {"w": 64, "h": 64, "rows": 4, "cols": 9}}
"""

import json
from pathlib import Path
from typing import Any

from app.errors import GeometryMismatchError
from models.frames import GridInfo, Orientation

DEFAULT_FRAME_SIZE: tuple[int, int] = (64, 64)

_FACING_PREFIXES: tuple[tuple[tuple[str, ...], Orientation], ...] = (
    (("down", "south", "front"), "front"),
    (("up", "north", "back"), "back"),
    (("left", "west"), "left"),
    (("right", "east"), "right"),
)


def normalise_facing(name: str) -> Orientation:
    lowered = name.strip().lower()
    for prefixes, facing in _FACING_PREFIXES:
        if lowered.startswith(prefixes):
            return facing
    return "front"


def _first(shape: dict, *keys: str) -> Any:
    for key in keys:
        node: Any = shape
        for part in key.split("."):
            node = node.get(part) if isinstance(node, dict) else None
        if node is not None:
            return node
    return None


def normalise_grid_shape(shape: dict) -> dict | None:
    """Reduce any supported metadata shape to ``{frame_w, frame_h, rows?, cols?, directions?}``."""
    fw = _first(shape, "frame_w", "frameWidth", "frame.w", "grid.w")
    fh = _first(shape, "frame_h", "frameHeight", "frame.h", "grid.h")
    if not (isinstance(fw, int) and isinstance(fh, int) and fw > 0 and fh > 0):
        return None
    out: dict = {"frame_w": fw, "frame_h": fh}
    rows = _first(shape, "rows", "grid.rows")
    cols = _first(shape, "cols", "columns", "grid.cols")
    if isinstance(rows, int):
        out["rows"] = rows
    if isinstance(cols, int):
        out["cols"] = cols
    raw_dirs = _first(shape, "directions", "facings", "orientation", "faces")
    if isinstance(raw_dirs, list) and all(isinstance(d, str) for d in raw_dirs):
        out["directions"] = tuple(normalise_facing(d) for d in raw_dirs)
    return out


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


class GridMetadata:
    """Grid metadata lookup rooted at the sheet-definitions directory."""

    def __init__(self, defs_dir: str | Path | None) -> None:
        self.defs_dir = Path(defs_dir) if defs_dir else None

    def lookup(self, category: str, variant: str, animation: str) -> dict | None:
        if self.defs_dir is None:
            return None
        cat_dir = self.defs_dir / category.rstrip("/")
        for path in (cat_dir / "index.json", cat_dir / f"{variant}.json"):
            doc = _read_json(path)
            if not isinstance(doc, dict):
                continue
            animations = doc.get("animations")
            if isinstance(animations, dict) and isinstance(animations.get(animation), dict):
                found = normalise_grid_shape(animations[animation])
                if found:
                    return found
            if isinstance(animations, list):
                hit = next(
                    (a for a in animations if isinstance(a, dict) and a.get("name") == animation),
                    None,
                )
                if hit is not None:
                    found = normalise_grid_shape(hit)
                    if found:
                        return found
            found = normalise_grid_shape(doc)
            if found:
                return found
        return None


def layer_grid(
    size: tuple[int, int],
    metadata: dict | None = None,
    frame_size: tuple[int, int] | None = None,
    label: str = "layer",
) -> GridInfo:
    """Grid geometry of one layer image of *size* (width, height).

    Raises:
        GeometryMismatchError: the image is not an exact multiple of the
            frame size, or contradicts declared rows/cols.
    """
    width, height = size
    if frame_size is not None:
        fw, fh = frame_size
    elif metadata is not None:
        fw, fh = metadata["frame_w"], metadata["frame_h"]
    else:
        fw, fh = DEFAULT_FRAME_SIZE

    if width % fw or height % fh:
        raise GeometryMismatchError(
            f"{label}: sheet ({width}x{height}) not divisible by frame ({fw}x{fh})",
            width=width, height=height, frame_w=fw, frame_h=fh,
        )
    rows, cols = height // fh, width // fw

    directions = None
    if metadata is not None and frame_size is None:
        declared_rows = metadata.get("rows")
        declared_cols = metadata.get("cols")
        if (declared_rows is not None and declared_rows != rows) or (
            declared_cols is not None and declared_cols != cols
        ):
            raise GeometryMismatchError(
                f"{label}: grid mismatch (declared {declared_cols}x{declared_rows}, got {cols}x{rows})",
                declared_cols=declared_cols, declared_rows=declared_rows, cols=cols, rows=rows,
            )
    if metadata is not None:
        dirs = metadata.get("directions")
        if dirs and len(dirs) == rows:
            directions = tuple(dirs)

    return GridInfo(frame_w=fw, frame_h=fh, rows=rows, cols=cols, directions=directions)
