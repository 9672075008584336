"""Pipeline configuration and asset-root discovery.

Root resolution (same priority chain for every root):
  1. Explicit argument
  2. Environment variable (ULPC_SHEET_DEFS / ULPC_SPRITESHEETS)
  3. Conventional locations relative to the working directory

Export options (``animations``, ``zero_pad``, ``fps``, ``orientation_dirs``,
``mode``, ``frame_size``) are plain pydantic records supplied by the caller.
"""

import os
from pathlib import Path
from typing import Literal, Sequence

from pydantic import BaseModel, Field, field_validator

from app.errors import CatalogNotFoundError

# Animations the ULPC generator knows about; also the Build schema enum.
KNOWN_ANIMATIONS: tuple[str, ...] = (
    "spellcast",
    "thrust",
    "walk",
    "slash",
    "shoot",
    "hurt",
    "bow",
    "climb",
    "run",
    "jump",
    "idle",
    "sit",
    "emote",
    "combat",
)

_DEFAULT_ANIMS_FALLBACK: tuple[str, ...] = (
    "idle", "walk", "run", "slash", "thrust", "shoot",
    "hurt", "jump", "sit", "emote", "climb", "combat",
)

# Conventional sheet_definitions locations, relative to the working directory.
_SHEET_DEFS_CANDIDATES: tuple[str, ...] = (
    "assets/ulpc/sheet_definitions",
    "assets/sheet_definitions",
    "vendor/ulpc/sheet_definitions",
    "Universal-LPC-Spritesheet-Character-Generator/sheet_definitions",
)

OutputMode = Literal["full", "split_by_animation", "split_by_frame", "both"]


def resolve_sheet_defs(
    explicit: str | Path | None = None,
    cwd: str | Path | None = None,
    extra_candidates: Sequence[str | Path] = (),
) -> Path:
    """Locate the ULPC ``sheet_definitions`` directory.

    Raises:
        CatalogNotFoundError: If no candidate exists.  This is fatal for the
            whole pipeline.
    """
    root = Path(cwd) if cwd else Path.cwd()
    candidates: list[Path] = []
    if explicit:
        candidates.append(Path(explicit))
    env = os.environ.get("ULPC_SHEET_DEFS")
    if env:
        candidates.append(Path(env))
    candidates.extend(root / rel for rel in _SHEET_DEFS_CANDIDATES)
    candidates.extend(Path(c) for c in extra_candidates)

    for candidate in candidates:
        if candidate.is_dir():
            return candidate.resolve()
    raise CatalogNotFoundError(candidates)


def resolve_spritesheets_root(
    sheet_defs: Path,
    explicit: str | Path | None = None,
) -> Path:
    """Locate the spritesheet PNG tree that parallels ``sheet_definitions``."""
    root = explicit or os.environ.get("ULPC_SPRITESHEETS") or sheet_defs.parent / "spritesheets"
    return Path(root).resolve()


def animations_fallback() -> list[str]:
    """Animation folders searched, in order, when a layer lookup names no animation."""
    env = os.environ.get("ULPC_ANIMS_FALLBACK", "")
    if env.strip():
        return [a.strip() for a in env.split(",") if a.strip()]
    return list(_DEFAULT_ANIMS_FALLBACK)


class FrameSize(BaseModel):
    w: int = Field(ge=1)
    h: int = Field(ge=1)


class ExportOptions(BaseModel):
    """Caller-facing options for composing and slicing a Build."""

    animations: list[str] = Field(default_factory=lambda: ["idle"])
    """Animations to produce, in order."""

    zero_pad: int = Field(default=3, ge=1, le=8)
    """Digits in the sequential frame index of written frame files."""

    fps: float = Field(default=8, gt=0)
    """Playback rate recorded in the frame manifest."""

    orientation_dirs: bool = True
    """Group frames into ``<Animation>_<facing>`` folders."""

    mode: OutputMode = "both"
    """Which artifacts to produce: whole sheets, sliced frames, or both."""

    frame_size: FrameSize | None = None
    """Frame size override; otherwise discovered per layer."""

    @field_validator("animations")
    @classmethod
    def _unique_known(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("animations must not be empty")
        unknown = [a for a in v if a not in KNOWN_ANIMATIONS]
        if unknown:
            raise ValueError(f"unknown animations: {unknown}")
        if len(set(v)) != len(v):
            raise ValueError("animations must be unique")
        return v

    @property
    def writes_sheets(self) -> bool:
        return self.mode in ("full", "split_by_animation", "both")

    @property
    def writes_frames(self) -> bool:
        return self.mode in ("split_by_frame", "both")
