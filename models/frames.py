"""Grid geometry and frame manifest records."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Orientation = Literal["back", "left", "front", "right"]


class GridInfo(BaseModel):
    """Declared geometry of a composed sheet."""

    model_config = ConfigDict(frozen=True)

    frame_w: int = Field(ge=1)
    frame_h: int = Field(ge=1)
    rows: int = Field(ge=1)
    cols: int = Field(ge=1)
    directions: tuple[Orientation, ...] | None = None
    """Facing of each row, top to bottom, when known."""

    @property
    def frame_count(self) -> int:
        return self.rows * self.cols


class FrameSizeRecord(BaseModel):
    w: int
    h: int


class FrameManifest(BaseModel):
    animation: str
    fps: float = 8
    frame_size: FrameSizeRecord
    orientations: list[str] | None = None
    """Facing label of each output row, in output order."""

    frames: dict[str, list[str]] = Field(default_factory=dict)
    """Folder name → ordered frame file names."""


class SlicedFrame(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    folder: str
    name: str
    source_row: int
    col: int
    index: int
    """Sequential index across the whole animation, in output order."""

    path: Path | None = None
    """Written location; ``None`` when slicing in memory."""

    image: object | None = Field(default=None, exclude=True, repr=False)
    """The cropped ``PIL.Image.Image``."""


class SliceResult(BaseModel):
    total_frames: int
    frames_per_row: int
    rows: int
    frames: list[SlicedFrame]
    manifest: FrameManifest
