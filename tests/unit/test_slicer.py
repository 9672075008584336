"""Unit tests for the frame slicer.

Test sheets use 2x2 frames; each row is filled with its own colour so the
source row of every output frame can be checked by pixel.

Covers:
  1. Frame count and folder totals.
  2. Canonical facing cycle (back, left, front, right) then extra rows.
  3. Default facings by row index; single-row sheets.
  4. Geometry errors.
  5. File naming, zero padding, and no partial output on failure.
  6. Manifest round-trip from a composed raster.
"""

from pathlib import Path

import pytest
from PIL import Image

from app.errors import GeometryMismatchError
from compose.assets import LayerAssetLocator
from compose.compositor import Compositor
from compose.slicer import DEFAULT_FACING_BY_ROW, canonical_row_order, row_facings, slice_sheet
from models.build import Build, Layer
from models.frames import GridInfo

ROW_COLOURS = [
    (255, 0, 0, 255),
    (0, 255, 0, 255),
    (0, 0, 255, 255),
    (255, 255, 0, 255),
    (0, 255, 255, 255),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sheet(rows: int, cols: int, frame: int = 2) -> Image.Image:
    image = Image.new("RGBA", (cols * frame, rows * frame))
    for r in range(rows):
        band = Image.new("RGBA", (cols * frame, frame), ROW_COLOURS[r])
        image.paste(band, (0, r * frame))
    return image


def _grid(rows: int, cols: int, directions=None, frame: int = 2) -> GridInfo:
    return GridInfo(frame_w=frame, frame_h=frame, rows=rows, cols=cols, directions=directions)


# ---------------------------------------------------------------------------
# Test 1: Frame count
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("rows, cols", [(1, 1), (1, 6), (4, 3), (5, 9)])
def test_frame_count_matches_grid(rows: int, cols: int) -> None:
    result = slice_sheet(_sheet(rows, cols), _grid(rows, cols), "walk")

    assert result.total_frames == rows * cols
    assert len(result.frames) == rows * cols
    assert sum(len(names) for names in result.manifest.frames.values()) == rows * cols
    assert (result.rows, result.frames_per_row) == (rows, cols)


# ---------------------------------------------------------------------------
# Test 2: Canonical facing cycle
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "directions",
    [
        ("front", "back", "right", "left"),
        ("right", "front", "left", "back"),
        ("back", "left", "front", "right"),
    ],
)
def test_labelled_rows_follow_canonical_cycle(directions) -> None:
    result = slice_sheet(_sheet(4, 3), _grid(4, 3, directions), "walk")

    assert result.manifest.orientations == ["back", "left", "front", "right"]
    assert list(result.manifest.frames) == ["Walk_back", "Walk_left", "Walk_front", "Walk_right"]
    for frame in result.frames:
        expected_row = directions.index(frame.folder.split("_", 1)[1])
        assert frame.source_row == expected_row
        assert frame.image.getpixel((0, 0)) == ROW_COLOURS[expected_row]


def test_extra_rows_follow_cycle_in_source_order() -> None:
    result = slice_sheet(_sheet(5, 2), _grid(5, 2), "walk")

    assert [f.source_row for f in result.frames[::2]] == [0, 1, 2, 3, 4]
    assert list(result.manifest.frames) == ["Walk_back", "Walk_left", "Walk_front", "Walk_right", "Walk_row4"]


def test_canonical_order_only_when_all_four_present() -> None:
    assert canonical_row_order(["front", "back", None]) == [0, 1, 2]
    assert canonical_row_order(["front", None, "back", "right", "left"]) == [2, 4, 0, 3, 1]


# ---------------------------------------------------------------------------
# Test 3: Default facings
# ---------------------------------------------------------------------------


def test_default_facing_table() -> None:
    assert dict(DEFAULT_FACING_BY_ROW) == {0: "back", 1: "left", 2: "front", 3: "right"}
    assert row_facings(_grid(4, 1)) == ["back", "left", "front", "right"]


def test_single_row_is_unlabelled() -> None:
    result = slice_sheet(_sheet(1, 4), _grid(1, 4), "idle")

    assert row_facings(_grid(1, 4)) == [None]
    assert result.manifest.orientations is None
    assert list(result.manifest.frames) == ["idle"]


def test_orientation_dirs_off_uses_one_folder() -> None:
    result = slice_sheet(_sheet(4, 2), _grid(4, 2), "walk", orientation_dirs=False)
    assert list(result.manifest.frames) == ["walk"]
    assert result.manifest.orientations == ["back", "left", "front", "right"]


# ---------------------------------------------------------------------------
# Test 4: Geometry errors
# ---------------------------------------------------------------------------


def test_sheet_not_divisible_by_frame() -> None:
    image = Image.new("RGBA", (5, 4))
    with pytest.raises(GeometryMismatchError) as excinfo:
        slice_sheet(image, _grid(2, 2), "walk")
    assert excinfo.value.dimensions == {"width": 5, "height": 4, "frame_w": 2, "frame_h": 2}


def test_sheet_disagrees_with_grid() -> None:
    with pytest.raises(GeometryMismatchError, match="grid mismatch"):
        slice_sheet(_sheet(4, 3), _grid(4, 2), "walk")


def test_grid_required_for_plain_images() -> None:
    with pytest.raises(ValueError):
        slice_sheet(_sheet(1, 1), None, "walk")


# ---------------------------------------------------------------------------
# Test 5: Written frames
# ---------------------------------------------------------------------------


def test_frames_written_with_sequential_names(tmp_path: Path) -> None:
    result = slice_sheet(_sheet(4, 2), _grid(4, 2), "walk", out_dir=tmp_path, slug="hero", zero_pad=4)

    assert result.manifest.frames["Walk_back"] == ["hero_walk_0000.png", "hero_walk_0001.png"]
    assert result.manifest.frames["Walk_right"] == ["hero_walk_0006.png", "hero_walk_0007.png"]
    for frame in result.frames:
        assert frame.path == tmp_path / frame.folder / frame.name
        with Image.open(frame.path) as written:
            assert written.size == (2, 2)
    assert not list(tmp_path.glob(".slice-*"))


def test_in_memory_slicing_writes_nothing(tmp_path: Path) -> None:
    result = slice_sheet(_sheet(4, 2), _grid(4, 2), "walk")
    assert all(frame.path is None for frame in result.frames)
    assert result.frames[0].name == "walk_000.png"


def test_failure_leaves_no_partial_output(tmp_path: Path, monkeypatch) -> None:
    original_save = Image.Image.save
    calls = {"n": 0}

    def flaky_save(self, *args, **kwargs):
        calls["n"] += 1
        if calls["n"] == 3:
            raise OSError("disk full")
        return original_save(self, *args, **kwargs)

    monkeypatch.setattr(Image.Image, "save", flaky_save)
    out = tmp_path / "frames"

    with pytest.raises(OSError, match="disk full"):
        slice_sheet(_sheet(4, 2), _grid(4, 2), "walk", out_dir=out, slug="hero")

    assert list(out.rglob("*.png")) == []
    assert not list(out.glob(".slice-*"))


# ---------------------------------------------------------------------------
# Test 6: Round trip from a composed raster
# ---------------------------------------------------------------------------


def test_manifest_round_trip_from_composed_raster(tmp_path: Path) -> None:
    body = tmp_path / "body/bodies/male/walk"
    head = tmp_path / "head/heads/human/male/walk"
    for folder in (body, head):
        folder.mkdir(parents=True)
        _sheet(4, 3, frame=4).save(folder / "light.png")

    build = Build(
        animations=("walk",),
        layers=(
            Layer(category="body/bodies/male", variant="light"),
            Layer(category="head/heads/human/male", variant="light"),
        ),
    )
    raster = Compositor(LayerAssetLocator(tmp_path), frame_size=(4, 4), validate=False).compose(build, "walk")

    result = slice_sheet(raster, None, "walk", fps=12)
    manifest = result.manifest.model_dump()

    assert manifest["frame_size"] == {"w": 4, "h": 4}
    assert manifest["fps"] == 12
    assert result.total_frames == 4 * 3
