"""Unit tests for the Compositor.

Spritesheets are synthesised with Pillow under tmp_path using 4x4 frames
(8x16 sheets: 2 columns, 4 rows).

Covers:
  1. Determinism — byte-identical PNG output.
  2. z-order table, z_override and Build-order ties.
  3. Hidden layers, offsets (with clipping) and tints.
  4. Geometry mismatches and missing assets are fatal.
  5. Grid metadata discovery.
  6. Catalog wiring: validator gate and variant-record asset lookup.
"""

import json
from pathlib import Path

import pytest
from PIL import Image

from app.errors import BuildValidationError, GeometryMismatchError, LayerAssetNotFoundError
from catalog.sheet_defs import CategoryCatalog
from compose.assets import LayerAssetLocator
from compose.compositor import Compositor, apply_tint
from compose.grid import GridMetadata
from compose.z_order import z_for
from models.build import Build, BuildFrameSize, BuildOutput, Layer, LayerColor, Offset, Tint
from validators.build import BuildValidator

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)
BLUE = (0, 0, 255, 255)
WHITE = (255, 255, 255, 255)
CLEAR = (0, 0, 0, 0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _sheet(
    root: Path,
    category: str,
    variant: str,
    animation: str | None = "idle",
    size: tuple[int, int] = (8, 16),
    fill: tuple = CLEAR,
    pixels: dict | None = None,
) -> Path:
    """Write a spritesheet PNG; *pixels* maps (x, y) → RGBA."""
    folder = root / category / animation if animation else root / category
    folder.mkdir(parents=True, exist_ok=True)
    image = Image.new("RGBA", size, fill)
    for xy, colour in (pixels or {}).items():
        image.putpixel(xy, colour)
    path = folder / f"{variant}.png"
    image.save(path)
    return path


def _standard_sheets(root: Path) -> None:
    _sheet(root, "body/bodies/female", "amber", fill=RED)
    _sheet(root, "head/heads/human/female", "amber", pixels={(0, 0): GREEN})
    _sheet(root, "hair/long/adult", "red", pixels={(0, 0): BLUE})


def _build(*, hair: dict | None = None, head: dict | None = None, **kwargs) -> Build:
    return Build(
        layers=(
            Layer(category="hair/long/adult", variant="red", **(hair or {})),
            Layer(category="body/bodies/female", variant="amber"),
            Layer(category="head/heads/human/female", variant="amber", **(head or {})),
        ),
        **kwargs,
    )


def _compositor(root: Path, **kwargs) -> Compositor:
    kwargs.setdefault("frame_size", (4, 4))
    kwargs.setdefault("validate", False)
    return Compositor(LayerAssetLocator(root), **kwargs)


# ---------------------------------------------------------------------------
# Test 1: Determinism
# ---------------------------------------------------------------------------


def test_compose_is_deterministic(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    compositor = _compositor(tmp_path)

    first = compositor.compose(_build(), "idle").to_png_bytes()
    second = compositor.compose(_build(), "idle").to_png_bytes()

    assert first == second


def test_composed_geometry(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    raster = _compositor(tmp_path).compose(_build(), "idle")

    assert raster.size == (8, 16)
    assert (raster.grid.rows, raster.grid.cols) == (4, 2)
    assert (raster.grid.frame_w, raster.grid.frame_h) == (4, 4)
    assert raster.animation == "idle"


# ---------------------------------------------------------------------------
# Test 2: Layer order
# ---------------------------------------------------------------------------


def test_z_table_orders_layers_not_build_order(tmp_path: Path) -> None:
    """Hair is first in the Build but drawn last (z 28 > head 20 > body 10)."""
    _standard_sheets(tmp_path)
    raster = _compositor(tmp_path).compose(_build(), "idle")

    assert raster.layers == (
        "body/bodies/female:amber",
        "head/heads/human/female:amber",
        "hair/long/adult:red",
    )
    assert raster.image.getpixel((0, 0)) == BLUE
    assert raster.image.getpixel((3, 3)) == RED


def test_z_override_replaces_table_value(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    raster = _compositor(tmp_path).compose(_build(hair={"z_override": 0}), "idle")

    assert raster.layers[0] == "hair/long/adult:red"
    assert raster.image.getpixel((0, 0)) == GREEN


def test_equal_z_keeps_build_order(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    build = _build(hair={"z_override": 20})
    raster = _compositor(tmp_path).compose(build, "idle")
    # hair precedes head in the Build, so head is drawn over it
    assert raster.image.getpixel((0, 0)) == GREEN


def test_z_for_uses_longest_prefix() -> None:
    table = {"torso": 44, "torso/clothes": 46}
    assert z_for("torso/clothes/shirt", table) == 46
    assert z_for("torso/armour", table) == 44
    assert z_for("torsoplate", table, default=1) == 1


# ---------------------------------------------------------------------------
# Test 3: Visibility, offsets, tints
# ---------------------------------------------------------------------------


def test_hidden_layers_are_skipped(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    raster = _compositor(tmp_path).compose(_build(hair={"visible": False}), "idle")

    assert "hair/long/adult:red" not in raster.layers
    assert raster.image.getpixel((0, 0)) == GREEN


def test_hidden_layer_needs_no_asset(tmp_path: Path) -> None:
    _sheet(tmp_path, "body/bodies/female", "amber", fill=RED)
    _sheet(tmp_path, "head/heads/human/female", "amber")
    raster = _compositor(tmp_path).compose(_build(hair={"visible": False}), "idle")
    assert len(raster.layers) == 2


def test_offset_shifts_layer(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    build = _build(hair={"visible": False}, head={"offset": Offset(x=1, y=2)})
    raster = _compositor(tmp_path).compose(build, "idle")

    assert raster.image.getpixel((1, 2)) == GREEN
    assert raster.image.getpixel((0, 0)) == RED


def test_negative_offset_is_clipped(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    build = _build(hair={"visible": False}, head={"offset": Offset(x=-1, y=0)})
    raster = _compositor(tmp_path).compose(build, "idle")

    assert raster.size == (8, 16)
    assert raster.image.getpixel((0, 0)) == RED


def test_tint_is_applied_during_compose(tmp_path: Path) -> None:
    _sheet(tmp_path, "body/bodies/female", "amber", fill=WHITE)
    _sheet(tmp_path, "head/heads/human/female", "amber")
    build = Build(
        layers=(
            Layer(
                category="body/bodies/female",
                variant="amber",
                color=LayerColor(tint=Tint(rgb="#00FF00")),
            ),
            Layer(category="head/heads/human/female", variant="amber"),
        )
    )
    raster = _compositor(tmp_path).compose(build, "idle")
    assert raster.image.getpixel((5, 5)) == GREEN


@pytest.mark.parametrize(
    "mode, source, expected",
    [
        ("multiply", (255, 255, 255, 100), (255, 128, 0, 100)),
        ("screen", (0, 0, 0, 100), (255, 128, 0, 100)),
        ("replace", (10, 20, 30, 100), (255, 128, 0, 100)),
    ],
)
def test_apply_tint_keeps_alpha(mode, source, expected) -> None:
    image = Image.new("RGBA", (2, 2), source)
    tinted = apply_tint(image, Tint(rgb="#FF8000", mode=mode))
    assert tinted.mode == "RGBA"
    assert tinted.getpixel((1, 1)) == expected


def test_apply_tint_without_colour_is_identity() -> None:
    image = Image.new("RGBA", (2, 2), RED)
    assert apply_tint(image, Tint()) is image
    assert apply_tint(image, None) is image


# ---------------------------------------------------------------------------
# Test 4: Fatal conditions
# ---------------------------------------------------------------------------


def test_row_count_mismatch(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    _sheet(tmp_path, "hair/long/adult", "red", size=(8, 8))

    with pytest.raises(GeometryMismatchError, match="row count mismatch"):
        _compositor(tmp_path).compose(_build(), "idle")


def test_sheet_not_divisible_by_frame(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    _sheet(tmp_path, "hair/long/adult", "red", size=(6, 16))

    with pytest.raises(GeometryMismatchError) as excinfo:
        _compositor(tmp_path).compose(_build(), "idle")
    assert excinfo.value.dimensions["width"] == 6


def test_wider_layer_widens_canvas(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    _sheet(tmp_path, "hair/long/adult", "red", size=(12, 16))

    raster = _compositor(tmp_path).compose(_build(), "idle")
    assert raster.grid.cols == 3
    assert raster.size == (12, 16)


def test_missing_asset_is_fatal(tmp_path: Path) -> None:
    _sheet(tmp_path, "body/bodies/female", "amber", fill=RED)
    _sheet(tmp_path, "head/heads/human/female", "amber")

    with pytest.raises(LayerAssetNotFoundError) as excinfo:
        _compositor(tmp_path).compose(_build(), "idle")

    err = excinfo.value
    assert (err.category, err.variant, err.animation) == ("hair/long/adult", "red", "idle")
    assert len(err.tried) == 4


def test_no_visible_layers(tmp_path: Path) -> None:
    build = Build(layers=(Layer(category="body/bodies/female", variant="amber", visible=False),))
    with pytest.raises(BuildValidationError):
        _compositor(tmp_path).compose(build, "idle")


def test_direct_constructor_requires_validator(tmp_path: Path, catalog: CategoryCatalog) -> None:
    with pytest.raises(ValueError, match="validate=False"):
        Compositor(LayerAssetLocator(tmp_path))

    gated = Compositor(LayerAssetLocator(tmp_path), validator=BuildValidator(catalog))
    with pytest.raises(BuildValidationError):
        gated.compose(Build(layers=(Layer(category="body/bodies/female", variant="neon"),)), "idle")


def test_flat_sheet_serves_every_animation(tmp_path: Path) -> None:
    _sheet(tmp_path, "body/bodies/female", "amber", animation=None, fill=RED)
    _sheet(tmp_path, "head/heads/human/female", "amber", animation=None)
    build = Build(
        animations=("idle", "walk"),
        layers=(
            Layer(category="body/bodies/female", variant="amber"),
            Layer(category="head/heads/human/female", variant="amber"),
        ),
    )
    rasters = _compositor(tmp_path).compose_all(build)
    assert list(rasters) == ["idle", "walk"]


# ---------------------------------------------------------------------------
# Test 5: Frame size sources
# ---------------------------------------------------------------------------


def test_build_output_frame_size_used(tmp_path: Path) -> None:
    _standard_sheets(tmp_path)
    build = _build(output=BuildOutput(frame_size=BuildFrameSize(w=4, h=8)))
    raster = _compositor(tmp_path, frame_size=None).compose(build, "idle")
    assert (raster.grid.frame_w, raster.grid.frame_h, raster.grid.rows) == (4, 8, 2)


def test_metadata_frame_sizes_must_agree(tmp_path: Path) -> None:
    sheets, defs = tmp_path / "sheets", tmp_path / "defs"
    _sheet(sheets, "body/bodies/female", "amber", fill=RED)
    _sheet(sheets, "hair/long/adult", "red")
    for category, frame in (("body/bodies/female", {"w": 4, "h": 4}), ("hair/long/adult", {"w": 2, "h": 4})):
        (defs / category).mkdir(parents=True)
        (defs / category / "index.json").write_text(json.dumps({"frame": frame}), encoding="utf-8")

    compositor = Compositor(LayerAssetLocator(sheets), grid_metadata=GridMetadata(defs), validate=False)
    build = Build(
        layers=(
            Layer(category="body/bodies/female", variant="amber"),
            Layer(category="hair/long/adult", variant="red"),
        )
    )
    with pytest.raises(GeometryMismatchError, match="frame size mismatch"):
        compositor.compose(build, "idle")


def test_metadata_directions_are_normalised(tmp_path: Path) -> None:
    sheets, defs = tmp_path / "sheets", tmp_path / "defs"
    _sheet(sheets, "body/bodies/female", "amber", fill=RED)
    (defs / "body/bodies/female").mkdir(parents=True)
    (defs / "body/bodies/female" / "index.json").write_text(
        json.dumps({"animations": {"idle": {"frame_w": 4, "frame_h": 4, "directions": ["down", "west", "north", "east"]}}}),
        encoding="utf-8",
    )
    compositor = Compositor(LayerAssetLocator(sheets), grid_metadata=GridMetadata(defs), validate=False)
    build = Build(layers=(Layer(category="body/bodies/female", variant="amber"),))

    raster = compositor.compose(build, "idle")
    assert raster.grid.directions == ("front", "left", "back", "right")


# ---------------------------------------------------------------------------
# Test 6: Catalog wiring
# ---------------------------------------------------------------------------


def test_from_catalog_reads_variant_records(tmp_path: Path, catalog: CategoryCatalog) -> None:
    """Art described only by records beside the definitions is composed."""
    catalog.definitions
    art = tmp_path / "art"
    body_png = _sheet(art, "body", "amber", animation=None, fill=RED)
    head_png = _sheet(art, "head", "amber", animation=None, pixels={(0, 0): GREEN})
    body_dir = catalog.defs_dir / "body/bodies/female"
    head_dir = catalog.defs_dir / "head/heads/human/female"
    body_dir.mkdir(parents=True)
    head_dir.mkdir(parents=True)
    (body_dir / "amber.json").write_text(json.dumps({"png": str(body_png)}), encoding="utf-8")
    (head_dir / "index.json").write_text(
        json.dumps({"variants": [{"id": "amber", "file": str(head_png)}]}), encoding="utf-8"
    )

    compositor = Compositor.from_catalog(catalog, spritesheets_root=tmp_path / "sheets", frame_size=(4, 4))
    build = Build(
        layers=(
            Layer(category="body/bodies/female", variant="amber"),
            Layer(category="head/heads/human/female", variant="amber"),
        )
    )
    raster = compositor.compose(build, "idle")

    assert raster.image.getpixel((0, 0)) == GREEN
    assert raster.image.getpixel((1, 0)) == RED
