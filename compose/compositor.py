"""Compositor — validated Build + animation → one RGBA raster.

Visible layers are drawn bottom-up in z-order (table value or
``z_override``, ties keep Build order) onto a transparent canvas sized to the
union of the layers' grids.  Offsets shift a layer before drawing; tints are
applied to its colour channels, alpha untouched.  Hidden layers are skipped
outright.

All layers must agree on frame size and row count; any disagreement is a
GeometryMismatchError.  Nothing random or time-based enters this stage, so the
same Build and animation always produce byte-identical PNG output.
"""

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from PIL import Image, ImageChops, ImageColor

from app.config import resolve_spritesheets_root
from app.errors import BuildValidationError, FieldFailure, GeometryMismatchError
from app.utils.logging import get_logger
from catalog.sheet_defs import CategoryCatalog
from compose.assets import LayerAssetLocator
from compose.grid import GridMetadata, layer_grid
from compose.z_order import DEFAULT_Z_ORDER, z_for
from models.build import Build, Layer, Tint
from models.frames import GridInfo
from validators.build import BuildValidator

logger = get_logger("compose.compositor")


@dataclass(frozen=True)
class ComposedRaster:
    """Composited sheet for one animation plus its grid geometry."""

    animation: str
    image: Image.Image
    grid: GridInfo
    layers: tuple[str, ...]
    """``category:variant`` of each drawn layer, bottom first."""

    @property
    def size(self) -> tuple[int, int]:
        return self.image.size

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


def apply_tint(image: Image.Image, tint: Tint | None) -> Image.Image:
    """Blend *tint* into the RGB channels of an RGBA *image*."""
    if tint is None or not tint.rgb:
        return image
    colour = ImageColor.getrgb(tint.rgb)
    r, g, b, alpha = image.split()
    base = Image.merge("RGB", (r, g, b))
    solid = Image.new("RGB", image.size, colour[:3])

    if tint.mode == "multiply":
        tinted = ImageChops.multiply(base, solid)
    elif tint.mode == "screen":
        tinted = ImageChops.screen(base, solid)
    elif tint.mode == "overlay":
        tinted = ImageChops.overlay(base, solid)
    else:  # replace
        tinted = solid

    tinted.putalpha(alpha)
    return tinted


def _draw(canvas: Image.Image, image: Image.Image, dx: int, dy: int) -> None:
    """Alpha-composite *image* at (dx, dy), clipping to the canvas."""
    left, top = max(0, dx), max(0, dy)
    src_left, src_top = max(0, -dx), max(0, -dy)
    width = min(image.width - src_left, canvas.width - left)
    height = min(image.height - src_top, canvas.height - top)
    if width <= 0 or height <= 0:
        return
    canvas.alpha_composite(
        image,
        dest=(left, top),
        source=(src_left, src_top, src_left + width, src_top + height),
    )


class Compositor:
    """Compose Builds from spritesheets on disk.

    Args:
        locator: Finds the PNG for each layer.
        grid_metadata: Optional per-category grid declarations.
        validator: Every Build is validated before any image is opened; an
            invalid Build is never rendered.
        validate: Must be passed as False to build a Compositor without a
            validator.
        z_order: Category prefix → z value table.
        frame_size: Frame size override for every layer; otherwise the
            Build's ``output.frame_size``, then metadata, then 64x64.
    """

    def __init__(
        self,
        locator: LayerAssetLocator,
        grid_metadata: GridMetadata | None = None,
        validator: BuildValidator | None = None,
        z_order: Mapping[str, int] = DEFAULT_Z_ORDER,
        frame_size: tuple[int, int] | None = None,
        validate: bool = True,
    ) -> None:
        if validate and validator is None:
            raise ValueError("Compositor needs a validator; pass validate=False to render unvalidated Builds")
        self.locator = locator
        self.grid_metadata = grid_metadata or GridMetadata(None)
        self.validator = validator
        self.z_order = z_order
        self.frame_size = frame_size

    @classmethod
    def from_catalog(
        cls,
        catalog: CategoryCatalog,
        spritesheets_root: str | Path | None = None,
        validate: bool = True,
        **kwargs,
    ) -> "Compositor":
        root = resolve_spritesheets_root(catalog.defs_dir, spritesheets_root)
        return cls(
            LayerAssetLocator(root, defs_dir=catalog.defs_dir),
            grid_metadata=GridMetadata(catalog.defs_dir),
            validator=BuildValidator(catalog) if validate else None,
            validate=validate,
            **kwargs,
        )

    def compose(self, build: Build, animation: str) -> ComposedRaster:
        """Render *animation* for *build*.

        Raises:
            BuildValidationError: the Build is invalid or has no visible layers.
            LayerAssetNotFoundError: a visible layer has no spritesheet.
            GeometryMismatchError: layers disagree on frame size or rows.
        """
        if self.validator is not None:
            self.validator.validate(build)

        visible = build.visible_layers()
        if not visible:
            raise BuildValidationError([FieldFailure(path="layers", message="no visible layers to compose")])

        frame_size = self.frame_size
        if frame_size is None and build.output and build.output.frame_size:
            frame_size = (build.output.frame_size.w, build.output.frame_size.h)

        ordered = sorted(
            enumerate(visible),
            key=lambda pair: (
                pair[1].z_override if pair[1].z_override is not None else z_for(pair[1].category, self.z_order),
                pair[0],
            ),
        )

        loaded: list[tuple[Layer, Image.Image, GridInfo]] = []
        for _, layer in ordered:
            path = self.locator.locate(layer.category, layer.variant, animation)
            with Image.open(path) as src:
                image = src.convert("RGBA")
            label = f"{layer.category}/{layer.variant} ({animation})"
            metadata = self.grid_metadata.lookup(layer.category, layer.variant, animation)
            grid = layer_grid(image.size, metadata, frame_size, label=label)
            loaded.append((layer, image, grid))
            logger.debug("layer_loaded", category=layer.category, variant=layer.variant, png=str(path))

        grid = self._union_grid(loaded, animation)
        canvas = Image.new("RGBA", (grid.cols * grid.frame_w, grid.rows * grid.frame_h), (0, 0, 0, 0))
        for layer, image, _ in loaded:
            tint = layer.color.tint if layer.color else None
            offset = layer.offset
            _draw(canvas, apply_tint(image, tint), offset.x if offset else 0, offset.y if offset else 0)

        logger.info(
            "compose_done",
            animation=animation,
            layers=len(loaded),
            width=canvas.width,
            height=canvas.height,
        )
        return ComposedRaster(
            animation=animation,
            image=canvas,
            grid=grid,
            layers=tuple(f"{layer.category}:{layer.variant}" for layer, _, _ in loaded),
        )

    def compose_all(self, build: Build, animations: list[str] | None = None) -> dict[str, ComposedRaster]:
        """Compose every animation in order; the Build's own list by default."""
        names = animations or list(build.animations)
        return {name: self.compose(build, name) for name in names}

    @staticmethod
    def _union_grid(loaded: list[tuple[Layer, Image.Image, GridInfo]], animation: str) -> GridInfo:
        first_layer, _, first = loaded[0]
        directions = first.directions
        for layer, _, grid in loaded[1:]:
            if (grid.frame_w, grid.frame_h) != (first.frame_w, first.frame_h):
                raise GeometryMismatchError(
                    f"frame size mismatch in {animation}: {first_layer.category} is "
                    f"{first.frame_w}x{first.frame_h}, {layer.category} is {grid.frame_w}x{grid.frame_h}",
                    expected=(first.frame_w, first.frame_h),
                    got=(grid.frame_w, grid.frame_h),
                    category=layer.category,
                )
            if grid.rows != first.rows:
                raise GeometryMismatchError(
                    f"row count mismatch in {animation}: {first_layer.category} has "
                    f"{first.rows} rows, {layer.category} has {grid.rows}",
                    expected_rows=first.rows,
                    got_rows=grid.rows,
                    category=layer.category,
                )
            if grid.directions is not None:
                if directions is None:
                    directions = grid.directions
                elif grid.directions != directions:
                    raise GeometryMismatchError(
                        f"row facing mismatch in {animation}: {list(directions)} vs {list(grid.directions)}",
                        expected=list(directions),
                        got=list(grid.directions),
                        category=layer.category,
                    )
        return GridInfo(
            frame_w=first.frame_w,
            frame_h=first.frame_h,
            rows=first.rows,
            cols=max(grid.cols for _, _, grid in loaded),
            directions=directions,
        )
