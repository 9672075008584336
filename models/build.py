"""Pydantic models for the ULPC Build contract.

A Build is the JSON-serialisable hand-off between resolution and
composition: a schema tag, a generator tag, the requested animations and an
ordered list of layers.  Exactly one layer lives under the body namespace and
exactly one under the head namespace, and their variants must be equal.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

BUILD_SCHEMA_TAG = "ulpc.build/1.0"
GENERATOR_PROJECT = "Universal-LPC-Spritesheet-Character-Generator"

BODY_NAMESPACE = "body/bodies/"
HEAD_NAMESPACE = "head/heads/"

TintMode = Literal["multiply", "overlay", "screen", "replace"]


class Offset(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    x: int = 0
    y: int = 0


class Tint(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    rgb: str | None = Field(default=None, pattern=r"^#([0-9A-Fa-f]{6})$")
    """Hex colour, ``#RRGGBB``."""

    mode: TintMode = "multiply"


class LayerColor(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    palette: str | None = None
    tint: Tint | None = None


class Layer(BaseModel):
    """One category + variant selection with optional visual modifiers."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    category: str
    """Resolved category path, e.g. ``body/bodies/male``."""

    variant: str
    """Colour/style identifier valid for ``category``."""

    visible: bool | None = None
    """``False`` removes the layer from composition entirely."""

    z_override: int | None = None
    """Replaces the z-order table value for this layer."""

    offset: Offset | None = None
    color: LayerColor | None = None
    credits_tag: str | None = None

    @property
    def is_body(self) -> bool:
        return self.category.startswith(BODY_NAMESPACE)

    @property
    def is_head(self) -> bool:
        return self.category.startswith(HEAD_NAMESPACE)

    @property
    def is_visible(self) -> bool:
        return self.visible is not False


class Generator(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    project: Literal["Universal-LPC-Spritesheet-Character-Generator"] = GENERATOR_PROJECT
    version: str = "internal"


class BuildMeta(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str | None = None
    seed: str | None = None
    notes: str | None = None


class BuildFrameSize(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    w: int = Field(ge=1)
    h: int = Field(ge=1)


class BuildOutput(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    mode: Literal["full", "split_by_animation", "split_by_frame", "both"] | None = None
    frame_size: BuildFrameSize | None = None
    zero_pad: int | None = Field(default=None, ge=1, le=8)
    fps: float | None = Field(default=None, gt=0)


class Build(BaseModel):
    """The validated layer-stack contract consumed by the compositor."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    schema_tag: Literal["ulpc.build/1.0"] = Field(default=BUILD_SCHEMA_TAG, alias="schema")
    generator: Generator = Field(default_factory=Generator)
    meta: BuildMeta | None = None
    output: BuildOutput | None = None
    animations: tuple[str, ...] = ("idle",)
    layers: tuple[Layer, ...] = ()

    def body_layer(self) -> Layer | None:
        return next((layer for layer in self.layers if layer.is_body), None)

    def head_layer(self) -> Layer | None:
        return next((layer for layer in self.layers if layer.is_head), None)

    def visible_layers(self) -> list[Layer]:
        return [layer for layer in self.layers if layer.is_visible]

    def to_json_dict(self) -> dict:
        """Contract form: ``schema`` key, no ``None`` fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
