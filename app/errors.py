"""Error taxonomy for the sprite pipeline.

Fatal conditions raise one of the exceptions below from the stage that
detects them.  Non-fatal conditions (optional category misses, skipped
definition files) never raise; they are recorded as trace notes instead.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from models.trace import TraceEntry


class SpritePipelineError(Exception):
    """Base class for every fatal pipeline error."""


class CatalogNotFoundError(SpritePipelineError):
    """The sheet-definitions directory could not be located."""

    def __init__(self, candidates: Sequence[Path | str]) -> None:
        self.candidates = [str(c) for c in candidates]
        tried = "\n".join(f" - {c}" for c in self.candidates) or " - (none)"
        super().__init__(
            "ERROR: ULPC sheet_definitions not found.\n"
            f"Tried:\n{tried}\n"
            "Hint: export ULPC_SHEET_DEFS=/absolute/path/to/sheet_definitions"
        )


class RequiredCategoryUnresolved(SpritePipelineError):
    """Body or head could not be resolved; no Build is produced."""

    reason = "required_category_unresolved"

    def __init__(
        self,
        category: str,
        item: str | None = None,
        trace: "list[TraceEntry] | None" = None,
    ) -> None:
        self.category = category
        self.item = item
        self.trace = list(trace or [])
        detail = f" (item {item})" if item else ""
        super().__init__(f"ERROR: {self.reason}: {category}{detail}")

    def to_dict(self) -> dict:
        out = {"category": self.category, "reason": self.reason}
        if self.item is not None:
            out["item"] = self.item
        return out


@dataclass(frozen=True)
class FieldFailure:
    """One specific contract failure reported by the Build validator."""

    path: str
    message: str
    category: str | None = None

    def __str__(self) -> str:
        where = f"{self.path} ({self.category})" if self.category else self.path
        return f"{where}: {self.message}"


class BuildValidationError(SpritePipelineError, ValueError):
    """The Build does not satisfy the schema or the head/body invariant."""

    def __init__(
        self,
        failures: Sequence[FieldFailure],
        trace: "list[TraceEntry] | None" = None,
    ) -> None:
        self.failures = list(failures)
        self.trace = list(trace or [])
        joined = "; ".join(str(f) for f in self.failures)
        super().__init__(f"ERROR: invalid ULPC build: {joined}")

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.failures]


class GeometryMismatchError(SpritePipelineError, ValueError):
    """Frame or sheet dimensions disagree; nothing is cropped or stretched."""

    def __init__(self, message: str, **dimensions: object) -> None:
        self.dimensions = dimensions
        super().__init__(f"ERROR: {message}")


class LayerAssetNotFoundError(SpritePipelineError, LookupError):
    """No spritesheet PNG exists for a layer's category/variant/animation."""

    def __init__(
        self,
        category: str,
        variant: str,
        animation: str | None,
        tried: Sequence[Path],
    ) -> None:
        self.category = category
        self.variant = variant
        self.animation = animation
        self.tried = [str(p) for p in tried]
        anim = f" (animation={animation})" if animation else ""
        super().__init__(
            f"ERROR: unable to resolve PNG for {category}/{variant}{anim}"
        )
