"""Resolution trace records.

One TraceEntry per resolution attempt.  Notes record which tier fired
(``direct_match``, ``dict_match``, ``fallback_first_variant``...) so callers
can explain why an optional layer is missing, not just that it is.
"""

from typing import Literal

from pydantic import BaseModel, Field

from models.build import Build

FALLBACK_NOTES: frozenset[str] = frozenset(
    {"fallback_first_variant", "no_preferred_colour_fallback_first"}
)


class TraceEntry(BaseModel):
    category: str
    """Caller-facing category name (``body``, ``head``, ``hair``...)."""

    preferred_colour: str | None = None
    chosen_item: str | None = None
    """Definition file that was attempted; set only on success."""

    attempted_item: str | None = None
    resolved_path: str | None = None
    chosen_variant: str | None = None
    notes: list[str] = Field(default_factory=list)

    severity: Literal["info", "warning"] = "info"
    """``warning`` marks conditions that may hide an upstream mistake."""

    @property
    def resolved(self) -> bool:
        return self.chosen_item is not None

    @property
    def is_fallback(self) -> bool:
        """True when the variant is a low-confidence default choice."""
        return any(note in FALLBACK_NOTES for note in self.notes)


class ConversionResult(BaseModel):
    build: Build
    trace: list[TraceEntry] = Field(default_factory=list)

    @property
    def warnings(self) -> list[TraceEntry]:
        return [t for t in self.trace if t.severity == "warning"]

    @property
    def low_confidence(self) -> list[TraceEntry]:
        return [t for t in self.trace if t.resolved and t.is_fallback]
