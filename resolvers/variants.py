"""Variant selection tiers.

Tiers are tried in order and the first that applies wins:

  1. direct     — case/whitespace-insensitive exact match against the allowed set
  2. dictionary — each synonym of the preferred colour, in dictionary order
  3. fallback   — first allowed variant (low confidence, see ``FALLBACK_NOTES``)

A blank preferred colour skips straight to the fallback with its own note.
Each tier returns a :class:`VariantOutcome` or ``None`` (not applicable).
"""

from dataclasses import dataclass
from typing import Callable, Mapping, Sequence

from catalog.colours import normalise


@dataclass(frozen=True)
class VariantOutcome:
    variant: str | None
    note: str


VariantTier = Callable[[str, Sequence[str], Mapping[str, Sequence[str]]], "VariantOutcome | None"]


def _find(candidate: str, variants: Sequence[str]) -> str | None:
    wanted = normalise(candidate)
    return next((v for v in variants if normalise(v) == wanted), None)


def match_direct(
    preferred: str,
    variants: Sequence[str],
    dictionary: Mapping[str, Sequence[str]],
) -> VariantOutcome | None:
    hit = _find(preferred, variants)
    return VariantOutcome(hit, "direct_match") if hit else None


def match_dictionary(
    preferred: str,
    variants: Sequence[str],
    dictionary: Mapping[str, Sequence[str]],
) -> VariantOutcome | None:
    for synonym in dictionary.get(normalise(preferred), ()):
        hit = _find(synonym, variants)
        if hit:
            return VariantOutcome(hit, "dict_match")
    return None


def fallback_first_variant(
    preferred: str,
    variants: Sequence[str],
    dictionary: Mapping[str, Sequence[str]],
) -> VariantOutcome | None:
    return VariantOutcome(variants[0], "fallback_first_variant")


DEFAULT_TIERS: tuple[VariantTier, ...] = (
    match_direct,
    match_dictionary,
    fallback_first_variant,
)


def choose_variant(
    preferred: str | None,
    variants: Sequence[str],
    dictionary: Mapping[str, Sequence[str]],
    tiers: Sequence[VariantTier] = DEFAULT_TIERS,
) -> VariantOutcome:
    """Pick a variant for *preferred* from *variants*."""
    if not variants:
        return VariantOutcome(None, "no_variants_available")
    if not preferred or not preferred.strip():
        return VariantOutcome(variants[0], "no_preferred_colour_fallback_first")

    for tier in tiers:
        outcome = tier(preferred, variants, dictionary)
        if outcome is not None:
            return outcome
    return VariantOutcome(None, "no_variant_resolved")
