"""IntermediaryResolver — semantic character selection → ULPC Build.

Input:  SemanticSelection (or a dict of the same shape):
          body_type, head_type, categories[{category, preferred_colour, items}]
Output: ConversionResult — Build + trace (one TraceEntry per attempt)

Stages, in fixed order:
  1. body   (required) — caller's ``body`` items, else ``body.json``
  2. head   (required) — ``head_type`` is the only candidate
  3. others (optional) — caller order, never sorted; misses become trace
                         notes and the category is dropped from the Build

Variant tiers per resolved item: direct match → colour dictionary → first
allowed variant (see :mod:`resolvers.variants`).

:meth:`IntermediaryResolver.resolve` stops after stage 3;
:meth:`IntermediaryResolver.convert` also enforces the head/body invariant
and validates the result.
"""

from typing import Mapping, Sequence

import structlog

from app.errors import BuildValidationError, RequiredCategoryUnresolved
from app.models.selection import CategorySelection, SemanticSelection
from catalog.colours import load_colour_dictionary
from catalog.reference import CategoryReference
from catalog.sheet_defs import CategoryCatalog
from models.build import Build, Generator, Layer
from models.trace import ConversionResult, TraceEntry
from resolvers.invariants import enforce_head_matches_body
from resolvers.variants import DEFAULT_TIERS, VariantTier, choose_variant
from validators.build import BuildValidator

DEFAULT_BODY_ITEMS: tuple[str, ...] = ("body.json",)

# Caller categories handled by dedicated stages rather than stage 3.
_BODY_CATEGORY = "body"
_HEAD_CATEGORY = "head"
_HEAD_LIKE_PREFIX = "heads_"


class IntermediaryResolver:
    """Resolve semantic selections against a Category Catalog.

    Usage::

        resolver = IntermediaryResolver(CategoryCatalog.discover())
        result = resolver.convert(selection_dict)
        result.build.to_json_dict()

    Args:
        catalog: Read-only definitions; may be shared between resolvers.
        reference: Category name → candidate items.  Defaults to the
            catalog grouped by ``type_name``.
        colour_dictionary: Preferred colour → ordered synonyms.  Defaults to
            the bundled ``colour_dictionary.v1.json``.
        animations: Animations recorded on the Build (default ``["idle"]``).
        validator: Build validator used by :meth:`convert`.  Built from the
            catalog on first use when omitted.
        generator_version: ``generator.version`` tag on produced Builds.
    """

    def __init__(
        self,
        catalog: CategoryCatalog,
        reference: CategoryReference | None = None,
        colour_dictionary: Mapping[str, Sequence[str]] | None = None,
        animations: Sequence[str] | None = None,
        validator: BuildValidator | None = None,
        generator_version: str = "internal",
        tiers: Sequence[VariantTier] = DEFAULT_TIERS,
    ) -> None:
        self.catalog = catalog
        self.reference = reference if reference is not None else CategoryReference.from_catalog(catalog)
        self.colour_dictionary = (
            colour_dictionary if colour_dictionary is not None else load_colour_dictionary()
        )
        self.animations = tuple(animations) if animations else ("idle",)
        self.generator_version = generator_version
        self.tiers = tuple(tiers)
        self._validator = validator
        self._log = structlog.get_logger("resolvers.intermediary")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self, selection: SemanticSelection | dict) -> ConversionResult:
        """Resolve *selection* to an (unenforced, unvalidated) Build.

        Raises:
            RequiredCategoryUnresolved: body or head could not be resolved.
                The exception carries the trace gathered so far.
            pydantic.ValidationError: *selection* does not have the
                Semantic Selection shape.
        """
        if not isinstance(selection, SemanticSelection):
            selection = SemanticSelection.model_validate(selection)

        body_type = selection.body_type.value
        trace: list[TraceEntry] = []
        layers: list[Layer] = []

        # 1. body
        body_input = selection.find(_BODY_CATEGORY)
        body_items = body_input.items if body_input and body_input.items else DEFAULT_BODY_ITEMS
        body_colour = body_input.preferred_colour if body_input else None
        if not self._resolve_first(_BODY_CATEGORY, body_items, body_colour, body_type, trace, layers):
            self._log.warning("required_category_unresolved", category=_BODY_CATEGORY, items=list(body_items))
            raise RequiredCategoryUnresolved(_BODY_CATEGORY, trace=trace)

        # 2. head
        head_item = selection.head_type
        if not self._resolve_first(_HEAD_CATEGORY, (head_item,), None, body_type, trace, layers):
            self._log.warning("required_category_unresolved", category=_HEAD_CATEGORY, item=head_item)
            raise RequiredCategoryUnresolved(_HEAD_CATEGORY, item=head_item, trace=trace)

        # 3. remaining categories, caller order
        for entry in selection.categories:
            if entry.category in (_BODY_CATEGORY, _HEAD_CATEGORY) or entry.category.startswith(_HEAD_LIKE_PREFIX):
                continue
            self._resolve_optional(entry, body_type, trace, layers)

        build = Build(
            generator=Generator(version=self.generator_version),
            animations=self.animations,
            layers=tuple(layers),
        )
        return ConversionResult(build=build, trace=trace)

    def convert(self, selection: SemanticSelection | dict) -> ConversionResult:
        """Resolve, enforce ``head.variant == body.variant``, then validate.

        Raises:
            RequiredCategoryUnresolved: see :meth:`resolve`.
            BuildValidationError: the enforced Build breaks the contract;
                the error carries the trace.
        """
        raw = self.resolve(selection)
        build, trace = enforce_head_matches_body(raw.build, raw.trace)

        try:
            self.validator.validate(build)
        except BuildValidationError as exc:
            raise BuildValidationError(exc.failures, trace=trace) from exc

        result = ConversionResult(build=build, trace=trace)
        self._log.info(
            "selection_converted",
            layers=len(build.layers),
            warnings=len(result.warnings),
            low_confidence=len(result.low_confidence),
        )
        return result

    @property
    def validator(self) -> BuildValidator:
        if self._validator is None:
            self._validator = BuildValidator(self.catalog)
        return self._validator

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _resolve_optional(
        self,
        entry: CategorySelection,
        body_type: str,
        trace: list[TraceEntry],
        layers: list[Layer],
    ) -> None:
        known = self.reference.items_for(entry.category)
        if not known:
            trace.append(
                TraceEntry(
                    category=entry.category,
                    preferred_colour=entry.preferred_colour,
                    notes=["unknown_category_in_reference"],
                    severity="warning",
                )
            )
            self._log.warning("unknown_category_in_reference", category=entry.category)
            return

        # caller's order, restricted to items the reference knows about
        ordered = [item for item in entry.items if item in known] if entry.items else list(known)

        if not self._resolve_first(entry.category, ordered, entry.preferred_colour, body_type, trace, layers):
            trace.append(
                TraceEntry(
                    category=entry.category,
                    preferred_colour=entry.preferred_colour,
                    notes=["no_compatible_item_found"],
                )
            )
            self._log.info("no_compatible_item_found", category=entry.category, candidates=ordered)

    def _resolve_first(
        self,
        category: str,
        items: Sequence[str],
        preferred_colour: str | None,
        body_type: str,
        trace: list[TraceEntry],
        layers: list[Layer],
    ) -> bool:
        """Try *items* in order; append the first success to *layers*."""
        for item in items:
            entry, layer = self._resolve_item(category, item, preferred_colour, body_type)
            trace.append(entry)
            if layer is not None:
                layers.append(layer)
                return True
        return False

    def _resolve_item(
        self,
        category: str,
        item: str,
        preferred_colour: str | None,
        body_type: str,
    ) -> tuple[TraceEntry, Layer | None]:
        entry = TraceEntry(category=category, preferred_colour=preferred_colour, attempted_item=item)

        definition = self.catalog.get(item)
        if definition is None:
            if item in self.catalog.skipped:
                entry.notes.append(f"malformed_def:{item}")
            else:
                entry.notes.append(f"missing_def:{item}")
            return entry, None

        path = definition.category_path(body_type)
        if not path:
            entry.notes.append(f"no_layer_1_mapping_for:{body_type}")
            return entry, None

        outcome = choose_variant(preferred_colour, definition.variants, self.colour_dictionary, self.tiers)
        entry.notes.append(outcome.note)
        if outcome.variant is None:
            if outcome.note != "no_variant_resolved":
                entry.notes.append("no_variant_resolved")
            return entry, None

        if definition.animations:
            unsupported = [a for a in self.animations if a not in definition.animations]
            if unsupported:
                entry.notes.append(f"unsupported_animations:{','.join(unsupported)}")

        entry.chosen_item = item
        entry.resolved_path = path
        entry.chosen_variant = outcome.variant
        return entry, Layer(category=path, variant=outcome.variant)


def convert_selection(
    selection: SemanticSelection | dict,
    catalog: CategoryCatalog,
    **kwargs,
) -> ConversionResult:
    """One-shot :meth:`IntermediaryResolver.convert`."""
    return IntermediaryResolver(catalog, **kwargs).convert(selection)
