"""Build validator — contract gate in front of the compositor.

Checks, in order:
  1. Schema shape against the enum-locked Build schema (category known,
     variant allowed for that category, field types).
  2. Exactly one body layer and exactly one head layer.
  3. ``head.variant == body.variant``, re-checked independently of the
     enforcer so Builds from any source are consistent before rendering.

All failures are collected and raised together as a BuildValidationError.
Validation never mutates its input.
"""

from collections.abc import Iterable
from typing import Any

import jsonschema

from app.errors import BuildValidationError, FieldFailure
from app.utils.logging import get_logger
from catalog.sheet_defs import CategoryCatalog
from models.build import BODY_NAMESPACE, HEAD_NAMESPACE, Build
from validators.enum_schema import build_enum_schema

logger = get_logger("validators.build")


def _format_path(parts: Iterable[Any]) -> str:
    out = ""
    for part in parts:
        if isinstance(part, int):
            out += f"[{part}]"
        else:
            out += f".{part}" if out else str(part)
    return out or "$"


def _layer_category(instance: dict, path: list[Any]) -> str | None:
    if len(path) >= 2 and path[0] == "layers" and isinstance(path[1], int):
        layers = instance.get("layers") or []
        if path[1] < len(layers) and isinstance(layers[path[1]], dict):
            category = layers[path[1]].get("category")
            return category if isinstance(category, str) else None
    return None


def _layer_indices(instance: dict, prefix: str) -> list[int]:
    layers = instance.get("layers")
    if not isinstance(layers, list):
        return []
    return [
        i
        for i, layer in enumerate(layers)
        if isinstance(layer, dict)
        and isinstance(layer.get("category"), str)
        and layer["category"].startswith(prefix)
    ]


def head_body_failures(instance: dict) -> list[FieldFailure]:
    """Requiredness and equality failures for the head/body pair."""
    failures: list[FieldFailure] = []
    body_idx = _layer_indices(instance, BODY_NAMESPACE)
    head_idx = _layer_indices(instance, HEAD_NAMESPACE)

    for label, prefix, found in (("body", BODY_NAMESPACE, body_idx), ("head", HEAD_NAMESPACE, head_idx)):
        if len(found) != 1:
            failures.append(
                FieldFailure(
                    path="layers",
                    message=f"exactly one {prefix}* layer required for {label}, found {len(found)}",
                )
            )

    if body_idx and head_idx:
        body = instance["layers"][body_idx[0]]
        head = instance["layers"][head_idx[0]]
        b = body.get("variant") or ""
        h = head.get("variant") or ""
        if b != h:
            failures.append(
                FieldFailure(
                    path=f"layers[{head_idx[0]}].variant",
                    message=(
                        f'head/body variant mismatch: head="{h}" must equal body="{b}"; '
                        "the body colour is the single source of truth"
                    ),
                    category=head.get("category"),
                )
            )
    return failures


def assert_head_body_variant_equal(build: Build | dict) -> None:
    """Raise BuildValidationError if head and body variants differ."""
    instance = build.to_json_dict() if isinstance(build, Build) else build
    mismatches = [f for f in head_body_failures(instance) if f.path != "layers"]
    if mismatches:
        raise BuildValidationError(mismatches)


class BuildValidator:
    """Validate Builds against a catalog-locked schema.

    Usage::

        validator = BuildValidator(catalog)
        validator.validate(build)   # raises BuildValidationError

    Args:
        catalog: Catalog the category/variant enums are derived from.
        schema:  Pre-built (e.g. cached on disk) enum-locked schema; skips
            deriving it from *catalog*.
    """

    def __init__(self, catalog: CategoryCatalog | None = None, schema: dict | None = None) -> None:
        if schema is None:
            if catalog is None:
                raise ValueError("BuildValidator needs a catalog or a schema")
            schema = build_enum_schema(catalog)
        jsonschema.Draft202012Validator.check_schema(schema)
        self.schema = schema
        self._validator = jsonschema.Draft202012Validator(schema)

    def failures(self, build: Build | dict) -> list[FieldFailure]:
        """Every contract failure for *build*, in check order."""
        instance = build.to_json_dict() if isinstance(build, Build) else build
        failures: list[FieldFailure] = []

        def sort_key(err: jsonschema.ValidationError) -> tuple:
            return (
                tuple(f"{p:08d}" if isinstance(p, int) else str(p) for p in err.absolute_path),
                err.message,
            )

        for err in sorted(self._validator.iter_errors(instance), key=sort_key):
            path = list(err.absolute_path)
            message = err.message
            if err.validator == "enum" and path and path[-1] == "category":
                message = f"unknown category {err.instance!r}"
            failures.append(
                FieldFailure(
                    path=_format_path(path),
                    message=message,
                    category=_layer_category(instance, path),
                )
            )

        if isinstance(instance, dict):
            failures.extend(head_body_failures(instance))
        return failures

    def validate(self, build: Build | dict) -> None:
        """Raise BuildValidationError listing every failure; no-op when valid."""
        failures = self.failures(build)
        if failures:
            logger.warning(
                "build_validation_failed",
                failures=[str(f) for f in failures],
            )
            raise BuildValidationError(failures)

    def is_valid(self, build: Build | dict) -> bool:
        return not self.failures(build)
