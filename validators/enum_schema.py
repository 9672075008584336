"""Enum-locked Build schema.

The base contract (``contracts/schemas/ulpc.build.v1.json``) leaves the
category set open.  Locking it against a catalog fills two ``$defs``:

  category_enum        — every category path the catalog can produce
  variant_enum_switch  — one ``if category == X then variant in allowed(X)``
                         rule per category

so variant validity is checked conditionally on the layer's category.
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Sequence

from catalog.sheet_defs import CategoryCatalog

_CONTRACTS_DIR = Path(__file__).resolve().parent.parent / "contracts" / "schemas"
BUILD_SCHEMA_PATH = _CONTRACTS_DIR / "ulpc.build.v1.json"


@lru_cache(maxsize=1)
def _base_schema_text() -> str:
    return BUILD_SCHEMA_PATH.read_text(encoding="utf-8")


def load_base_schema() -> dict:
    """A fresh copy of the open (not enum-locked) Build schema."""
    return json.loads(_base_schema_text())


def lock_schema(category_variants: Mapping[str, Sequence[str]]) -> dict:
    """Return the Build schema locked to *category_variants*."""
    schema = load_base_schema()
    categories = sorted(category_variants)
    schema["$defs"]["category_enum"] = {"type": "string", "enum": categories}
    switches = [
        {
            "if": {"properties": {"category": {"const": cat}}, "required": ["category"]},
            "then": {"properties": {"variant": {"type": "string", "enum": sorted(category_variants[cat])}}},
        }
        for cat in categories
    ]
    schema["$defs"]["variant_enum_switch"] = {"allOf": switches} if switches else {}
    return schema


def build_enum_schema(catalog: CategoryCatalog) -> dict:
    """Build schema locked to everything *catalog* defines."""
    return lock_schema(catalog.category_variants())
