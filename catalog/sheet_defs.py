"""Category Catalog — ULPC sheet definitions, loaded once per process.

Each ``*.json`` file under the sheet-definitions directory describes one item:

    { "name"?: str, "type_name"?: str,
      "layer_1": { <body_type>: <category path> }, ...more layer_N...,
      "variants": [str | {id|name|file|path}], "animations"?: [str] }

The directory is read lazily on first access behind a lock; afterwards the
catalog is immutable and safe for concurrent readers.  Missing or malformed
files are skipped (and remembered with a reason) without failing the load.
"""

import json
import re
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from app.config import resolve_sheet_defs
from app.errors import CatalogNotFoundError
from app.utils.logging import get_logger

logger = get_logger("catalog.sheet_defs")

# Head lexemes substituted for ``${head}`` placeholders in layer paths.
_HEAD_LEXEMES: tuple[str, ...] = ("male", "female", "child")

_LAYER_KEY = re.compile(r"^layer_\d+$", re.IGNORECASE)


def _variant_id(raw: Any) -> str | None:
    """Normalise a variant entry (string or object) to its token id."""
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict):
        for key in ("id", "name", "file", "path"):
            value = raw.get(key)
            if isinstance(value, str) and value:
                return value
    return None


def _clean_path(raw: str) -> str:
    return re.sub(r"/{2,}", "/", raw).strip("/")


def expand_category_placeholders(raw: str) -> list[str]:
    """Expand ``${head}`` / ``${expression}`` placeholders in a layer path.

    The placeholder form itself is kept alongside the expansions.
    """
    results: list[str] = []
    queue = [raw]
    while queue:
        current = queue.pop()
        if not current:
            continue
        if "${expression}" in current:
            queue.append(re.sub(r"/?\$\{expression\}", "", current))
            results.append(_clean_path(current))
            continue
        if "${head}" in current:
            queue.extend(current.replace("${head}", head) for head in _HEAD_LEXEMES)
            results.append(_clean_path(current))
            continue
        cleaned = _clean_path(current)
        if cleaned:
            results.append(cleaned)
    # de-duplicate, first occurrence wins
    return list(dict.fromkeys(results))


class SheetDefinition(BaseModel):
    """One catalog entry, validated from its JSON file."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str | None = None
    type_name: str | None = None
    layer_1: dict[str, str] = Field(default_factory=dict)
    variants: tuple[str, ...] = ()
    animations: tuple[str, ...] = ()

    @field_validator("layer_1", mode="before")
    @classmethod
    def _string_paths_only(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {k: p for k, p in v.items() if isinstance(p, str)}
        return v

    @field_validator("variants", mode="before")
    @classmethod
    def _normalise_variants(cls, v: Any) -> Any:
        if v is None:
            return ()
        if not isinstance(v, list):
            raise ValueError("variants must be an array")
        return tuple(vid for vid in (_variant_id(x) for x in v) if vid)

    def category_path(self, body_type: str) -> str | None:
        """Category path for *body_type*; ``child`` falls back to ``teen``."""
        raw = self.layer_1.get(body_type)
        if raw is None and body_type == "child":
            raw = self.layer_1.get("teen")
        if not raw:
            return None
        return raw.rstrip("/")

    def layer_paths(self) -> list[str]:
        """Every category path reachable from any ``layer_N`` mapping."""
        found: list[str] = []
        extra = self.model_extra or {}
        layers = {"layer_1": self.layer_1, **{k: v for k, v in extra.items() if _LAYER_KEY.match(k)}}

        def visit(node: Any) -> None:
            if isinstance(node, dict):
                for value in node.values():
                    visit(value)
            elif isinstance(node, str):
                rel = node.strip("/")
                if "/" in rel:
                    found.extend(expand_category_placeholders(rel))

        for key in sorted(layers):
            visit(layers[key])
        return list(dict.fromkeys(found))


class CategoryCatalog:
    """Read-only view over a sheet-definitions directory.

    Usage::

        catalog = CategoryCatalog.discover()
        hair = catalog.get("hair_long.json")

    Args:
        defs_dir: The ``sheet_definitions`` directory.  It must exist;
            use :meth:`discover` for env/convention based lookup.
    """

    def __init__(self, defs_dir: str | Path) -> None:
        path = Path(defs_dir)
        if not path.is_dir():
            raise CatalogNotFoundError([path])
        self.defs_dir = path.resolve()
        self._lock = threading.Lock()
        self._definitions: Mapping[str, SheetDefinition] | None = None
        self._skipped: Mapping[str, str] = MappingProxyType({})

    @classmethod
    def discover(cls, explicit: str | Path | None = None, cwd: str | Path | None = None) -> "CategoryCatalog":
        return cls(resolve_sheet_defs(explicit, cwd=cwd))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def definitions(self) -> Mapping[str, SheetDefinition]:
        """File name (relative, POSIX) → definition.  Loads on first access."""
        loaded = self._definitions
        if loaded is None:
            with self._lock:
                if self._definitions is None:
                    self._load()
                loaded = self._definitions
        return loaded

    @property
    def skipped(self) -> Mapping[str, str]:
        """File name → reason, for definition files that could not be used."""
        self.definitions  # triggers the one-time load
        return self._skipped

    def get(self, file_name: str) -> SheetDefinition | None:
        return self.definitions.get(file_name)

    def __contains__(self, file_name: object) -> bool:
        return file_name in self.definitions

    def __len__(self) -> int:
        return len(self.definitions)

    def category_variants(self) -> dict[str, tuple[str, ...]]:
        """Category path → sorted allowed variants, merged across files."""
        by_category: dict[str, set[str]] = {}
        for file_name, definition in self.definitions.items():
            if not definition.variants:
                continue
            paths = definition.layer_paths() or [file_name.removesuffix(".json")]
            for path in paths:
                by_category.setdefault(path, set()).update(definition.variants)
        return {cat: tuple(sorted(by_category[cat])) for cat in sorted(by_category)}

    def items_by_type(self) -> dict[str, list[str]]:
        """``type_name`` → definition file names, in file-name order."""
        grouped: dict[str, list[str]] = {}
        for file_name, definition in self.definitions.items():
            if definition.type_name:
                grouped.setdefault(definition.type_name, []).append(file_name)
        return grouped

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _load(self) -> None:
        definitions: dict[str, SheetDefinition] = {}
        skipped: dict[str, str] = {}

        for path in sorted(self.defs_dir.rglob("*.json")):
            if not path.is_file():
                continue
            key = path.relative_to(self.defs_dir).as_posix()
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
                if not isinstance(raw, dict):
                    raise ValueError("definition is not a JSON object")
                definitions[key] = SheetDefinition.model_validate(raw)
            except (OSError, ValueError, ValidationError) as exc:
                # json.JSONDecodeError is a ValueError
                reason = type(exc).__name__
                skipped[key] = reason
                logger.warning("sheet_definition_skipped", file=key, reason=reason)

        logger.info(
            "catalog_loaded",
            defs_dir=str(self.defs_dir),
            definitions=len(definitions),
            skipped=len(skipped),
        )
        self._skipped = MappingProxyType(skipped)
        self._definitions = MappingProxyType(definitions)
