"""Category reference — which definition files belong to which category.

The reference is an ordered JSON array::

    [{"category": "hair", "items": ["hair_long.json", ...], "required": false}, ...]

When no reference file is supplied, one is derived from the catalog by
grouping definitions on their ``type_name``.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from catalog.sheet_defs import CategoryCatalog


class CategoryReferenceEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    category: str
    items: tuple[str, ...]
    required: bool = False


_ENTRIES = TypeAdapter(list[CategoryReferenceEntry])


class CategoryReference:
    """Category name → ordered candidate item files."""

    def __init__(self, entries: list[CategoryReferenceEntry]) -> None:
        self.entries = list(entries)
        self._items: dict[str, tuple[str, ...]] = {}
        for entry in self.entries:
            # later duplicates replace earlier ones
            self._items[entry.category] = entry.items

    def items_for(self, category: str) -> tuple[str, ...]:
        """Known items for *category*; empty when the category is unknown."""
        return self._items.get(category, ())

    def __contains__(self, category: object) -> bool:
        return bool(self._items.get(category))  # type: ignore[arg-type]

    @classmethod
    def from_list(cls, raw: object) -> "CategoryReference":
        """Validate an already-parsed JSON array.

        Raises:
            ValueError: ``category_reference_not_array`` or
                ``category_reference_invalid_shape``.
        """
        if not isinstance(raw, list):
            raise ValueError("category_reference_not_array")
        try:
            return cls(_ENTRIES.validate_python(raw))
        except ValidationError as exc:
            raise ValueError("category_reference_invalid_shape") from exc

    @classmethod
    def load(cls, path: str | Path) -> "CategoryReference":
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls.from_list(raw)

    @classmethod
    def from_catalog(cls, catalog: CategoryCatalog) -> "CategoryReference":
        entries = [
            CategoryReferenceEntry(category=type_name, items=tuple(files))
            for type_name, files in sorted(catalog.items_by_type().items())
        ]
        return cls(entries)
