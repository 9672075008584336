"""Locate the spritesheet PNG for a layer.

Search order for ``<category>`` / ``<variant>`` / ``<animation>``:
  1. ``{defs}/{category}/{variant}.json``: a variant record naming its PNG
  2. ``{defs}/{category}/index.json``: the ``variants[]`` entry whose ``id``,
     ``name`` or ``file`` matches; its ``animations[<animation>]`` PNG wins
     over the entry's own, then a ``json``/``def``/``variant`` sub-record
  3. ``{root}/{category}/{animation}/{variant}.png`` (then ``.webp``); with
     no animation every name in ``animations_fallback()`` is tried in order
  4. ``{root}/{category}/{variant}.png``            (then ``.webp``) — a
     single sheet covering every animation

Record paths are absolute, relative to the record file, or relative to the
spritesheets root.  Only these fixed locations are consulted, so lookups are
deterministic.
"""

import json
from pathlib import Path
from typing import Any

from app.config import animations_fallback
from app.errors import LayerAssetNotFoundError

_EXTS: tuple[str, ...] = ("png", "webp")
_RECORD_REF_KEYS: tuple[str, ...] = ("json", "def", "variant")


def _normalise_category(category: str, variant: str) -> str:
    """Strip trailing slashes and a trailing ``/<variant>`` segment."""
    category = category.rstrip("/")
    if category.lower().endswith("/" + variant.lower()):
        category = category[: -(len(variant) + 1)]
    return category


def _read_record(path: Path) -> Any:
    if not path.is_file():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None


def _record_fields(record: Any) -> list[str]:
    """Image path fields of a variant record, in priority order."""
    if not isinstance(record, dict):
        return []
    files = record.get("files")
    images = record.get("images")
    fields = [
        record.get("file"),
        files[0] if isinstance(files, list) and files else None,
        record.get("png"),
        record.get("path"),
        record.get("image"),
        images.get("sheet") if isinstance(images, dict) else None,
    ]
    return [f for f in fields if isinstance(f, str) and f]


def _matches(entry: Any, variant: str) -> bool:
    if not isinstance(entry, dict):
        return False
    return variant in (entry.get("id"), entry.get("name"), entry.get("file")) or entry.get("file") == f"{variant}.png"


class LayerAssetLocator:
    """Map layer category/variant/animation to a PNG under *root*.

    Args:
        root: Spritesheets root holding the built per-animation paths.
        defs_dir: Sheet-definitions directory holding variant records;
            ``None`` skips the record lookups.
    """

    def __init__(self, root: str | Path, defs_dir: str | Path | None = None) -> None:
        self.root = Path(root).resolve()
        self.defs_dir = Path(defs_dir).resolve() if defs_dir else None

    def _to_abs(self, record_path: Path, ref: str) -> Path:
        ref_path = Path(ref)
        if ref_path.is_absolute():
            return ref_path
        beside = record_path.parent / ref_path
        if beside.exists():
            return beside
        return self.root / ref_path

    def _png_from_record(self, record_path: Path, record: Any) -> Path | None:
        for ref in _record_fields(record):
            path = self._to_abs(record_path, ref)
            if path.suffix.lower().lstrip(".") in _EXTS and path.is_file():
                return path
        return None

    def _from_variant_record(self, category: str, variant: str) -> Path | None:
        record_path = self.defs_dir / category / f"{variant}.json"
        return self._png_from_record(record_path, _read_record(record_path))

    def _from_index(self, category: str, variant: str, animation: str | None) -> Path | None:
        index_path = self.defs_dir / category / "index.json"
        index = _read_record(index_path)
        entries = index.get("variants") if isinstance(index, dict) else None
        if not isinstance(entries, list):
            return None
        hit = next((e for e in entries if _matches(e, variant)), None)
        if hit is None:
            return None

        per_anim = hit.get("animations")
        if animation and isinstance(per_anim, dict) and animation in per_anim:
            found = self._png_from_record(index_path, per_anim[animation])
            if found:
                return found
        found = self._png_from_record(index_path, hit)
        if found:
            return found
        ref = next((hit[k] for k in _RECORD_REF_KEYS if isinstance(hit.get(k), str)), None)
        if ref:
            sub_path = self._to_abs(index_path, ref)
            return self._png_from_record(sub_path, _read_record(sub_path))
        return None

    def candidates(self, category: str, variant: str, animation: str | None) -> list[Path]:
        """Built spritesheet paths, in search order."""
        category = _normalise_category(category, variant)
        base = self.root / category
        paths: list[Path] = []
        for name in [animation] if animation else animations_fallback():
            paths.extend(base / name / f"{variant}.{ext}" for ext in _EXTS)
        paths.extend(base / f"{variant}.{ext}" for ext in _EXTS)
        return paths

    def locate(self, category: str, variant: str, animation: str | None = None) -> Path:
        """First variant record hit, else first existing built path.

        Raises:
            LayerAssetNotFoundError: nothing matched.
        """
        if self.defs_dir is not None:
            norm = _normalise_category(category, variant)
            found = self._from_variant_record(norm, variant) or self._from_index(norm, variant, animation)
            if found is not None:
                return found

        tried = self.candidates(category, variant, animation)
        for path in tried:
            if path.is_file():
                return path
        raise LayerAssetNotFoundError(category, variant, animation, tried)
