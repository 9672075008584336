"""Colour synonym dictionary used by the dictionary-match variant tier."""

import json
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

_DEFAULT_DICTIONARY = Path(__file__).resolve().parent / "colour_dictionary.v1.json"


def normalise(text: str) -> str:
    """Lowercase, collapse internal whitespace, trim."""
    return " ".join(text.lower().split())


def parse_colour_dictionary(raw: object) -> Mapping[str, tuple[str, ...]]:
    """Validate ``{colour: [synonym, ...]}`` and normalise its keys.

    Synonym order is preserved; it is the order candidates are tried in.
    """
    if not isinstance(raw, dict):
        raise ValueError("colour_dictionary_not_object")
    parsed: dict[str, tuple[str, ...]] = {}
    for key, synonyms in raw.items():
        if not isinstance(key, str) or not isinstance(synonyms, list):
            raise ValueError(f"colour_dictionary_invalid_entry: {key!r}")
        parsed[normalise(key)] = tuple(s for s in synonyms if isinstance(s, str))
    return MappingProxyType(parsed)


@lru_cache(maxsize=None)
def load_colour_dictionary(path: str | None = None) -> Mapping[str, tuple[str, ...]]:
    """Load (once per path) the bundled or a caller-supplied dictionary."""
    source = Path(path) if path else _DEFAULT_DICTIONARY
    return parse_colour_dictionary(json.loads(source.read_text(encoding="utf-8")))
