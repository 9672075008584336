"""Shared fixtures: a small ULPC catalog written to tmp_path.

Definitions:
  body.json        body/bodies/{male,female,teen}   light, amber, olive, brown
  heads_round.json head/heads/human/{...}           pale, light, amber, olive, brown
  hair_long.json   hair/long/adult                  red, blonde, black (idle, walk)
  shirt.json       clothes/shirts/adult             red, blue (no teen mapping)
"""

import json
from pathlib import Path

import pytest

from catalog.sheet_defs import CategoryCatalog

DEFINITIONS: dict[str, dict] = {
    "body.json": {
        "name": "Body",
        "type_name": "body",
        "layer_1": {
            "male": "body/bodies/male/",
            "female": "body/bodies/female/",
            "teen": "body/bodies/teen/",
        },
        "variants": ["light", "amber", "olive", "brown"],
    },
    "heads_round.json": {
        "name": "Round head",
        "type_name": "head",
        "layer_1": {
            "male": "head/heads/human/male",
            "female": "head/heads/human/female",
            "teen": "head/heads/human/teen",
        },
        "variants": ["pale", "light", "amber", "olive", "brown"],
    },
    "hair_long.json": {
        "name": "Long hair",
        "type_name": "hair",
        "layer_1": {
            "male": "hair/long/adult",
            "female": "hair/long/adult",
            "teen": "hair/long/adult",
        },
        "variants": ["red", "blonde", "black"],
        "animations": ["idle", "walk"],
    },
    "shirt.json": {
        "name": "Shirt",
        "type_name": "clothes",
        "layer_1": {
            "male": "clothes/shirts/adult",
            "female": "clothes/shirts/adult",
        },
        "variants": ["red", "blue"],
    },
}


def write_definitions(defs_dir: Path, definitions: dict[str, object]) -> Path:
    """Write each definition as JSON (str values are written verbatim)."""
    defs_dir.mkdir(parents=True, exist_ok=True)
    for name, body in definitions.items():
        path = defs_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        text = body if isinstance(body, str) else json.dumps(body)
        path.write_text(text, encoding="utf-8")
    return defs_dir


@pytest.fixture
def defs_dir(tmp_path: Path) -> Path:
    return write_definitions(tmp_path / "sheet_definitions", DEFINITIONS)


@pytest.fixture
def catalog(defs_dir: Path) -> CategoryCatalog:
    return CategoryCatalog(defs_dir)
