"""Global z-order table for layer composition.

Lower values are drawn first.  A category takes the value of its longest
matching prefix; a layer's ``z_override`` replaces the table value.  Ties keep
Build order.
"""

from typing import Mapping

# body < head < head features < clothing < accessories < held items
DEFAULT_Z_ORDER: Mapping[str, int] = {
    "body": 10,
    "shadow": 5,
    "head": 20,
    "eyes": 22,
    "facial": 24,
    "beards": 26,
    "hair": 28,
    "feet": 40,
    "legs": 42,
    "torso": 44,
    "clothes": 44,
    "dress": 46,
    "arms": 48,
    "shoulders": 50,
    "neck": 52,
    "cape": 54,
    "belt": 60,
    "accessories": 70,
    "hat": 72,
    "backpack": 74,
    "quiver": 76,
    "shield": 80,
    "weapon": 82,
}

DEFAULT_Z = 70


def z_for(category: str, table: Mapping[str, int] = DEFAULT_Z_ORDER, default: int = DEFAULT_Z) -> int:
    """Z value of *category* (e.g. ``torso/clothes/male``)."""
    best: tuple[int, int] | None = None
    for prefix, z in table.items():
        if category == prefix or category.startswith(prefix + "/"):
            if best is None or len(prefix) > best[0]:
                best = (len(prefix), z)
    return best[1] if best else default
