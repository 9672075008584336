"""Typed Semantic Selection models (character intermediary).

Callers (an LLM-driven intake flow upstream) hand over a loosely typed JSON
payload.  It is validated here into strict records before the Resolver sees
it; nothing past the Resolver's entry point handles raw dicts.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BodyType(str, Enum):
    MALE     = "male"
    MUSCULAR = "muscular"
    FEMALE   = "female"
    TEEN     = "teen"
    CHILD    = "child"


class CategorySelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    category:         str
    preferred_colour: str | None = None
    items:            tuple[str, ...] = ()

    @field_validator("category")
    @classmethod
    def _non_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("category must not be blank")
        return v.strip()


class SemanticSelection(BaseModel):
    model_config = ConfigDict(frozen=True)

    body_type:  BodyType
    head_type:  str = Field(min_length=1)
    categories: tuple[CategorySelection, ...] = ()

    def find(self, category: str) -> CategorySelection | None:
        """Return the first selection entry for *category*, if any."""
        for entry in self.categories:
            if entry.category == category:
                return entry
        return None
