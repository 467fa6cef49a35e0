from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator

_NAME_RE = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class SearchCatalogInput(BaseModel):
    query: str = Field(default="", max_length=200)


class NameInput(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def normalise_name(cls, v: str) -> str:
        v = v.strip().lower()
        if not _NAME_RE.match(v):
            raise ValueError(f"Invalid name: {v!r}")
        return v


class ToggleFavoriteInput(BaseModel):
    """Favorite toggle command.

    ``is_currently_favorite`` is the state the caller last observed. When it is
    omitted the store decides atomically.
    """

    pokemon_id: int = Field(gt=0)
    name: str = Field(min_length=1)
    image_url: str | None = None
    is_currently_favorite: bool | None = None
