from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NamedResource(BaseModel):
    """A ``{name, url}`` reference as returned by every PokeAPI list."""

    model_config = ConfigDict(frozen=True)

    name: str
    url: str


class Page(BaseModel):
    """One offset-addressed slice of the remote catalog."""

    model_config = ConfigDict(frozen=True)

    count: int  # Total remote catalog size
    next: str | None = None
    previous: str | None = None
    results: list[NamedResource] = []


class CatalogEntry(BaseModel):
    """Display entry produced from a page or the full index."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(gt=0)
    name: str
