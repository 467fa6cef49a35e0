"""Records for the detail -> species -> evolution chain lookups.

PokeAPI nests the interesting values one level down (``types[].type.name``,
``stats[].stat.name``); the ``from_payload`` constructors flatten them into
explicit records so nothing downstream handles raw dicts.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from dexsync.identifiers import resolve_id
from dexsync.models.catalog import NamedResource


class TypeSlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    type_name: str


class AbilitySlot(BaseModel):
    model_config = ConfigDict(frozen=True)

    ability_name: str


class StatValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    stat_name: str
    base_value: int


class DetailRecord(BaseModel):
    """Full record for a single catalog entry. Keyed by name."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    types: list[TypeSlot] = []
    abilities: list[AbilitySlot] = []
    stats: list[StatValue] = []
    height: int | None = None
    weight: int | None = None
    base_experience: int | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> DetailRecord:
        return cls(
            id=data["id"],
            name=data["name"],
            types=[TypeSlot(type_name=t["type"]["name"]) for t in data.get("types", [])],
            abilities=[
                AbilitySlot(ability_name=a["ability"]["name"]) for a in data.get("abilities", [])
            ],
            stats=[
                StatValue(stat_name=s["stat"]["name"], base_value=s["base_stat"])
                for s in data.get("stats", [])
            ],
            height=data.get("height"),
            weight=data.get("weight"),
            base_experience=data.get("base_experience"),
        )


class EvolutionChainRef(BaseModel):
    """Reference from a species to its evolution chain."""

    model_config = ConfigDict(frozen=True)

    url: str

    @property
    def chain_id(self) -> int | None:
        return resolve_id(self.url)


class SpeciesRecord(BaseModel):
    """Taxonomic species record; only carries the evolution chain reference."""

    model_config = ConfigDict(frozen=True)

    name: str
    evolution_chain: EvolutionChainRef | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> SpeciesRecord:
        chain = data.get("evolution_chain") or {}
        url = chain.get("url")
        return cls(
            name=data["name"],
            evolution_chain=EvolutionChainRef(url=url) if url else None,
        )


class EvolutionNode(BaseModel):
    """One node of an evolution tree, rooted at the base form."""

    species: NamedResource | None = None
    evolves_to: list[EvolutionNode] = []


class EvolutionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str


class EvolutionLookup(BaseModel):
    """Outcome of the full species -> chain -> flatten lookup.

    ``no_evolution_data`` means the species carries no chain reference; it is a
    successful terminal state, not an error.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    status: Literal["resolved", "no_evolution_data"]
    chain_id: int | None = None
    entries: list[EvolutionEntry] = []

    @property
    def evolves(self) -> bool:
        return len(self.entries) > 1
