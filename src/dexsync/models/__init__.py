from __future__ import annotations

from dexsync.models.cache import CacheEntry, CacheState, QueryKey, QueryPolicy, QueryResult
from dexsync.models.catalog import CatalogEntry, NamedResource, Page
from dexsync.models.detail import (
    AbilitySlot,
    DetailRecord,
    EvolutionChainRef,
    EvolutionEntry,
    EvolutionLookup,
    EvolutionNode,
    SpeciesRecord,
    StatValue,
    TypeSlot,
)
from dexsync.models.favorites import FavoriteRecord
from dexsync.models.tools import (
    NameInput,
    SearchCatalogInput,
    ToggleFavoriteInput,
)

__all__ = [
    # catalog
    "NamedResource",
    "Page",
    "CatalogEntry",
    # detail
    "TypeSlot",
    "AbilitySlot",
    "StatValue",
    "DetailRecord",
    "EvolutionChainRef",
    "SpeciesRecord",
    "EvolutionNode",
    "EvolutionEntry",
    "EvolutionLookup",
    # favorites
    "FavoriteRecord",
    # cache
    "QueryKey",
    "QueryPolicy",
    "CacheState",
    "CacheEntry",
    "QueryResult",
    # tools
    "SearchCatalogInput",
    "NameInput",
    "ToggleFavoriteInput",
]
