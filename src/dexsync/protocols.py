"""Protocol interfaces for swappable collaborators.

The pager, index builder, detail resolver and favorites bridge reference these
protocols, not the concrete implementations. This allows:
- Tests to use lightweight in-memory doubles
- Other backends (e.g. a different persistence engine) without changing callers
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from dexsync.models.catalog import Page
    from dexsync.models.detail import DetailRecord, EvolutionNode, SpeciesRecord
    from dexsync.models.favorites import FavoriteRecord


class CatalogServiceProtocol(Protocol):
    """Interface for the remote read-only catalog service."""

    async def list_entries(self, offset: int, limit: int) -> Page: ...

    async def get_detail_by_name(self, name: str) -> DetailRecord: ...

    async def get_species_by_name(self, name: str) -> SpeciesRecord: ...

    async def get_evolution_chain_by_id(self, chain_id: int) -> EvolutionNode: ...


class FavoriteStoreProtocol(Protocol):
    """Interface for the persistent favorites collection."""

    async def add_favorite(
        self, pokemon_id: int, name: str, image_url: str | None = None
    ) -> None: ...

    async def remove_favorite(self, pokemon_id: int) -> None: ...

    async def get_all_favorites(self) -> list[FavoriteRecord]: ...

    async def is_favorite(self, pokemon_id: int) -> bool: ...

    async def toggle_favorite(
        self, pokemon_id: int, name: str, image_url: str | None = None
    ) -> bool: ...
