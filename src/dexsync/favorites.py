"""Favorites queries and the toggle command.

Reads go through the query cache as two views, "all favorites" and "is id X a
favorite". A successful toggle publishes a FavoritesChanged event; the rule
registered here turns it into invalidation of both views, so their next read
goes back to the store. A failed write publishes nothing and propagates.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from dexsync.models.cache import QueryPolicy

if TYPE_CHECKING:
    from dexsync.models.cache import QueryKey
    from dexsync.models.favorites import FavoriteRecord
    from dexsync.models.tools import ToggleFavoriteInput
    from dexsync.protocols import FavoriteStoreProtocol
    from dexsync.query_cache import QueryCache, QuerySubscription

log = structlog.get_logger()

FAVORITES_QUERY = "favorites"
IS_FAVORITE_QUERY = "is-favorite"


@dataclass(frozen=True)
class FavoritesChanged:
    """Published after a favorite was added or removed."""

    pokemon_id: int
    is_favorite: bool


def favorite_view_keys(event: FavoritesChanged) -> list[QueryKey]:
    return [(FAVORITES_QUERY,), (IS_FAVORITE_QUERY, event.pokemon_id)]


class FavoriteStoreBridge:
    def __init__(
        self,
        store: FavoriteStoreProtocol,
        cache: QueryCache,
        *,
        policy: QueryPolicy | None = None,
    ) -> None:
        self._store = store
        self._cache = cache
        self._policy = policy or QueryPolicy(stale_seconds=0)
        cache.on(FavoritesChanged, favorite_view_keys)

    async def list_favorites(self) -> list[FavoriteRecord]:
        return await self._cache.fetch(
            (FAVORITES_QUERY,), self._store.get_all_favorites, self._policy
        )

    def subscribe_favorites(self) -> QuerySubscription[list[FavoriteRecord]]:
        return self._cache.subscribe(
            (FAVORITES_QUERY,), self._store.get_all_favorites, self._policy
        )

    async def is_favorite(self, pokemon_id: int) -> bool:
        return await self._cache.fetch(
            (IS_FAVORITE_QUERY, pokemon_id),
            lambda: self._store.is_favorite(pokemon_id),
            self._policy,
        )

    def subscribe_is_favorite(self, pokemon_id: int) -> QuerySubscription[bool]:
        return self._cache.subscribe(
            (IS_FAVORITE_QUERY, pokemon_id),
            lambda: self._store.is_favorite(pokemon_id),
            self._policy,
        )

    async def toggle_favorite(self, request: ToggleFavoriteInput) -> bool:
        """Add or remove a favorite; returns the new state.

        With ``is_currently_favorite`` set, the caller's observation decides:
        True removes, False adds. Both writes are idempotent, so two toggles
        sent from the same observation converge. Without it, the store flips
        the state in a single transaction.
        """
        pokemon_id = request.pokemon_id
        if request.is_currently_favorite is None:
            is_favorite = await self._store.toggle_favorite(
                pokemon_id, request.name, request.image_url
            )
        elif request.is_currently_favorite:
            await self._store.remove_favorite(pokemon_id)
            is_favorite = False
        else:
            await self._store.add_favorite(pokemon_id, request.name, request.image_url)
            is_favorite = True

        log.info(
            "favorite_toggled",
            pokemon_id=pokemon_id,
            is_favorite=is_favorite,
            atomic=request.is_currently_favorite is None,
        )
        self._cache.publish(FavoritesChanged(pokemon_id=pokemon_id, is_favorite=is_favorite))
        return is_favorite
