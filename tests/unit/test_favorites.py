"""Unit tests for dexsync.favorites (cache-backed favorites views)."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock, patch

import pytest

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.favorites import (
    FAVORITES_QUERY,
    IS_FAVORITE_QUERY,
    FavoritesChanged,
    FavoriteStoreBridge,
    favorite_view_keys,
)
from dexsync.models.tools import ToggleFavoriteInput

if TYPE_CHECKING:
    from dexsync.favorites_store import FavoriteStore
    from dexsync.query_cache import QueryCache


@pytest.fixture()
def bridge(favorite_store: FavoriteStore, query_cache: QueryCache) -> FavoriteStoreBridge:
    return FavoriteStoreBridge(favorite_store, query_cache)


def _toggle(pokemon_id: int, current: bool | None) -> ToggleFavoriteInput:
    return ToggleFavoriteInput(
        pokemon_id=pokemon_id,
        name=f"mon-{pokemon_id}",
        is_currently_favorite=current,
    )


def test_favorite_view_keys() -> None:
    event = FavoritesChanged(pokemon_id=25, is_favorite=True)
    assert favorite_view_keys(event) == [(FAVORITES_QUERY,), (IS_FAVORITE_QUERY, 25)]


class TestToggle:
    async def test_add_then_remove_round_trip(self, bridge: FavoriteStoreBridge) -> None:
        assert await bridge.is_favorite(25) is False
        assert await bridge.list_favorites() == []

        assert await bridge.toggle_favorite(_toggle(25, False)) is True
        assert await bridge.is_favorite(25) is True
        assert [f.pokemon_id for f in await bridge.list_favorites()] == [25]

        assert await bridge.toggle_favorite(_toggle(25, True)) is False
        assert await bridge.is_favorite(25) is False
        assert await bridge.list_favorites() == []

    async def test_toggle_invalidates_only_affected_views(
        self, bridge: FavoriteStoreBridge, query_cache: QueryCache
    ) -> None:
        await bridge.is_favorite(1)
        await bridge.is_favorite(2)
        await bridge.list_favorites()

        await bridge.toggle_favorite(_toggle(1, False))

        assert query_cache.get_entry((IS_FAVORITE_QUERY, 1)).invalidated is True
        assert query_cache.get_entry((FAVORITES_QUERY,)).invalidated is True
        assert query_cache.get_entry((IS_FAVORITE_QUERY, 2)).invalidated is False

    async def test_failed_write_invalidates_nothing(
        self,
        bridge: FavoriteStoreBridge,
        favorite_store: FavoriteStore,
        query_cache: QueryCache,
    ) -> None:
        await bridge.is_favorite(1)
        failure = DexSyncError(
            code=ErrorCode.FAVORITE_WRITE_FAILED,
            message="disk full",
            suggestion="retry",
            recoverable=True,
        )

        with (
            patch.object(favorite_store, "add_favorite", AsyncMock(side_effect=failure)),
            pytest.raises(DexSyncError) as exc_info,
        ):
            await bridge.toggle_favorite(_toggle(1, False))

        assert exc_info.value.code == ErrorCode.FAVORITE_WRITE_FAILED
        assert query_cache.get_entry((IS_FAVORITE_QUERY, 1)).invalidated is False
        assert await favorite_store.is_favorite(1) is False

    async def test_toggles_from_same_observation_converge(
        self, bridge: FavoriteStoreBridge, favorite_store: FavoriteStore
    ) -> None:
        results = await asyncio.gather(
            bridge.toggle_favorite(_toggle(7, False)),
            bridge.toggle_favorite(_toggle(7, False)),
        )
        assert results == [True, True]
        assert [f.pokemon_id for f in await favorite_store.get_all_favorites()] == [7]

    async def test_atomic_toggle_without_observation(self, bridge: FavoriteStoreBridge) -> None:
        assert await bridge.toggle_favorite(_toggle(4, None)) is True
        assert await bridge.is_favorite(4) is True
        assert await bridge.toggle_favorite(_toggle(4, None)) is False
        assert await bridge.is_favorite(4) is False

    async def test_subscriber_sees_refetched_state(self, bridge: FavoriteStoreBridge) -> None:
        with bridge.subscribe_is_favorite(9) as sub:
            assert await sub.wait() is False

            await bridge.toggle_favorite(_toggle(9, False))
            assert sub.result.is_fetching is True
            assert await sub.wait() is True

    async def test_favorites_subscription(self, bridge: FavoriteStoreBridge) -> None:
        await bridge.toggle_favorite(_toggle(1, False))
        with bridge.subscribe_favorites() as sub:
            favorites = await sub.wait()
        assert [f.name for f in favorites] == ["mon-1"]
