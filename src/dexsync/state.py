"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object.
Tests build it with ``build_app_state`` around their own doubles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from dexsync.catalog_index import CatalogBrowser, FullIndexBuilder
from dexsync.detail import DetailResolver
from dexsync.favorites import FavoriteStoreBridge
from dexsync.models.cache import QueryPolicy
from dexsync.pager import CatalogPager
from dexsync.query_cache import QueryCache

if TYPE_CHECKING:
    import httpx

    from dexsync.config import Settings
    from dexsync.protocols import CatalogServiceProtocol, FavoriteStoreProtocol


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    query_cache: QueryCache
    pager: CatalogPager
    index: FullIndexBuilder
    browser: CatalogBrowser
    details: DetailResolver
    favorites: FavoriteStoreBridge
    http_client: httpx.AsyncClient | None = None


def build_app_state(
    settings: Settings,
    service: CatalogServiceProtocol,
    store: FavoriteStoreProtocol,
    *,
    query_cache: QueryCache | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> AppState:
    """Wire every component around one shared query cache."""
    cache_settings = settings.cache
    eviction = cache_settings.eviction_seconds
    query_cache = query_cache or QueryCache()

    pager = CatalogPager(
        service,
        query_cache,
        page_size=settings.catalog.page_size,
        policy=QueryPolicy(cache_settings.page_stale_seconds, eviction),
        slice_policy=QueryPolicy(cache_settings.slice_stale_seconds, eviction),
    )
    index = FullIndexBuilder(
        service,
        query_cache,
        default_limit=settings.catalog.full_index_limit,
        policy=QueryPolicy(
            cache_settings.index_stale_seconds,
            cache_settings.index_eviction_seconds,
        ),
    )
    return AppState(
        settings=settings,
        query_cache=query_cache,
        pager=pager,
        index=index,
        browser=CatalogBrowser(pager, index),
        details=DetailResolver(
            service,
            query_cache,
            policy=QueryPolicy(cache_settings.detail_stale_seconds, eviction),
        ),
        favorites=FavoriteStoreBridge(
            store,
            query_cache,
            policy=QueryPolicy(cache_settings.favorites_stale_seconds, eviction),
        ),
        http_client=http_client,
    )
