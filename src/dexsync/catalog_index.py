"""Full catalog index and the search-vs-paged switch.

Search runs against the whole catalog, fetched in one bulk request, rather
than against whatever the pager happens to have loaded. The index is cached
for a day: the catalog only ever grows, and slowly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.cache import QueryPolicy
from dexsync.pager import entries_from_resources

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dexsync.models.catalog import CatalogEntry
    from dexsync.pager import CatalogPager
    from dexsync.protocols import CatalogServiceProtocol
    from dexsync.query_cache import QueryCache, QuerySubscription

log = structlog.get_logger()

INDEX_QUERY = "catalog-index"

_DAY_SECONDS = 24 * 60 * 60


def filter_entries(entries: Iterable[CatalogEntry], query: str) -> list[CatalogEntry]:
    """Case-insensitive substring match on ``name``."""
    needle = query.strip().lower()
    if not needle:
        return list(entries)
    return [entry for entry in entries if needle in entry.name.lower()]


class FullIndexBuilder:
    """Fetches the entire catalog in one request for search."""

    def __init__(
        self,
        service: CatalogServiceProtocol,
        cache: QueryCache,
        *,
        default_limit: int = 2000,
        policy: QueryPolicy | None = None,
    ) -> None:
        self._service = service
        self._cache = cache
        self._policy = policy or QueryPolicy(
            stale_seconds=_DAY_SECONDS,
            eviction_seconds=_DAY_SECONDS,
        )
        self.default_limit = default_limit

    def key(self, limit: int | None = None) -> tuple:
        return (INDEX_QUERY, limit or self.default_limit)

    def _loader(self, limit: int):
        async def load() -> list[CatalogEntry]:
            try:
                page = await self._service.list_entries(0, limit)
            except DexSyncError as exc:
                if exc.code != ErrorCode.PAGE_FETCH_FAILED:
                    raise
                raise DexSyncError(
                    code=ErrorCode.INDEX_FETCH_FAILED,
                    message=exc.message,
                    suggestion="The full catalog index could not be loaded. Retry the search.",
                    recoverable=True,
                ) from exc
            if page.count > limit:
                log.warning("full_index_truncated", limit=limit, catalog_size=page.count)
            entries = entries_from_resources(page.results)
            log.info("full_index_loaded", entry_count=len(entries), limit=limit)
            return entries

        return load

    async def fetch_full_index(self, limit: int | None = None) -> list[CatalogEntry]:
        limit = limit or self.default_limit
        return await self._cache.fetch(self.key(limit), self._loader(limit), self._policy)

    def subscribe(self, limit: int | None = None) -> QuerySubscription[list[CatalogEntry]]:
        limit = limit or self.default_limit
        return self._cache.subscribe(self.key(limit), self._loader(limit), self._policy)


@dataclass
class CatalogView:
    """What a catalog list consumer should display.

    ``mode`` distinguishes "index still loading" from a search with no hits.
    """

    mode: Literal["paged", "index_loading", "search", "index_error"]
    query: str = ""
    entries: list[CatalogEntry] = field(default_factory=list)
    has_more: bool = False
    is_fetching: bool = False
    error: DexSyncError | None = None

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "query": self.query,
            "entries": [entry.model_dump(mode="json") for entry in self.entries],
            "has_more": self.has_more,
            "is_fetching": self.is_fetching,
            "error": self.error.to_dict()["error"] if self.error is not None else None,
        }


class CatalogBrowser:
    """Switches between the pager's accumulated view and full-index search.

    An empty query shows the pager's pages and never touches the index. A
    non-empty query subscribes to the index and suspends paging; clearing the
    query releases that subscription.
    """

    def __init__(self, pager: CatalogPager, index: FullIndexBuilder) -> None:
        self._pager = pager
        self._index = index
        self._index_sub: QuerySubscription[list[CatalogEntry]] | None = None
        self.query = ""

    @property
    def pager(self) -> CatalogPager:
        return self._pager

    def set_query(self, query: str) -> CatalogView:
        self.query = query.strip()
        if self.query and self._index_sub is None:
            self._index_sub = self._index.subscribe()
        elif not self.query and self._index_sub is not None:
            # Back to paging; the index entry may be evicted once idle
            self._index_sub.close()
            self._index_sub = None
        return self.view()

    def view(self) -> CatalogView:
        if not self.query:
            return CatalogView(
                mode="paged",
                entries=self._pager.entries,
                has_more=self._pager.has_more,
                is_fetching=self._pager.is_fetching_next,
                error=self._pager.error,
            )

        assert self._index_sub is not None
        result = self._index_sub.result
        if result.data is None:
            if result.error is not None and not result.is_fetching:
                return CatalogView(mode="index_error", query=self.query, error=result.error)
            return CatalogView(mode="index_loading", query=self.query, is_fetching=True)

        return CatalogView(
            mode="search",
            query=self.query,
            entries=filter_entries(result.data, self.query),
            is_fetching=result.is_fetching,
        )

    async def load_more(self) -> bool:
        """Advance the pager; suspended while a search query is active."""
        if self.query:
            log.debug("load_more_skipped", reason="search_active", query=self.query)
            return False
        return await self._pager.load_more()

    async def wait_for_index(self) -> CatalogView:
        """Wait for the index subscription to settle, then return the view."""
        if self._index_sub is not None:
            try:
                await self._index_sub.wait()
            except DexSyncError as exc:
                # Recorded on the index entry; surfaced as mode="index_error"
                log.warning("index_load_failed", code=exc.code)
        return self.view()

    async def retry_index(self) -> CatalogView:
        if self._index_sub is None:
            return self.view()
        try:
            await self._index_sub.refetch()
        except DexSyncError as exc:
            log.warning("index_load_failed", code=exc.code, retry=True)
        return self.view()

    def close(self) -> None:
        if self._index_sub is not None:
            self._index_sub.close()
            self._index_sub = None
