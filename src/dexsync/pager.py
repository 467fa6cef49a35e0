"""Incremental catalog paging.

Pages are fetched through the query cache, one key per page, and accumulated
in order by a CatalogPager. The pager only moves forward: the next page index
is always the number of pages already held, so a failed page is retried at the
same offset.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError
from dexsync.identifiers import POKEMON_ID_PATTERN, resolve_id
from dexsync.models.cache import QueryPolicy, QueryResult
from dexsync.models.catalog import CatalogEntry

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dexsync.models.catalog import NamedResource, Page
    from dexsync.protocols import CatalogServiceProtocol
    from dexsync.query_cache import QueryCache

log = structlog.get_logger()

PAGE_QUERY = "catalog-page"
SLICE_QUERY = "catalog-slice"


def entries_from_resources(resources: Iterable[NamedResource]) -> list[CatalogEntry]:
    """Map raw references to catalog entries, preserving order.

    References without a resolvable id are dropped, as are repeats of an id
    already seen.
    """
    entries: list[CatalogEntry] = []
    seen: set[int] = set()
    for resource in resources:
        entry_id = resolve_id(resource.url, POKEMON_ID_PATTERN)
        if entry_id is None:
            log.debug("catalog_entry_skipped", name=resource.name, url=resource.url)
            continue
        if entry_id in seen:
            continue
        seen.add(entry_id)
        entries.append(CatalogEntry(id=entry_id, name=resource.name))
    return entries


def map_pages_to_entries(pages: Iterable[Page]) -> list[CatalogEntry]:
    """Flatten pages into one ordered entry sequence (page 0 first)."""
    return entries_from_resources(resource for page in pages for resource in page.results)


class CatalogPager:
    """Accumulates fixed-size catalog pages in order.

    ``has_more`` turns false exactly when the last fetched page held fewer
    results than ``page_size``.
    """

    def __init__(
        self,
        service: CatalogServiceProtocol,
        cache: QueryCache,
        *,
        page_size: int = 150,
        policy: QueryPolicy | None = None,
        slice_policy: QueryPolicy | None = None,
    ) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got {page_size}")
        self._service = service
        self._cache = cache
        self._policy = policy or QueryPolicy(stale_seconds=5 * 60)
        self._slice_policy = slice_policy or QueryPolicy()
        self._loading = False
        self.page_size = page_size
        self.pages: list[Page] = []
        self.error: DexSyncError | None = None

    @property
    def has_more(self) -> bool:
        if not self.pages:
            return True
        return len(self.pages[-1].results) >= self.page_size

    @property
    def is_fetching_next(self) -> bool:
        return self._loading

    @property
    def entries(self) -> list[CatalogEntry]:
        return map_pages_to_entries(self.pages)

    def page_key(self, page_index: int) -> tuple:
        return (PAGE_QUERY, self.page_size, page_index)

    async def fetch_page(self, page_index: int) -> Page:
        """Fetch one page; offset is ``page_index * page_size``."""
        if page_index < 0:
            raise ValueError(f"page_index must be >= 0, got {page_index}")
        offset = page_index * self.page_size
        return await self._cache.fetch(
            self.page_key(page_index),
            lambda: self._service.list_entries(offset, self.page_size),
            self._policy,
        )

    async def load_more(self) -> bool:
        """Fetch and append the next page.

        No-op (returns False) while a fetch is in flight or when the catalog
        is exhausted. A failure is recorded in ``error``; held pages stay.
        """
        if self._loading or not self.has_more:
            log.debug(
                "load_more_skipped",
                in_flight=self._loading,
                has_more=self.has_more,
            )
            return False

        page_index = len(self.pages)
        self._loading = True
        try:
            page = await self.fetch_page(page_index)
        except DexSyncError as exc:
            self.error = exc
            log.warning(
                "page_fetch_failed",
                page_index=page_index,
                page_size=self.page_size,
                code=exc.code,
            )
            return False
        finally:
            self._loading = False

        self.pages.append(page)
        self.error = None
        log.info(
            "page_loaded",
            page_index=page_index,
            result_count=len(page.results),
            has_more=self.has_more,
        )
        return True

    async def load_all(self) -> list[CatalogEntry]:
        """Load pages until the catalog is exhausted or a page fails."""
        while self.has_more:
            if not await self.load_more():
                break
        return self.entries

    async def fetch_slice(self, offset: int, limit: int) -> list[CatalogEntry]:
        """One-off, non-accumulating list query."""
        page = await self._cache.fetch(
            (SLICE_QUERY, offset, limit),
            lambda: self._service.list_entries(offset, limit),
            self._slice_policy,
        )
        return entries_from_resources(page.results)

    def result(self) -> QueryResult[list[CatalogEntry]]:
        return QueryResult(
            data=self.entries,
            is_loading=self._loading and not self.pages,
            is_fetching=self._loading,
            error=self.error,
        )
