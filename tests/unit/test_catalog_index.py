"""Unit tests for dexsync.catalog_index."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from dexsync.catalog_index import CatalogBrowser, FullIndexBuilder, filter_entries
from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.catalog import CatalogEntry
from dexsync.pager import CatalogPager
from tests.fakes import FakeCatalogService

if TYPE_CHECKING:
    from dexsync.query_cache import QueryCache


@pytest.fixture()
def index(service: FakeCatalogService, query_cache: QueryCache) -> FullIndexBuilder:
    return FullIndexBuilder(service, query_cache, default_limit=2000)


@pytest.fixture()
def browser(
    service: FakeCatalogService, query_cache: QueryCache, index: FullIndexBuilder
) -> CatalogBrowser:
    return CatalogBrowser(CatalogPager(service, query_cache, page_size=4), index)


class TestFilterEntries:
    ENTRIES = [
        CatalogEntry(id=1, name="bulbasaur"),
        CatalogEntry(id=4, name="charmander"),
        CatalogEntry(id=7, name="squirtle"),
    ]

    def test_case_insensitive_substring(self) -> None:
        assert [e.id for e in filter_entries(self.ENTRIES, "AR")] == [4]
        assert [e.id for e in filter_entries(self.ENTRIES, "  Saur ")] == [1]

    def test_no_match(self) -> None:
        assert filter_entries(self.ENTRIES, "pikachu") == []

    def test_blank_query_returns_everything(self) -> None:
        assert filter_entries(self.ENTRIES, "   ") == self.ENTRIES


class TestFullIndexBuilder:
    async def test_single_bulk_request(
        self, service: FakeCatalogService, index: FullIndexBuilder
    ) -> None:
        entries = await index.fetch_full_index()
        assert service.calls == [("list", 0, 2000)]
        assert [e.id for e in entries] == list(range(1, 11))

    async def test_index_is_cached(
        self, service: FakeCatalogService, index: FullIndexBuilder
    ) -> None:
        await index.fetch_full_index()
        await index.fetch_full_index()
        assert service.count("list") == 1

    async def test_truncated_to_limit(self, query_cache: QueryCache) -> None:
        service = FakeCatalogService(total=30)
        index = FullIndexBuilder(service, query_cache, default_limit=2000)
        entries = await index.fetch_full_index(limit=12)
        assert len(entries) == 12
        assert index.key(12) != index.key()

    async def test_page_failure_becomes_index_failure(
        self, service: FakeCatalogService, index: FullIndexBuilder
    ) -> None:
        service.fail_next("list", ErrorCode.PAGE_FETCH_FAILED)
        with pytest.raises(DexSyncError) as exc_info:
            await index.fetch_full_index()
        assert exc_info.value.code == ErrorCode.INDEX_FETCH_FAILED
        assert exc_info.value.recoverable is True

    async def test_invalid_response_passes_through(
        self, service: FakeCatalogService, index: FullIndexBuilder
    ) -> None:
        service.fail_next("list", ErrorCode.INVALID_RESPONSE, recoverable=False)
        with pytest.raises(DexSyncError) as exc_info:
            await index.fetch_full_index()
        assert exc_info.value.code == ErrorCode.INVALID_RESPONSE


class TestCatalogBrowser:
    async def test_empty_query_is_paged_and_never_loads_index(
        self, service: FakeCatalogService, browser: CatalogBrowser
    ) -> None:
        await browser.load_more()
        view = browser.set_query("")

        assert view.mode == "paged"
        assert [e.id for e in view.entries] == [1, 2, 3, 4]
        assert view.has_more is True
        assert service.calls == [("list", 0, 4)]

    async def test_query_shows_loading_until_index_arrives(
        self, browser: CatalogBrowser
    ) -> None:
        view = browser.set_query("saur")
        assert view.mode == "index_loading"
        assert view.entries == []

        view = await browser.wait_for_index()
        assert view.mode == "search"
        assert [e.name for e in view.entries] == ["bulbasaur", "ivysaur", "venusaur"]

    async def test_search_covers_entries_not_yet_paged(
        self, service: FakeCatalogService, browser: CatalogBrowser
    ) -> None:
        await browser.load_more()
        browser.set_query("Tortle")
        view = await browser.wait_for_index()

        assert [e.name for e in view.entries] == ["wartortle"]
        assert ("list", 0, 2000) in service.calls

    async def test_search_without_hits_is_not_loading(self, browser: CatalogBrowser) -> None:
        browser.set_query("mew")
        view = await browser.wait_for_index()
        assert view.mode == "search"
        assert view.entries == []

    async def test_load_more_suspended_during_search(
        self, service: FakeCatalogService, browser: CatalogBrowser
    ) -> None:
        browser.set_query("char")
        await browser.wait_for_index()

        assert await browser.load_more() is False
        assert service.count("list") == 1
        assert browser.pager.pages == []

    async def test_clearing_query_restores_paged_view(self, browser: CatalogBrowser) -> None:
        await browser.load_more()
        browser.set_query("char")
        await browser.wait_for_index()

        view = browser.set_query("")
        assert view.mode == "paged"
        assert len(view.entries) == 4
        assert await browser.load_more() is True

    async def test_index_failure_then_retry(
        self, service: FakeCatalogService, browser: CatalogBrowser
    ) -> None:
        service.fail_next("list", ErrorCode.PAGE_FETCH_FAILED)
        browser.set_query("saur")

        view = await browser.wait_for_index()
        assert view.mode == "index_error"
        assert view.error is not None
        assert view.error.code == ErrorCode.INDEX_FETCH_FAILED
        assert view.to_dict()["error"]["code"] == "INDEX_FETCH_FAILED"

        view = await browser.retry_index()
        assert view.mode == "search"
        assert len(view.entries) == 3

    async def test_close_releases_index_subscription(
        self, query_cache: QueryCache, index: FullIndexBuilder, browser: CatalogBrowser
    ) -> None:
        browser.set_query("saur")
        await browser.wait_for_index()
        assert query_cache.get_entry(index.key()).subscribers == 1

        browser.close()
        assert query_cache.get_entry(index.key()).subscribers == 0

    async def test_clearing_query_releases_index_subscription(
        self, query_cache: QueryCache, index: FullIndexBuilder, browser: CatalogBrowser
    ) -> None:
        browser.set_query("saur")
        await browser.wait_for_index()

        browser.set_query("   ")
        assert query_cache.get_entry(index.key()).subscribers == 0

        browser.set_query("ivy")
        assert query_cache.get_entry(index.key()).subscribers == 1

    async def test_new_query_after_failure_reloads_index(
        self, service: FakeCatalogService, browser: CatalogBrowser
    ) -> None:
        service.fail_next("list", ErrorCode.PAGE_FETCH_FAILED)
        browser.set_query("saur")
        assert (await browser.wait_for_index()).mode == "index_error"

        browser.set_query("")
        browser.set_query("saur")
        view = await browser.wait_for_index()
        assert view.mode == "search"
        assert service.count("list") == 2

    async def test_view_to_dict(self, browser: CatalogBrowser) -> None:
        browser.set_query("ivy")
        payload = (await browser.wait_for_index()).to_dict()
        assert payload == {
            "mode": "search",
            "query": "ivy",
            "entries": [{"id": 2, "name": "ivysaur"}],
            "has_more": False,
            "is_fetching": False,
            "error": None,
        }
