"""Shared test fixtures for the dexsync test suite."""

from __future__ import annotations

import aiosqlite
import pytest

from dexsync.favorites_store import FavoriteStore
from dexsync.models.detail import DetailRecord, SpeciesRecord, StatValue, TypeSlot
from dexsync.query_cache import QueryCache
from tests.fakes import API, FakeCatalogService, FakeClock, node


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def query_cache(clock: FakeClock) -> QueryCache:
    return QueryCache(clock=clock)


@pytest.fixture()
def service() -> FakeCatalogService:
    """Ten-entry catalog with the bulbasaur line wired for detail lookups."""
    fake = FakeCatalogService(total=10)
    fake.details["bulbasaur"] = DetailRecord(
        id=1,
        name="bulbasaur",
        types=[TypeSlot(type_name="grass"), TypeSlot(type_name="poison")],
        stats=[StatValue(stat_name="hp", base_value=45)],
        height=7,
        weight=69,
        base_experience=64,
    )
    fake.species["bulbasaur"] = SpeciesRecord.from_payload(
        {"name": "bulbasaur", "evolution_chain": {"url": f"{API}/evolution-chain/1/"}}
    )
    fake.species["ditto"] = SpeciesRecord.from_payload({"name": "ditto", "evolution_chain": None})
    fake.chains[1] = node("bulbasaur", 1, node("ivysaur", 2, node("venusaur", 3)))
    return fake


@pytest.fixture()
async def favorite_store() -> FavoriteStore:
    async with aiosqlite.connect(":memory:") as db:
        store = FavoriteStore(db)
        await store.init_db()
        yield store
