"""Integration test fixtures.

Provides a fully wired AppState around the real PokeApiClient (HTTP mocked
with respx in the tests) and an in-memory favorites database.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from dexsync.client import PokeApiClient
from dexsync.config import Settings
from dexsync.favorites_store import FavoriteStore
from dexsync.state import build_app_state
from tests.fakes import API

if TYPE_CHECKING:
    from pathlib import Path

    from dexsync.state import AppState


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Overrides any local dexsync.yaml by forcing stdio transport, pointing the
    favorites database at an isolated tmp directory, and aiming the API client
    at a closed port so no test reaches the network.
    """
    env = os.environ.copy()
    env["DEXSYNC__SERVER__TRANSPORT"] = "stdio"
    env["DEXSYNC__FAVORITES__DB_PATH"] = str(tmp_path / "favorites.db")
    env["DEXSYNC__API__BASE_URL"] = "http://127.0.0.1:1/api/v2"
    env["DEXSYNC__API__TIMEOUT_SECONDS"] = "2"
    return env


@pytest.fixture()
async def app_state() -> AppState:
    """Full AppState wired to PokeApiClient and an in-memory favorites store."""
    async with aiosqlite.connect(":memory:") as db:
        store = FavoriteStore(db)
        await store.init_db()

        async with httpx.AsyncClient() as client:
            state = build_app_state(
                Settings(),
                PokeApiClient(client, API),
                store,
                http_client=client,
            )
            yield state
            state.browser.close()
            state.query_cache.clear()
