"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
import uvicorn
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import dexsync.tools.browse_catalog as t_browse
import dexsync.tools.favorites as t_favorites
import dexsync.tools.get_evolutions as t_evolutions
import dexsync.tools.get_pokemon as t_pokemon
from dexsync import __version__
from dexsync.client import PokeApiClient, build_http_client
from dexsync.config import Settings
from dexsync.errors import DexSyncError
from dexsync.favorites_store import FavoriteStore
from dexsync.schedulers import run_cache_eviction_scheduler
from dexsync.state import AppState, build_app_state

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
    )

    http_client = build_http_client(settings.api.timeout_seconds, settings.api.user_agent)
    service = PokeApiClient(http_client, settings.api.base_url)

    db_path = Path(settings.favorites.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    store = FavoriteStore(db)
    await store.init_db()

    state = build_app_state(settings, service, store, http_client=http_client)
    eviction_task = asyncio.create_task(run_cache_eviction_scheduler(state))

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        page_size=settings.catalog.page_size,
        favorites_db=str(db_path),
    )

    try:
        yield state
    finally:
        eviction_task.cancel()
        with suppress(asyncio.CancelledError):
            await eviction_task
        state.browser.close()
        state.query_cache.clear()
        await http_client.aclose()
        await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("dexsync", lifespan=lifespan)
# FastMCP has no version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: DexSyncError) -> CallToolResult:
    """Convert a DexSyncError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


async def _run_tool(tool: str, call: Awaitable[dict]) -> object:
    try:
        return await call
    except DexSyncError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise


@mcp.tool()
async def browse_catalog(ctx: Context, query: str = "", load_more: bool = False) -> object:
    """List catalog entries page by page, or search the whole catalog by name.

    With an empty query, returns the pages loaded so far; pass load_more=true
    to append the next page. With a query, returns every entry whose name
    contains it (case-insensitive) and paging is suspended.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("browse_catalog", t_browse.handle(query, load_more, state))


@mcp.tool()
async def get_pokemon(name: str, ctx: Context) -> object:
    """Fetch the full record (types, abilities, stats) for one entry by name."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("get_pokemon", t_pokemon.handle(name, state))


@mcp.tool()
async def get_evolutions(name: str, ctx: Context) -> object:
    """Fetch the evolution line of a species, base form first."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("get_evolutions", t_evolutions.handle(name, state))


@mcp.tool()
async def list_favorites(ctx: Context) -> object:
    """List favorited entries, most recently added first."""
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool("list_favorites", t_favorites.list_handle(state))


@mcp.tool()
async def toggle_favorite(
    pokemon_id: int,
    name: str,
    ctx: Context,
    image_url: str | None = None,
    is_currently_favorite: bool | None = None,
) -> object:
    """Add an entry to favorites, or remove it if it is already one.

    Pass is_currently_favorite to act on the state you last saw; omit it to
    let the store flip the current state atomically.
    """
    state: AppState = ctx.request_context.lifespan_context
    return await _run_tool(
        "toggle_favorite",
        t_favorites.toggle_handle(
            pokemon_id,
            name,
            state,
            image_url=image_url,
            is_currently_favorite=is_currently_favorite,
        ),
    )


# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------


def run_http_server(settings: Settings) -> None:
    """Start the MCP server with Streamable HTTP transport."""
    _setup_logging(settings)
    log.bind(transport="http").info(
        "http_server_starting", host=settings.server.host, port=settings.server.port
    )
    uvicorn.run(
        mcp.streamable_http_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        run_http_server(settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
