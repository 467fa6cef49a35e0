"""Tool handler for browse_catalog.

Receives AppState, drives the catalog browser (paged list or full-index
search), and returns the resulting view as a dict. No MCP or FastMCP imports;
server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.tools import SearchCatalogInput

if TYPE_CHECKING:
    from dexsync.state import AppState


async def handle(query: str, load_more: bool, state: AppState) -> dict:
    """Handle a browse_catalog tool call."""
    log = structlog.get_logger().bind(tool="browse_catalog", query=query)
    log.info("handler_called", load_more=load_more)

    try:
        validated = SearchCatalogInput(query=query)
    except ValueError as exc:
        raise DexSyncError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a search query of at most 200 characters, or an empty query.",
            recoverable=False,
        ) from exc

    browser = state.browser
    view = browser.set_query(validated.query)

    if view.mode == "paged":
        # The first call loads page 0; later calls only advance on request
        if load_more or not browser.pager.pages:
            await browser.load_more()
            view = browser.view()
    elif view.mode == "index_loading":
        view = await browser.wait_for_index()
    elif view.mode == "index_error":
        # Sending the query again retries the failed index load
        view = await browser.retry_index()

    log.info("browse_complete", mode=view.mode, entry_count=len(view.entries))
    return view.to_dict()
