"""Tool handler for get_pokemon."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.identifiers import artwork_url
from dexsync.models.tools import NameInput

if TYPE_CHECKING:
    from dexsync.state import AppState


async def handle(name: str, state: AppState) -> dict:
    """Handle a get_pokemon tool call: detail record plus favorite state."""
    log = structlog.get_logger().bind(tool="get_pokemon", name=name)
    log.info("handler_called")

    try:
        validated = NameInput(name=name)
    except ValueError as exc:
        raise DexSyncError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a lowercase name such as 'pikachu' or 'mr-mime'.",
            recoverable=False,
        ) from exc

    detail = await state.details.fetch_detail(validated.name)
    is_favorite = await state.favorites.is_favorite(detail.id)

    return {
        **detail.model_dump(mode="json"),
        "image_url": artwork_url(detail.id),
        "is_favorite": is_favorite,
    }
