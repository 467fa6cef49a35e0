"""Tool handlers for list_favorites and toggle_favorite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.identifiers import artwork_url
from dexsync.models.tools import ToggleFavoriteInput

if TYPE_CHECKING:
    from dexsync.state import AppState


async def list_handle(state: AppState) -> dict:
    """Handle a list_favorites tool call."""
    log = structlog.get_logger().bind(tool="list_favorites")
    log.info("handler_called")

    favorites = await state.favorites.list_favorites()
    log.info("list_complete", favorite_count=len(favorites))
    return {"favorites": [record.model_dump(mode="json") for record in favorites]}


async def toggle_handle(
    pokemon_id: int,
    name: str,
    state: AppState,
    *,
    image_url: str | None = None,
    is_currently_favorite: bool | None = None,
) -> dict:
    """Handle a toggle_favorite tool call."""
    log = structlog.get_logger().bind(tool="toggle_favorite", pokemon_id=pokemon_id)
    log.info("handler_called", is_currently_favorite=is_currently_favorite)

    try:
        validated = ToggleFavoriteInput(
            pokemon_id=pokemon_id,
            name=name,
            image_url=image_url or artwork_url(pokemon_id),
            is_currently_favorite=is_currently_favorite,
        )
    except ValueError as exc:
        raise DexSyncError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a positive pokemon_id and a non-empty name.",
            recoverable=False,
        ) from exc

    is_favorite = await state.favorites.toggle_favorite(validated)
    return {"pokemon_id": validated.pokemon_id, "is_favorite": is_favorite}
