"""Tool handler for get_evolutions.

Distinguishes the three outcomes a caller must tell apart: the species has no
evolution chain (success, ``status="no_evolution_data"``), the chain holds a
single form (success, ``evolves=False``), and a failed chain request (raised
as EVOLUTION_FETCH_FAILED).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.identifiers import artwork_url
from dexsync.models.tools import NameInput

if TYPE_CHECKING:
    from dexsync.state import AppState


async def handle(name: str, state: AppState) -> dict:
    """Handle a get_evolutions tool call."""
    log = structlog.get_logger().bind(tool="get_evolutions", name=name)
    log.info("handler_called")

    try:
        validated = NameInput(name=name)
    except ValueError as exc:
        raise DexSyncError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a lowercase species name such as 'eevee'.",
            recoverable=False,
        ) from exc

    lookup = await state.details.resolve_evolution_line(validated.name)

    return {
        "name": lookup.name,
        "status": lookup.status,
        "chain_id": lookup.chain_id,
        "evolves": lookup.evolves,
        "entries": [
            {**entry.model_dump(mode="json"), "image_url": artwork_url(entry.id)}
            for entry in lookup.entries
        ],
    }
