"""Background scheduler coroutine for query cache eviction."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from dexsync.state import AppState

log = structlog.get_logger()


def _jittered_delay(base_seconds: float) -> float:
    return base_seconds * random.uniform(0.8, 1.2)


async def run_cache_eviction_scheduler(state: AppState) -> None:
    """Sweep idle query cache entries on the configured interval, forever."""
    interval_seconds = state.settings.cache.sweep_interval_seconds

    while True:
        await asyncio.sleep(_jittered_delay(interval_seconds))
        try:
            state.query_cache.collect_garbage()
        except Exception:
            log.warning("cache_eviction_scheduler_error", exc_info=True)
