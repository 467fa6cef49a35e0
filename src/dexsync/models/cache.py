from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from pydantic_core import to_jsonable_python

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from dexsync.errors import DexSyncError

T = TypeVar("T")

QueryKey = tuple[Any, ...]


class CacheState(StrEnum):
    PENDING = "pending"
    FRESH = "fresh"
    STALE = "stale"
    ERRORED = "errored"


@dataclass(frozen=True)
class QueryPolicy:
    """Timing policy for one query category (seconds)."""

    stale_seconds: float = 0
    eviction_seconds: float = 5 * 60


@dataclass
class CacheEntry:
    """Coordinator-owned state for one query key.

    ``fetched_at`` and ``idle_since`` are readings of the coordinator's clock.
    ``data`` survives a failed refetch so stale values stay servable.
    """

    key: QueryKey
    policy: QueryPolicy
    data: Any = None
    has_data: bool = False
    error: DexSyncError | None = None
    fetched_at: float | None = None
    invalidated: bool = False
    subscribers: int = 0
    idle_since: float | None = None
    # Bumped by every invalidation; a fetch started before the bump stays invalidated
    generation: int = 0
    task: asyncio.Task | None = field(default=None, repr=False)
    fetcher: Callable[[], Awaitable[Any]] | None = field(default=None, repr=False)

    @property
    def in_flight(self) -> bool:
        return self.task is not None and not self.task.done()

    def state(self, now: float) -> CacheState:
        if self.in_flight and not self.has_data:
            return CacheState.PENDING
        if self.error is not None and not self.has_data:
            return CacheState.ERRORED
        if not self.has_data:
            return CacheState.PENDING
        if self.is_stale(now):
            return CacheState.STALE
        return CacheState.FRESH

    def is_stale(self, now: float) -> bool:
        if not self.has_data or self.fetched_at is None:
            return True
        if self.invalidated:
            return True
        return now - self.fetched_at >= self.policy.stale_seconds


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Consumer-facing snapshot of a query: ``{data, is_loading, error}``."""

    data: T | None = None
    is_loading: bool = False
    is_fetching: bool = False
    error: DexSyncError | None = None
    is_stale: bool = False
    fetched_at: float | None = None

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "data": to_jsonable_python(self.data),
            "is_loading": self.is_loading,
            "is_fetching": self.is_fetching,
            "is_stale": self.is_stale,
            "error": None,
        }
        if self.error is not None:
            payload["error"] = self.error.to_dict()["error"]
        return payload
