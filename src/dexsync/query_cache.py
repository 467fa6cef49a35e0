"""In-memory query cache with deduplication and stale-while-revalidate.

Every query is addressed by a tuple key ``(operation, *params)``. The cache is
the only shared mutable state of the package; entries are changed exclusively
through the methods below (write-on-completion, invalidate-on-command).

Read semantics for ``fetch``:
  - fresh hit          → cached value, no request
  - stale hit          → cached value now, refetch in the background
  - miss / errored /
    invalidated        → await a new fetch
  - fetch in flight    → cached value if servable, else await the in-flight
                         fetch (one request per key)

A failure is recorded on the failing key only; a stale value that fails to
refresh stays servable.
"""

from __future__ import annotations

import asyncio
import time
from collections import defaultdict
from typing import TYPE_CHECKING, Any, Generic, TypeVar

import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.cache import CacheEntry, QueryKey, QueryPolicy, QueryResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

log = structlog.get_logger()

T = TypeVar("T")
E = TypeVar("E")


def format_key(key: QueryKey) -> str:
    return ":".join(str(part) for part in key)


class QueryCache:
    """Keyed query cache. One instance per process, shared by all components."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._rules: dict[type, list[Callable[[Any], Iterable[QueryKey]]]] = defaultdict(list)
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def get_entry(self, key: QueryKey) -> CacheEntry | None:
        return self._entries.get(key)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[T]],
        policy: QueryPolicy | None = None,
    ) -> T:
        """Return the value for ``key``, fetching it if needed.

        Raises the fetcher's DexSyncError when there is no servable value.
        """
        entry = self._entry_for(key, policy)
        if entry.subscribers == 0:
            entry.idle_since = self._clock()

        if entry.has_data and not entry.invalidated:
            if entry.in_flight:
                # A refresh is already running; keep serving the cached value
                log.debug("cache_hit", key=format_key(key), stale=True, refreshing=True)
            elif entry.is_stale(self._clock()):
                log.info("cache_hit", key=format_key(key), stale=True)
                self._start_fetch(entry, fetcher, background=True)
            else:
                log.debug("cache_hit", key=format_key(key), stale=False)
            return entry.data

        if entry.in_flight:
            log.debug("query_deduplicated", key=format_key(key))
            return await self._await_task(entry)

        log.info("cache_miss_fetching", key=format_key(key), invalidated=entry.invalidated)
        self._start_fetch(entry, fetcher)
        return await self._await_task(entry)

    def peek(self, key: QueryKey) -> QueryResult:
        """Snapshot of ``key`` without triggering any fetch."""
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult()
        return QueryResult(
            data=entry.data if entry.has_data else None,
            is_loading=entry.in_flight and not entry.has_data,
            is_fetching=entry.in_flight,
            error=entry.error,
            is_stale=entry.has_data and entry.is_stale(self._clock()),
            fetched_at=entry.fetched_at,
        )

    def subscribe(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[T]],
        policy: QueryPolicy | None = None,
    ) -> QuerySubscription[T]:
        """Register an observer of ``key``.

        Starts a fetch when the entry is missing, stale or invalidated. An
        entry with at least one subscriber is never evicted.
        """
        entry = self._entry_for(key, policy)
        entry.subscribers += 1
        entry.idle_since = None

        if not entry.in_flight and entry.is_stale(self._clock()):
            self._start_fetch(entry, fetcher, background=entry.has_data)

        return QuerySubscription(self, key, fetcher, entry.policy)

    def _release(self, key: QueryKey) -> None:
        entry = self._entries.get(key)
        if entry is None or entry.subscribers == 0:
            return
        entry.subscribers -= 1
        if entry.subscribers == 0:
            entry.idle_since = self._clock()

    async def _settle(
        self,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[T]],
        policy: QueryPolicy,
    ) -> T:
        entry = self._entries.get(key)
        if entry is not None:
            if entry.in_flight:
                return await self._await_task(entry)
            if entry.has_data:
                return entry.data
            if entry.error is not None:
                raise entry.error
        return await self.fetch(key, fetcher, policy)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, key: QueryKey) -> bool:
        """Force the next read of ``key`` to refetch regardless of age.

        Entries with active subscribers are refetched immediately. Returns
        False if the key is not cached.
        """
        entry = self._entries.get(key)
        if entry is None:
            return False
        entry.invalidated = True
        entry.generation += 1
        log.info("cache_invalidated", key=format_key(key), subscribers=entry.subscribers)
        if entry.subscribers > 0 and not entry.in_flight and entry.fetcher is not None:
            self._start_fetch(entry, entry.fetcher, background=True)
        return True

    def invalidate_prefix(self, prefix: QueryKey) -> list[QueryKey]:
        """Invalidate every cached key starting with ``prefix``."""
        keys = [key for key in self._entries if key[: len(prefix)] == prefix]
        for key in keys:
            self.invalidate(key)
        return keys

    def on(self, event_type: type[E], keys_for: Callable[[E], Iterable[QueryKey]]) -> None:
        """Register a rule: publishing ``event_type`` invalidates ``keys_for(event)``."""
        self._rules[event_type].append(keys_for)

    def publish(self, event: object) -> list[QueryKey]:
        """Apply every invalidation rule registered for the event's type."""
        invalidated: list[QueryKey] = []
        for event_type, rules in self._rules.items():
            if not isinstance(event, event_type):
                continue
            for keys_for in rules:
                for key in keys_for(event):
                    if self.invalidate(key):
                        invalidated.append(key)
        log.debug(
            "event_published",
            event=type(event).__name__,
            invalidated=[format_key(k) for k in invalidated],
        )
        return invalidated

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def collect_garbage(self) -> int:
        """Evict entries that have had no subscriber for their eviction window.

        In-flight entries are kept. Returns the number of evicted entries.
        """
        now = self._clock()
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.subscribers == 0
            and not entry.in_flight
            and entry.idle_since is not None
            and now - entry.idle_since >= entry.policy.eviction_seconds
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            log.info("cache_eviction_complete", evicted=len(expired), remaining=len(self._entries))
        return len(expired)

    def clear(self) -> None:
        for entry in self._entries.values():
            if entry.in_flight and entry.task is not None:
                entry.task.cancel()
        self._entries.clear()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _entry_for(self, key: QueryKey, policy: QueryPolicy | None) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = CacheEntry(key=key, policy=policy or QueryPolicy(), idle_since=self._clock())
            self._entries[key] = entry
        elif policy is not None:
            entry.policy = policy
        return entry

    def _start_fetch(
        self,
        entry: CacheEntry,
        fetcher: Callable[[], Awaitable[Any]],
        *,
        background: bool = False,
    ) -> asyncio.Task:
        entry.fetcher = fetcher
        task = asyncio.create_task(self._run(entry, fetcher, entry.generation))
        task.add_done_callback(lambda t: self._on_done(entry, t, background))
        entry.task = task
        return task

    async def _run(
        self,
        entry: CacheEntry,
        fetcher: Callable[[], Awaitable[Any]],
        generation: int,
    ) -> Any:
        log.debug("query_fetch_started", key=format_key(entry.key))
        try:
            value = await fetcher()
        except DexSyncError as exc:
            entry.error = exc
            log.warning(
                "query_fetch_failed",
                key=format_key(entry.key),
                code=exc.code,
                recoverable=exc.recoverable,
            )
            raise
        except Exception as exc:
            wrapped = DexSyncError(
                code=ErrorCode.QUERY_FAILED,
                message=f"Query {format_key(entry.key)} failed: {exc}",
                suggestion="Retry the request. If it keeps failing, report the error.",
                recoverable=True,
            )
            entry.error = wrapped
            log.error("query_fetch_failed", key=format_key(entry.key), exc_info=exc)
            raise wrapped from exc

        entry.data = value
        entry.has_data = True
        entry.error = None
        entry.fetched_at = self._clock()
        # An invalidation that landed while this fetch was in flight still stands
        entry.invalidated = entry.generation != generation
        if entry.subscribers == 0:
            entry.idle_since = self._clock()
        log.debug("query_fetch_complete", key=format_key(entry.key))
        return value

    def _on_done(self, entry: CacheEntry, task: asyncio.Task, background: bool) -> None:
        if task.cancelled():
            return
        # Retrieve the exception so a fetch nobody awaited is not reported as lost
        exc = task.exception()
        if exc is None:
            # Invalidated while in flight: observers must not keep the outdated value
            if (
                entry.invalidated
                and entry.subscribers > 0
                and not entry.in_flight
                and entry.fetcher is not None
                and self._entries.get(entry.key) is entry
            ):
                log.info("query_refetch_after_invalidation", key=format_key(entry.key))
                self._start_fetch(entry, entry.fetcher, background=True)
            return
        if not background:
            return
        if isinstance(exc, DexSyncError):
            log.warning("stale_refresh_failed", key=format_key(entry.key), code=exc.code)
        else:
            log.error("stale_refresh_failed", key=format_key(entry.key), exc_info=exc)

    @staticmethod
    async def _await_task(entry: CacheEntry) -> Any:
        assert entry.task is not None
        # Shielded: a cancelled caller does not cancel the shared fetch,
        # whose result is still cached when it arrives.
        return await asyncio.shield(entry.task)


class QuerySubscription(Generic[T]):
    """An observer's handle on one query key.

    ``result`` is the observer's view. After ``close()`` the view no longer
    reports loading, independent of whether the underlying fetch finished.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: QueryKey,
        fetcher: Callable[[], Awaitable[T]],
        policy: QueryPolicy,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._policy = policy
        self.key = key
        self.closed = False

    @property
    def result(self) -> QueryResult[T]:
        snapshot = self._cache.peek(self.key)
        if self.closed:
            return QueryResult(
                data=snapshot.data,
                error=snapshot.error,
                is_stale=snapshot.is_stale,
                fetched_at=snapshot.fetched_at,
            )
        return snapshot

    async def wait(self) -> T:
        """Wait for the current fetch (if any) and return the value or raise its error."""
        return await self._cache._settle(self.key, self._fetcher, self._policy)

    async def refetch(self) -> T:
        """Re-trigger the query, e.g. to retry after a failure."""
        self._cache.invalidate(self.key)
        return await self._cache.fetch(self.key, self._fetcher, self._policy)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._cache._release(self.key)

    def __enter__(self) -> QuerySubscription[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
