"""SQLite favorites store.

Unlike the query cache, this store is the source of truth for favorites, so
failures are not degraded away: ``aiosqlite.Error`` on a read raises
FAVORITE_READ_FAILED and on a write raises FAVORITE_WRITE_FAILED. Writes are
not retried.

All writes on the shared connection are serialised by an asyncio.Lock, and the
toggle runs its read and write inside one ``BEGIN IMMEDIATE`` transaction, so
a toggle cannot interleave with another write.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import aiosqlite
import structlog

from dexsync.errors import DexSyncError, ErrorCode
from dexsync.models.favorites import FavoriteRecord

log = structlog.get_logger()

_CREATE_FAVORITES_TABLE = """
CREATE TABLE IF NOT EXISTS favorites (
    pokemon_id INTEGER PRIMARY KEY,
    name       TEXT NOT NULL,
    image_url  TEXT,
    created_at TEXT NOT NULL
)
"""

_CREATE_FAVORITES_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_favorites_created ON favorites(created_at)"
)

_INSERT_FAVORITE = (
    "INSERT OR REPLACE INTO favorites (pokemon_id, name, image_url, created_at) "
    "VALUES (?, ?, ?, ?)"
)


def _read_error(operation: str) -> DexSyncError:
    return DexSyncError(
        code=ErrorCode.FAVORITE_READ_FAILED,
        message=f"Could not read favorites ({operation})",
        suggestion="The local favorites database may be unavailable. Try again.",
        recoverable=True,
    )


def _write_error(operation: str, pokemon_id: int) -> DexSyncError:
    return DexSyncError(
        code=ErrorCode.FAVORITE_WRITE_FAILED,
        message=f"Could not {operation} favorite {pokemon_id}",
        suggestion="The change was not saved. Refresh favorites and try again.",
        recoverable=True,
    )


class FavoriteStore:
    """SQLite-backed favorites collection implementing FavoriteStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._write_lock = asyncio.Lock()

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_FAVORITES_TABLE)
        await self._db.execute(_CREATE_FAVORITES_INDEX)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_all_favorites(self) -> list[FavoriteRecord]:
        """All favorites, most recently added first."""
        try:
            cursor = await self._db.execute(
                "SELECT pokemon_id, name, image_url, created_at FROM favorites "
                "ORDER BY created_at DESC, pokemon_id DESC"
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            log.warning("favorites_read_error", operation="get_all", exc_info=True)
            raise _read_error("get_all") from exc

        return [
            FavoriteRecord(
                pokemon_id=row[0],
                name=row[1],
                image_url=row[2],
                created_at=datetime.fromisoformat(row[3]),
            )
            for row in rows
        ]

    async def is_favorite(self, pokemon_id: int) -> bool:
        try:
            cursor = await self._db.execute(
                "SELECT 1 FROM favorites WHERE pokemon_id = ?", (pokemon_id,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            log.warning("favorites_read_error", operation="is_favorite", exc_info=True)
            raise _read_error("is_favorite") from exc
        return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def add_favorite(
        self, pokemon_id: int, name: str, image_url: str | None = None
    ) -> None:
        """Insert or refresh a favorite. Idempotent."""
        async with self._write_lock:
            try:
                await self._db.execute(
                    _INSERT_FAVORITE,
                    (pokemon_id, name, image_url, datetime.now(UTC).isoformat()),
                )
                await self._db.commit()
            except aiosqlite.Error as exc:
                await self._rollback()
                log.warning("favorites_write_error", operation="add", exc_info=True)
                raise _write_error("add", pokemon_id) from exc

    async def remove_favorite(self, pokemon_id: int) -> None:
        """Delete a favorite. Removing an absent id is a no-op."""
        async with self._write_lock:
            try:
                await self._db.execute("DELETE FROM favorites WHERE pokemon_id = ?", (pokemon_id,))
                await self._db.commit()
            except aiosqlite.Error as exc:
                await self._rollback()
                log.warning("favorites_write_error", operation="remove", exc_info=True)
                raise _write_error("remove", pokemon_id) from exc

    async def toggle_favorite(
        self, pokemon_id: int, name: str, image_url: str | None = None
    ) -> bool:
        """Flip the favorite state of ``pokemon_id`` atomically.

        Returns the new state (True if it is now a favorite).
        """
        async with self._write_lock:
            try:
                await self._db.execute("BEGIN IMMEDIATE")
                cursor = await self._db.execute(
                    "SELECT 1 FROM favorites WHERE pokemon_id = ?", (pokemon_id,)
                )
                exists = await cursor.fetchone() is not None
                if exists:
                    await self._db.execute(
                        "DELETE FROM favorites WHERE pokemon_id = ?", (pokemon_id,)
                    )
                else:
                    await self._db.execute(
                        _INSERT_FAVORITE,
                        (pokemon_id, name, image_url, datetime.now(UTC).isoformat()),
                    )
                await self._db.commit()
            except aiosqlite.Error as exc:
                await self._rollback()
                log.warning("favorites_write_error", operation="toggle", exc_info=True)
                raise _write_error("toggle", pokemon_id) from exc
        return not exists

    async def _rollback(self) -> None:
        try:
            await self._db.rollback()
        except aiosqlite.Error:
            log.warning("favorites_rollback_error", exc_info=True)
