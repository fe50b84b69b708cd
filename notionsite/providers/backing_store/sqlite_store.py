"""Platform-managed persistent cache backed by a local SQLite file.

Serverful platforms give each deployment a writable, persistent data
directory but no key-value service.  This backend keeps the cache envelope
in a single table and enforces the physical expiry itself, since SQLite has
no native TTL.  Uses ``aiosqlite`` for async I/O.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import aiosqlite
import structlog

from notionsite.providers.backing_store.base import EnvelopeBackingStore
from notionsite.utils.errors import BackingStoreError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_DB_PATH = Path("data/site_cache.db")

_CREATE_TABLE_SQL = """\
CREATE TABLE IF NOT EXISTS cache_entries (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    expires_at  REAL NOT NULL
);
"""

_UPSERT_SQL = """\
INSERT INTO cache_entries (key, value, expires_at)
VALUES (?, ?, ?)
ON CONFLICT(key)
DO UPDATE SET value      = excluded.value,
              expires_at = excluded.expires_at;
"""

_SELECT_SQL = "SELECT value FROM cache_entries WHERE key = ? AND expires_at > ?;"

_LIST_SQL = (
    "SELECT key FROM cache_entries "
    "WHERE key LIKE ? ESCAPE '\\' AND expires_at > ? ORDER BY key;"
)

_PURGE_SQL = "DELETE FROM cache_entries WHERE expires_at <= ?;"


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteBackingStore(EnvelopeBackingStore):
    """Durable tier persisted to a local SQLite database."""

    def __init__(self, db_path: str | Path = _DEFAULT_DB_PATH, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._db_path = Path(db_path)
        self._initialized = False

    def is_available(self) -> bool:
        return True

    def get_provider_name(self) -> str:
        return "sqlite"

    async def initialize(self) -> None:
        """Create the cache table if it doesn't exist and drop expired rows."""
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_CREATE_TABLE_SQL)
                await db.execute(_PURGE_SQL, (self._clock(),))
                await db.commit()
        except (aiosqlite.Error, OSError) as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc
        self._initialized = True
        logger.info("site_cache_db_initialized", path=str(self._db_path))

    async def _ensure_initialized(self) -> None:
        if not self._initialized:
            await self.initialize()

    async def _read(self, key: str) -> str | None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_SELECT_SQL, (key, self._clock()))
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc
        return row[0] if row else None

    async def _write(self, key: str, payload: str, expiration_seconds: int) -> None:
        await self._ensure_initialized()
        expires_at = self._clock() + expiration_seconds
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute(_UPSERT_SQL, (key, payload, expires_at))
                await db.commit()
        except aiosqlite.Error as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def _remove(self, key: str) -> None:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                await db.execute("DELETE FROM cache_entries WHERE key = ?;", (key,))
                await db.commit()
        except aiosqlite.Error as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc

    async def _keys(self, prefix: str) -> list[str]:
        await self._ensure_initialized()
        try:
            async with aiosqlite.connect(str(self._db_path)) as db:
                cursor = await db.execute(_LIST_SQL, (f"{_escape_like(prefix)}%", self._clock()))
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise BackingStoreError(str(exc), provider_name=self.get_provider_name()) from exc
        return [row[0] for row in rows]
