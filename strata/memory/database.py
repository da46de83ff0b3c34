"""
SQLite database manager for strata.

Holds the single pending-plan row and the long-term memory notes.
Uses WAL mode for concurrent read safety with single-writer asyncio pattern.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

import aiosqlite

from ..config import settings
from ..exceptions import StorageError

logger = logging.getLogger(__name__)


_DDL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS pending_plans (
    id           TEXT PRIMARY KEY,
    status       TEXT NOT NULL,
    question     TEXT NOT NULL,
    context      TEXT,
    action_json  TEXT,
    updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS memories (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    content     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_memories_created ON memories(created_at);
"""


class DatabaseManager:
    """Manages the SQLite connection and schema for strata."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or settings.db_path
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Open connection and run DDL."""
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        try:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.executescript(_DDL)
            await self._conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not initialise database at {self.db_path}: {e}") from e
        logger.info("Database initialised: %s", self.db_path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    @asynccontextmanager
    async def get_connection(self) -> AsyncIterator[aiosqlite.Connection]:
        """Yield the shared connection. Callers must not close it."""
        if self._conn is None:
            raise RuntimeError("DatabaseManager not initialised — call init() first")
        yield self._conn
