"""NoteStore — long-term memory notes written by the ``remember`` action."""

from __future__ import annotations

import logging

import aiosqlite

from ..exceptions import StorageError
from ..models import MemoryNote
from .database import DatabaseManager

logger = logging.getLogger(__name__)


class NoteStore:
    """Persistent list of things the user asked to be remembered."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def list(self, limit: int = 20) -> list[MemoryNote]:
        """Most recent notes first."""
        try:
            async with self._db.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT id, content, created_at FROM memories ORDER BY id DESC LIMIT ?",
                    (limit,),
                )
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not read memory notes: {e}") from e
        return [MemoryNote(id=r["id"], content=r["content"], created_at=r["created_at"]) for r in rows]

    async def add(self, content: str) -> int:
        try:
            async with self._db.get_connection() as conn:
                cursor = await conn.execute(
                    "INSERT INTO memories (content) VALUES (?)", (content.strip(),)
                )
                await conn.commit()
                note_id = cursor.lastrowid
        except aiosqlite.Error as e:
            raise StorageError(f"Could not store memory note: {e}") from e
        logger.info("Stored memory note %d", note_id)
        return note_id

    async def clear(self) -> int:
        """Delete every note. Returns the number removed."""
        try:
            async with self._db.get_connection() as conn:
                cursor = await conn.execute("DELETE FROM memories")
                await conn.commit()
                removed = cursor.rowcount
        except aiosqlite.Error as e:
            raise StorageError(f"Could not clear memory notes: {e}") from e
        logger.info("Cleared %d memory note(s)", removed)
        return removed
