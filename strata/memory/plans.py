"""
Pending-plan store: the single slot that remembers an unanswered question.

A plan is written by ``await_user`` / ``external_action`` and cleared once a
later turn actually changes something. Saving always overwrites; there is
never more than one plan.

Two implementations share the same async interface:
    InMemoryPlanStore  — process-local, used in tests and ephemeral sessions
    SqlitePlanStore    — durable, one ``active`` row in ``pending_plans``
"""

import logging
from datetime import datetime, timezone

import aiosqlite

from ..exceptions import StorageError
from ..models import PendingPlan
from .database import DatabaseManager

logger = logging.getLogger(__name__)

_ACTIVE_ID = "active"


class PendingPlanStore:
    """Interface for pending-plan persistence."""

    async def get(self) -> PendingPlan | None:
        raise NotImplementedError

    async def save(
        self,
        status: str,
        question: str,
        context: str | None = None,
        action_json: str | None = None,
    ) -> PendingPlan:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError


class InMemoryPlanStore(PendingPlanStore):
    def __init__(self) -> None:
        self._plan: PendingPlan | None = None

    async def get(self) -> PendingPlan | None:
        return self._plan

    async def save(
        self,
        status: str,
        question: str,
        context: str | None = None,
        action_json: str | None = None,
    ) -> PendingPlan:
        self._plan = PendingPlan(
            status=status, question=question, context=context, action_json=action_json,
        )
        logger.debug("Pending plan saved (%s)", status)
        return self._plan

    async def clear(self) -> None:
        if self._plan is not None:
            logger.debug("Pending plan cleared")
        self._plan = None


class SqlitePlanStore(PendingPlanStore):
    """Persistent pending plan backed by the shared SQLite database."""

    def __init__(self, db: DatabaseManager) -> None:
        self._db = db

    async def get(self) -> PendingPlan | None:
        try:
            async with self._db.get_connection() as conn:
                cursor = await conn.execute(
                    "SELECT status, question, context, action_json, updated_at "
                    "FROM pending_plans WHERE id = ?",
                    (_ACTIVE_ID,),
                )
                row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not read pending plan: {e}") from e
        if row is None:
            return None
        return PendingPlan(
            status=row["status"],
            question=row["question"],
            context=row["context"],
            action_json=row["action_json"],
            updated_at=row["updated_at"],
        )

    async def save(
        self,
        status: str,
        question: str,
        context: str | None = None,
        action_json: str | None = None,
    ) -> PendingPlan:
        plan = PendingPlan(
            status=status,
            question=question,
            context=context,
            action_json=action_json,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )
        try:
            async with self._db.get_connection() as conn:
                await conn.execute(
                    """
                    INSERT INTO pending_plans (id, status, question, context, action_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        status=excluded.status,
                        question=excluded.question,
                        context=excluded.context,
                        action_json=excluded.action_json,
                        updated_at=excluded.updated_at
                    """,
                    (_ACTIVE_ID, plan.status, plan.question, plan.context, plan.action_json, plan.updated_at),
                )
                await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not save pending plan: {e}") from e
        logger.info("Saved pending plan (%s)", status)
        return plan

    async def clear(self) -> None:
        try:
            async with self._db.get_connection() as conn:
                await conn.execute("DELETE FROM pending_plans WHERE id = ?", (_ACTIVE_ID,))
                await conn.commit()
        except aiosqlite.Error as e:
            raise StorageError(f"Could not clear pending plan: {e}") from e
        logger.info("Cleared pending plan")
