"""
Per-user session management.
Provides asyncio locks (to serialize turns) and cancellation of the in-flight turn.
"""

import asyncio
import logging

logger = logging.getLogger(__name__)


class SessionManager:
    """Per-user state for the turn boundary."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._tasks: dict[str, asyncio.Task] = {}

    def get_lock(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._locks:
            self._locks[user_id] = asyncio.Lock()
        return self._locks[user_id]

    def track(self, user_id: str, task: asyncio.Task) -> None:
        """Remember ``task`` as the user's in-flight turn until it finishes."""
        self._tasks[user_id] = task

        def _forget(done: asyncio.Task) -> None:
            if self._tasks.get(user_id) is done:
                del self._tasks[user_id]

        task.add_done_callback(_forget)

    def is_busy(self, user_id: str) -> bool:
        task = self._tasks.get(user_id)
        return task is not None and not task.done()

    def cancel(self, user_id: str) -> bool:
        """Cancel the user's in-flight turn. Returns False when nothing was running."""
        task = self._tasks.get(user_id)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Cancel requested for user %s", user_id)
        return True
