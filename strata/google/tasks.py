"""
Google Tasks API client.

The Tasks API stores only the *date* part of a due value, so due times are
kept in a small process-local map keyed by task id and re-applied on read.
"""

import logging
from datetime import date, datetime, time

from ..models import Result, TaskItem
from .base import build_service, require_token, run_google_call

logger = logging.getLogger(__name__)


def _due_to_api(due: datetime) -> str:
    return f"{due.date().isoformat()}T00:00:00.000Z"


def _due_from_api(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        logger.debug("Unparseable task due value %r", raw)
        return None


class TasksClient:
    """Wraps Google Tasks v1 calls against a single task list."""

    def __init__(self, tasklist: str = "@default", max_results: int = 100) -> None:
        self._tasklist = tasklist
        self._max_results = max_results
        self._due_times: dict[str, time] = {}

    def _to_item(self, raw: dict, list_title: str | None = None) -> TaskItem:
        task_id = raw.get("id", "")
        due_day = _due_from_api(raw.get("due"))
        due = None
        due_time = self._due_times.get(task_id)
        if due_day is not None:
            due = datetime.combine(due_day, due_time or time.min)
        return TaskItem(
            id=task_id,
            title=raw.get("title", "") or "",
            notes=raw.get("notes"),
            due=due,
            due_has_time=due is not None and due_time is not None,
            completed=raw.get("status") == "completed",
            list_title=list_title,
        )

    def _remember_due(self, task_id: str, due: datetime | None, has_time: bool) -> None:
        if due is not None and has_time:
            self._due_times[task_id] = due.time().replace(second=0, microsecond=0)
        else:
            self._due_times.pop(task_id, None)

    async def fetch_top_tasks(self, token: str | None) -> Result[list[TaskItem]]:
        """Open tasks in the list, in the order the API returns them."""
        if (missing := require_token(token)) is not None:
            return missing

        def _sync():
            return build_service("tasks", "v1", token).tasks().list(
                tasklist=self._tasklist,
                showCompleted=False,
                showHidden=False,
                maxResults=self._max_results,
            ).execute().get("items", [])

        result = await run_google_call("tasks.list", _sync)
        if not result.ok:
            return result
        return Result.success([self._to_item(raw) for raw in result.value or [] if raw.get("id")])

    async def create_task(
        self,
        token: str | None,
        title: str,
        notes: str | None = None,
        due: datetime | None = None,
        due_has_time: bool = False,
        idempotency_key: str | None = None,
    ) -> Result[str]:
        """Insert a task and return its id."""
        if (missing := require_token(token)) is not None:
            return missing

        body: dict = {"title": title}
        if notes:
            body["notes"] = notes
        if due is not None:
            body["due"] = _due_to_api(due)

        def _sync():
            return build_service("tasks", "v1", token).tasks().insert(
                tasklist=self._tasklist, body=body
            ).execute()

        result = await run_google_call("tasks.insert", _sync)
        if not result.ok:
            return result
        task_id = (result.value or {}).get("id", "")
        self._remember_due(task_id, due, due_has_time)
        logger.debug("Created task %s (key=%s)", task_id, idempotency_key)
        return Result.success(task_id)

    async def push_task_changes(
        self,
        token: str | None,
        task_id: str,
        title: str | None = None,
        notes: str | None = None,
        due: datetime | None = None,
        due_has_time: bool = False,
        completed: bool | None = None,
        idempotency_key: str | None = None,
    ) -> Result[TaskItem]:
        """Patch the given fields; untouched fields are left as they are."""
        if (missing := require_token(token)) is not None:
            return missing

        body: dict = {}
        if title is not None:
            body["title"] = title
        if notes is not None:
            body["notes"] = notes
        if due is not None:
            body["due"] = _due_to_api(due)
        if completed is not None:
            body["status"] = "completed" if completed else "needsAction"
            if not completed:
                body["completed"] = None

        def _sync():
            return build_service("tasks", "v1", token).tasks().patch(
                tasklist=self._tasklist, task=task_id, body=body
            ).execute()

        result = await run_google_call("tasks.patch", _sync)
        if not result.ok:
            return result
        if due is not None:
            self._remember_due(task_id, due, due_has_time)
        logger.debug("Patched task %s (key=%s)", task_id, idempotency_key)
        return Result.success(self._to_item(result.value or {"id": task_id}))

    async def delete_task(
        self, token: str | None, task_id: str, idempotency_key: str | None = None
    ) -> Result[None]:
        if (missing := require_token(token)) is not None:
            return missing

        def _sync():
            return build_service("tasks", "v1", token).tasks().delete(
                tasklist=self._tasklist, task=task_id
            ).execute()

        result = await run_google_call("tasks.delete", _sync)
        if result.ok or result.status_code in (404, 410):
            self._due_times.pop(task_id, None)
            return Result.success(None)
        return result
