"""Shared fixtures and in-memory collaborators for strata tests."""

import itertools
from datetime import date, datetime, time

import pytest
import pytest_asyncio

from strata.config import reset_settings
from strata.exceptions import RemoteServiceError
from strata.memory.plans import InMemoryPlanStore
from strata.models import CalendarEvent, MemoryNote, Result, TaskItem, WebSearchResult

TODAY = date(2026, 3, 2)
NOW = datetime(2026, 3, 2, 9, 0)


@pytest.fixture(autouse=True)
def isolate_env(monkeypatch, tmp_path):
    """Prevent tests from reading real .env or touching real data."""
    monkeypatch.setenv("STRATA_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("STRATA_ANTHROPIC_API_KEY", "test_key")
    monkeypatch.setenv("STRATA_TIMEZONE", "UTC")
    reset_settings()
    yield
    reset_settings()


# ── Fake collaborators ──────────────────────────────────────────────────────────


class FakeCalendar:
    """Calendar backend holding events in a dict; knobs simulate remote misbehaviour."""

    def __init__(self, events=None):
        self.events: dict[str, CalendarEvent] = {e.id: e for e in events or []}
        self.create_errors: list[Exception] = []
        self.hide_writes = False
        self.ignore_updates = False
        self.ignore_deletes = False
        self.create_calls: list[dict] = []
        self.update_calls: list[dict] = []
        self.delete_calls: list[dict] = []
        self._ids = itertools.count(1)

    def add(self, event_id, title, start, end):
        self.events[event_id] = CalendarEvent(id=event_id, title=title, start=start, end=end)

    async def list_events(self, token, start, end, title_filter=None):
        found = [
            e for e in self.events.values()
            if start <= e.start < end
            and (not title_filter or title_filter.lower() in e.title.lower())
        ]
        return Result.success(sorted(found, key=lambda e: e.start))

    async def create_event(self, token, title, start, end, location=None, notes=None, idempotency_key=None):
        self.create_calls.append({"title": title, "start": start, "end": end, "key": idempotency_key})
        if self.create_errors:
            return Result.failure(self.create_errors.pop(0))
        event_id = idempotency_key or f"evt{next(self._ids)}"
        if not self.hide_writes:
            self.events[event_id] = CalendarEvent(
                id=event_id, title=title, start=start, end=end, location=location, notes=notes,
            )
        return Result.success(event_id)

    async def update_event(self, token, event_id, new_start=None, new_end=None,
                           new_title=None, new_location=None, new_notes=None):
        self.update_calls.append({
            "id": event_id, "start": new_start, "end": new_end, "title": new_title,
        })
        current = self.events.get(event_id)
        if current is None:
            return Result.failure(RemoteServiceError("not found", status_code=404))
        if self.ignore_updates:
            return Result.success(current)
        changes = {}
        if new_start is not None:
            changes["start"] = new_start
        if new_end is not None:
            changes["end"] = new_end
        if new_title is not None:
            changes["title"] = new_title
        if new_location is not None:
            changes["location"] = new_location
        if new_notes is not None:
            changes["notes"] = new_notes
        updated = current.model_copy(update=changes)
        self.events[event_id] = updated
        return Result.success(updated)

    async def delete_event_by_id(self, token, event_id):
        self.delete_calls.append({"id": event_id})
        if not self.ignore_deletes:
            self.events.pop(event_id, None)
        return Result.success(None)

    async def delete_events_in_range(self, token, start, end, title_filter=None, start_time_filter=None):
        self.delete_calls.append({
            "start": start, "end": end, "title": title_filter, "start_time": start_time_filter,
        })
        doomed = [
            e.id for e in self.events.values()
            if start <= e.start < end
            and (not title_filter or title_filter.lower() in e.title.lower())
            and (start_time_filter is None or e.start.time() == start_time_filter)
        ]
        if not self.ignore_deletes:
            for event_id in doomed:
                del self.events[event_id]
        return Result.success(len(doomed))


class FakeTasks:
    def __init__(self, tasks=None):
        self.tasks: dict[str, TaskItem] = {t.id: t for t in tasks or []}
        self.hide_writes = False
        self.fetch_error: Exception | None = None
        self.delete_calls: list[str] = []
        self.patch_calls: list[dict] = []
        self.create_calls: list[dict] = []
        self._ids = itertools.count(1)

    async def fetch_top_tasks(self, token):
        if self.fetch_error is not None:
            return Result.failure(self.fetch_error)
        return Result.success([t for t in self.tasks.values() if not t.completed])

    async def create_task(self, token, title, notes=None, due=None, due_has_time=False, idempotency_key=None):
        self.create_calls.append({"title": title, "notes": notes, "due": due, "due_has_time": due_has_time})
        task_id = f"task{next(self._ids)}"
        if not self.hide_writes:
            self.tasks[task_id] = TaskItem(
                id=task_id, title=title, notes=notes, due=due, due_has_time=due_has_time,
            )
        return Result.success(task_id)

    async def push_task_changes(self, token, task_id, title=None, notes=None, due=None,
                                due_has_time=False, completed=None, idempotency_key=None):
        self.patch_calls.append({
            "id": task_id, "title": title, "notes": notes, "due": due, "completed": completed,
        })
        current = self.tasks.get(task_id)
        if current is None:
            return Result.failure(RemoteServiceError("not found", status_code=404))
        changes = {}
        if title is not None:
            changes["title"] = title
        if notes is not None:
            changes["notes"] = notes
        if due is not None:
            changes["due"] = due
            changes["due_has_time"] = due_has_time
        if completed is not None:
            changes["completed"] = completed
        updated = current.model_copy(update=changes)
        if not self.hide_writes:
            self.tasks[task_id] = updated
        return Result.success(updated)

    async def delete_task(self, token, task_id, idempotency_key=None):
        self.delete_calls.append(task_id)
        if not self.hide_writes:
            self.tasks.pop(task_id, None)
        return Result.success(None)


class FakeMail:
    def __init__(self):
        self.sent: list[dict] = []
        self.send_errors: list[Exception] = []
        self.lose_messages = False
        self._ids = itertools.count(1)

    async def send_email(self, token, to, subject, body, idempotency_key=None):
        if self.send_errors:
            return Result.failure(self.send_errors.pop(0))
        message_id = f"msg{next(self._ids)}"
        self.sent.append({"id": message_id, "to": to, "subject": subject, "body": body, "key": idempotency_key})
        return Result.success(message_id)

    async def get_message(self, token, message_id):
        if self.lose_messages:
            return Result.failure(RemoteServiceError("not found", status_code=404))
        for message in self.sent:
            if message["id"] == message_id:
                return Result.success({"id": message_id, "to": message["to"], "subject": message["subject"]})
        return Result.failure(RemoteServiceError("not found", status_code=404))


class FakeWeb:
    def __init__(self):
        self.searches: list[tuple[str, int]] = []
        self.fetches: list[tuple[str, int]] = []

    async def search(self, query, limit=3):
        self.searches.append((query, limit))
        return Result.success([
            WebSearchResult(title=f"Result {i}", url=f"https://example.com/{i}", snippet="snippet")
            for i in range(1, limit + 1)
        ])

    async def fetch(self, url, max_chars=2000):
        self.fetches.append((url, max_chars))
        return Result.success("Example page text")


class FakeNotes:
    def __init__(self):
        self.notes: list[str] = []

    async def list(self, limit=20):
        return [
            MemoryNote(id=i, content=c, created_at="2026-03-01T00:00:00")
            for i, c in reversed(list(enumerate(self.notes, 1)))
        ][:limit]

    async def add(self, content):
        self.notes.append(content)
        return len(self.notes)

    async def clear(self):
        removed = len(self.notes)
        self.notes.clear()
        return removed


async def no_sleep(_delay):
    return None


def at(hour, minute=0, day=TODAY):
    return datetime.combine(day, time(hour, minute))


# ── Fixtures ────────────────────────────────────────────────────────────────────


@pytest.fixture
def plan_store():
    return InMemoryPlanStore()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def tasks():
    return FakeTasks()


@pytest.fixture
def mail():
    return FakeMail()


@pytest.fixture
def web():
    return FakeWeb()


@pytest.fixture
def notes():
    return FakeNotes()


@pytest_asyncio.fixture
async def dispatcher(plan_store, calendar, tasks, mail, web, notes):
    """Dispatcher wired to the fakes with a fixed clock and instant back-off."""
    from strata.engine.dispatcher import ExecutionDispatcher

    return ExecutionDispatcher(
        plan_store,
        calendar=calendar,
        tasks=tasks,
        mail=mail,
        web=web,
        notes=notes,
        clock=lambda: NOW,
        sleep=no_sleep,
    )
