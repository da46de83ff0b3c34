"""Task (reminder) action executors."""

from __future__ import annotations

import logging
from datetime import datetime, time
from typing import TYPE_CHECKING

from ...actions.schema import AddTask, DeleteTask, UpdateTask
from ...constants import ERROR_MESSAGES
from ...models import TaskItem
from ..resolver import find_task_candidates, is_bulk_delete_intent, prefers_missing_notes
from ..timewindow import at_minutes, format_minutes, parse_date, parse_time

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)


def _not_ready(dispatcher: ExecutionDispatcher, turn: TurnContext, no_token_message: str) -> bool:
    if dispatcher.tasks is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return True
    if not turn.access_token:
        turn.reply(no_token_message)
        return True
    return False


def _as_time(minutes: int | None) -> time | None:
    if minutes is None:
        return None
    return time(minutes // 60, minutes % 60)


def _due_suffix(due: datetime | None, has_time: bool) -> str:
    if due is None:
        return ""
    if has_time:
        return f" (due {due.date()} at {due.strftime('%H:%M')})"
    return f" (due {due.date()})"


def _quoted(tasks: list[TaskItem]) -> str:
    return ", ".join(f"'{t.title}'" for t in tasks)


async def exec_add_task(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: AddTask
) -> None:
    context = f"add_task#{idx}"
    title = data.title.strip()
    if not title:
        turn.reply("I need a title before I can add that task.")
        return

    due_day = parse_date(data.due_date)
    if data.due_date and due_day is None:
        turn.reply(f"The due date for '{title}' looked invalid. Could you confirm it?")
        return
    due_minutes = parse_time(data.due_time) if data.due_time else None
    if data.due_time and due_minutes is None:
        turn.reply(f"The due time for '{title}' looked invalid. Could you confirm it?")
        return
    if due_minutes is not None and due_day is None:
        turn.reply(f"I need a due date to go with that time for '{title}'.")
        return

    if _not_ready(dispatcher, turn, f"I need you to reconnect Google before I can add '{title}'."):
        return

    has_time = due_minutes is not None
    due = at_minutes(due_day, due_minutes or 0) if due_day else None
    token = turn.access_token
    created = await dispatcher.mutate(
        context,
        lambda key: dispatcher.tasks.create_task(
            token, title, notes=data.notes, due=due, due_has_time=has_time, idempotency_key=key,
        ),
    )
    if not created.ok:
        turn.reply(
            f"I tried to add '{title}' but Google Tasks returned an error "
            f"({created.error_message()}). Want me to retry?"
        )
        return

    tasks = await dispatcher.load_tasks(turn, force=True)
    verified = next((t for t in tasks or [] if t.id == created.value), None)
    if verified is None or verified.title != title:
        logger.warning("[%s] created %s but it is not in the task list", context, created.value)
        turn.reply(f"I attempted to add '{title}', but I couldn't confirm it in Google Tasks. Should I try again?")
        return

    turn.tasks_mutated = True
    turn.reply(f"Added '{title}' to your tasks{_due_suffix(due, has_time)}.")


def _update_confirmed(
    found: TaskItem | None,
    data: UpdateTask,
    title: str | None,
    notes: str | None,
    due: datetime | None,
    due_has_time: bool,
) -> bool:
    if data.completed:
        # Completed tasks drop out of the open list.
        return found is None or found.completed
    if found is None:
        return False
    if title is not None and found.title != title:
        return False
    if notes is not None and (found.notes or "") != notes:
        return False
    if due is not None:
        if found.due is None or found.due.date() != due.date():
            return False
        if due_has_time and found.due != due:
            return False
    if data.completed is False and found.completed:
        return False
    return True


async def exec_update_task(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: UpdateTask
) -> None:
    context = f"update_task#{idx}"
    if _not_ready(dispatcher, turn, "I need Google access before I can update that task."):
        return
    if not data.task_id and not (data.match_title or "").strip():
        turn.reply("Which task should I update? Share its title and I'll take care of it.")
        return

    match_day = parse_date(data.match_due_date)
    match_time = _as_time(parse_time(data.match_due_time)) if data.match_due_time else None

    tasks = await dispatcher.load_tasks(turn)
    if tasks is None:
        turn.reply("I couldn't load your tasks just now. Want me to try again?")
        return

    candidates = find_task_candidates(
        tasks, data.task_id, data.match_title, match_day, match_time,
        prefers_missing_notes(data.assumptions, data.match_title),
    )
    if not candidates:
        label = data.match_title or data.task_id
        turn.reply(f"I couldn't find a task matching '{label}'. Could you double-check the title?")
        return
    target = candidates[0]
    if len(candidates) > 1:
        logger.info("[%s] %d candidates; picked %s (%s)", context, len(candidates), target.id, target.title)

    new_day = parse_date(data.new_due_date)
    if data.new_due_date and new_day is None:
        turn.reply(f"The new due date for '{target.title}' looked invalid. Could you confirm it?")
        return
    new_minutes = parse_time(data.new_due_time) if data.new_due_time else None
    if data.new_due_time and new_minutes is None:
        turn.reply(f"The new due time for '{target.title}' looked invalid. Could you confirm it?")
        return

    due = None
    due_has_time = new_minutes is not None
    if new_day is not None:
        due = at_minutes(new_day, new_minutes or 0)
    elif new_minutes is not None:
        if target.due is None:
            turn.reply(f"'{target.title}' has no due date yet, so I need a date to go with that time.")
            return
        due = at_minutes(target.due.date(), new_minutes)

    new_title = (data.new_title or "").strip() or None
    new_notes = data.new_notes.strip() if data.new_notes is not None else None
    if new_title is None and new_notes is None and due is None and data.completed is None:
        turn.reply(f"I didn't see anything to change for '{target.title}'.")
        return

    token = turn.access_token
    patched = await dispatcher.mutate(
        context,
        lambda key: dispatcher.tasks.push_task_changes(
            token, target.id,
            title=new_title, notes=new_notes, due=due, due_has_time=due_has_time,
            completed=data.completed, idempotency_key=key,
        ),
    )
    if not patched.ok:
        turn.reply(f"I couldn't update '{target.title}': {patched.error_message()}. Want me to try again?")
        return

    refreshed = await dispatcher.load_tasks(turn, force=True)
    found = next((t for t in refreshed or [] if t.id == target.id), None)
    if refreshed is None or not _update_confirmed(found, data, new_title, new_notes, due, due_has_time):
        logger.warning("[%s] post-update check failed for %s", context, target.id)
        turn.reply(f"I updated '{target.title}', but couldn't confirm the change in Google Tasks. Could you take a look?")
        return

    turn.tasks_mutated = True
    final_title = new_title or target.title
    if data.completed:
        turn.reply(f"Marked '{final_title}' as done.")
    elif due is not None:
        turn.reply(f"Updated '{final_title}'{_due_suffix(due, due_has_time)}.")
    else:
        turn.reply(f"Updated '{final_title}'.")


async def exec_delete_task(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: DeleteTask
) -> None:
    """
    Resolve → confirm through the task bridge → delete each → re-fetch.

    Bulk deletion needs the explicit ``delete_all`` flag or a request that
    clearly means every task; either way the user confirms the full list.
    """
    context = f"delete_task#{idx}"
    if _not_ready(dispatcher, turn, "I need Google access before I can delete that task."):
        return

    tasks = await dispatcher.load_tasks(turn)
    if tasks is None:
        turn.reply("I couldn't load your tasks just now. Want me to try again?")
        return
    if not tasks:
        turn.reply("You don't have any open tasks to delete.")
        return

    delete_all = bool(data.delete_all) or is_bulk_delete_intent(
        data.match_title, data.assumptions, domain="tasks",
    )
    match_day = parse_date(data.match_due_date)
    match_minutes = parse_time(data.match_due_time) if data.match_due_time else None
    prefer_blank = prefers_missing_notes(data.assumptions, data.match_title)

    if delete_all:
        candidates = find_task_candidates(tasks, prefer_missing_notes=prefer_blank)
        reason = f"Delete all {len(candidates)} of your open tasks?"
    else:
        if not data.task_id and not (data.match_title or "").strip():
            turn.reply("Which task should I delete? Share its title and I'll take care of it.")
            return
        candidates = find_task_candidates(
            tasks, data.task_id, data.match_title, match_day, _as_time(match_minutes), prefer_blank,
        )
        if len(candidates) == 1:
            reason = f"Delete '{candidates[0].title}'?"
        else:
            reason = f"I found {len(candidates)} tasks matching '{data.match_title}'. Delete them?"

    if not candidates:
        label = data.match_title or data.task_id
        turn.reply(f"I couldn't find a task matching '{label}'. Could you double-check the title?")
        return
    if match_minutes is not None:
        reason += f" (due at {format_minutes(match_minutes)})"

    confirmed = await dispatcher.task_bridge.request_delete(candidates, reason)
    if not confirmed:
        logger.info("[%s] deletion of %d task(s) not confirmed", context, len(candidates))
        turn.reply(
            "I highlighted the reminders I found - let me know if you'd still like me to delete them."
        )
        return

    token = turn.access_token
    deleted: list[TaskItem] = []
    failed: list[TaskItem] = []
    for task in candidates:
        result = await dispatcher.mutate(
            f"{context}/{task.id}",
            lambda key, task_id=task.id: dispatcher.tasks.delete_task(token, task_id, idempotency_key=key),
        )
        if result.ok:
            deleted.append(task)
        else:
            logger.warning("[%s] delete %s failed: %s", context, task.id, result.error_message())
            failed.append(task)

    refreshed = await dispatcher.load_tasks(turn, force=True)
    if refreshed is None:
        turn.reply("I sent the deletion, but couldn't confirm it in Google Tasks. Could you take a look?")
        return
    remaining_ids = {t.id for t in refreshed}
    lingering = [t for t in deleted if t.id in remaining_ids]
    gone = [t for t in deleted if t.id not in remaining_ids]
    if gone:
        turn.tasks_mutated = True

    if gone and not lingering and not failed:
        if len(gone) == 1:
            turn.reply(f"Deleted '{gone[0].title}'.")
        else:
            turn.reply(f"Deleted {len(gone)} tasks: {_quoted(gone)}.")
        return

    parts = []
    if gone:
        parts.append(f"Deleted {_quoted(gone)}.")
    if failed:
        parts.append(f"I couldn't delete {_quoted(failed)}.")
    if lingering:
        parts.append(f"{_quoted(lingering)} still show up in Google Tasks.")
    parts.append("Want me to try again?")
    turn.reply(" ".join(parts))
