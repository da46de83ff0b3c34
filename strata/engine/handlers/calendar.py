"""
Calendar action executors.

Every write is followed by a fresh read of the affected day(s); the user is
only told something happened once Google Calendar shows it.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import TYPE_CHECKING

from ...actions.schema import AddCalendarEvent, DeleteCalendarEvent, UpdateCalendarEvent
from ...constants import DEADLINE_KEYWORDS, ERROR_MESSAGES
from ...models import CalendarEvent
from ..resolver import MatchOutcome, choose_event, is_bulk_delete_intent
from ..timewindow import (
    at_minutes,
    canonicalize_time_value,
    canonicalize_window,
    format_range,
    parse_date,
)

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)

_DATE_IN_TEXT_RE = re.compile(r"(\d{4}-\d{2}-\d{2})")
_TIME_IN_TEXT_RE = re.compile(r"\b(\d{2}:\d{2})\b")
_EVENT_ID_IN_TEXT_RE = re.compile(r"event[_-]?id\s*[:=]\s*([A-Za-z0-9_-]+)", re.IGNORECASE)


def _days_around(*anchors: date | None) -> list[date]:
    days: set[date] = set()
    for anchor in anchors:
        if anchor is not None:
            days.update(anchor + timedelta(days=offset) for offset in (-1, 0, 1))
    return sorted(days)


def _minutes_of(value: datetime) -> int:
    return value.hour * 60 + value.minute


def _looks_like_deadline(title: str, notes: str | None) -> bool:
    haystack = f"{title} {notes or ''}".lower()
    return any(keyword in haystack for keyword in DEADLINE_KEYWORDS)


def _not_ready(dispatcher: ExecutionDispatcher, turn: TurnContext, no_token_message: str) -> bool:
    if dispatcher.calendar is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return True
    if not turn.access_token:
        turn.reply(no_token_message)
        return True
    return False


# ── add ─────────────────────────────────────────────────────────────────────────

async def _mirror_deadline_task(
    dispatcher: ExecutionDispatcher,
    turn: TurnContext,
    context: str,
    event: CalendarEvent,
    data: AddCalendarEvent,
) -> bool:
    """Create a reminder due at the event's end. Returns True once it is confirmed."""
    if dispatcher.tasks is None:
        return False

    note_lines = []
    if data.notes:
        note_lines.append(data.notes)
    if data.location:
        note_lines.append(f"Location: {data.location}")
    if data.assumptions:
        note_lines.append(f"Assumptions: {data.assumptions}")
    note_lines.append(f"Calendar event id: {event.id}")
    token = turn.access_token

    created = await dispatcher.mutate(
        f"{context}/mirror",
        lambda key: dispatcher.tasks.create_task(
            token, event.title, notes="\n".join(note_lines), due=event.end,
            due_has_time=True, idempotency_key=key,
        ),
    )
    if not created.ok:
        logger.warning("[%s] task mirror failed: %s", context, created.error_message())
        return False

    tasks = await dispatcher.load_tasks(turn, force=True)
    if not tasks or not any(t.id == created.value for t in tasks):
        logger.warning("[%s] mirrored task %s not visible after create", context, created.value)
        return False
    turn.tasks_mutated = True
    logger.info("[%s] mirrored task %s for event %s", context, created.value, event.id)
    return True


async def exec_add_calendar_event(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: AddCalendarEvent
) -> None:
    context = f"add_calendar_event#{idx}"
    title = data.title.strip() or "Untitled event"

    day = parse_date(data.date)
    if day is None:
        turn.reply(f"I couldn't schedule '{title}' because the date looked invalid. Could you confirm it?")
        return
    window = canonicalize_window(data.start_time, data.end_time, data.duration_minutes, context)
    if window is None:
        turn.reply(f"I wasn't able to parse the time window for '{title}'. Mind sharing exact start and end?")
        return
    turn.notes.extend(window.adjustments)

    if _not_ready(dispatcher, turn, f"I need you to reconnect Google before I can add '{title}' to your calendar."):
        return

    token = turn.access_token
    start = at_minutes(day, window.start_minutes)
    end = at_minutes(day, window.end_minutes)
    created = await dispatcher.mutate(
        context,
        lambda key: dispatcher.calendar.create_event(
            token, title, start, end,
            location=data.location, notes=data.notes, idempotency_key=key,
        ),
    )
    if not created.ok:
        turn.reply(
            f"I tried to schedule '{title}' but Google Calendar returned an error "
            f"({created.error_message()}). Want me to retry?"
        )
        return

    events = await dispatcher.list_events_for_day(turn, day)
    verified = None
    if events is not None:
        verified = next((e for e in events if e.id == created.value), None) or next(
            (
                e for e in events
                if e.title.strip().lower() == title.lower() and e.start == start and e.end == end
            ),
            None,
        )
    if verified is None:
        logger.warning("[%s] created %s but it is not listed on %s", context, created.value, day)
        turn.reply(
            f"I attempted to add '{title}' on {day} {format_range(start, end)}, but I couldn't "
            "confirm it in Google Calendar. Should I try again or adjust the details?"
        )
        return

    turn.calendar_mutated = True
    message = f"Scheduled '{verified.title}' on {day} {format_range(verified.start, verified.end)}."
    if _looks_like_deadline(verified.title, data.notes):
        if await _mirror_deadline_task(dispatcher, turn, context, verified, data):
            message += " I also added a reminder for it."
    else:
        logger.debug("[%s] no deadline keywords; not mirroring as a task", context)
    turn.reply(message + " Need any tweaks?")


# ── update ──────────────────────────────────────────────────────────────────────

async def _resolve_update_target(
    dispatcher: ExecutionDispatcher,
    turn: TurnContext,
    context: str,
    data: UpdateCalendarEvent,
) -> CalendarEvent | None:
    """Find the event to update, escalating ties to the calendar bridge. Replies on failure."""
    match_date = parse_date(data.match_date)
    new_date = parse_date(data.new_date)
    hint_dates = _days_around(match_date, new_date) or _days_around(dispatcher.today())

    if data.event_id:
        found = await dispatcher.find_event_by_id(turn, data.event_id, hint_dates)
        if found is not None:
            return found
        logger.info("[%s] event id %s not found; falling back to matching", context, data.event_id)

    candidates: list[CalendarEvent] = []
    seen: set[str] = set()
    for day in hint_dates:
        for event in await dispatcher.list_events_for_day(turn, day) or []:
            if event.id not in seen:
                seen.add(event.id)
                candidates.append(event)

    if not candidates:
        turn.reply(
            "I couldn't find any calendar events near that time to update. "
            "Could you share a bit more detail?"
        )
        return None

    match_start = (
        canonicalize_time_value(data.match_start_time, context, "match start time")
        if data.match_start_time else None
    )
    match = choose_event(
        candidates, data.match_title, match_date, match_start.minutes if match_start else None,
    )

    if match.outcome is MatchOutcome.PICKED:
        return match.event
    if match.outcome is MatchOutcome.AMBIGUOUS:
        label = data.match_title or "that event"
        chosen = await dispatcher.calendar_bridge.request_choice(
            list(match.candidates), f"I found several matches for '{label}'. Which one should I update?",
        )
        if chosen is None:
            turn.reply("I wasn't sure which event to adjust. Could you specify the title or time?")
        return chosen

    if data.match_title:
        turn.reply(
            f"I couldn't confidently match '{data.match_title}' to any event. "
            "Could you clarify the title or time?"
        )
    else:
        turn.reply(
            "I couldn't identify the calendar event to update. "
            "Could you share the exact title or time?"
        )
    return None


async def exec_update_calendar_event(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: UpdateCalendarEvent
) -> None:
    context = f"update_calendar_event#{idx}"
    if _not_ready(dispatcher, turn, "I need Google access before I can update that calendar event."):
        return

    target = await _resolve_update_target(dispatcher, turn, context, data)
    if target is None:
        return

    new_date = parse_date(data.new_date)
    wants_time = any(
        v is not None for v in (data.new_start_time, data.new_end_time, data.new_duration_minutes)
    )
    wants_date = new_date is not None
    title_update = (data.new_title or "").strip() or None
    location_update = (data.new_location or "").strip() or None
    notes_update = (data.new_notes or "").strip() or None

    if not (wants_time or wants_date or title_update or location_update or notes_update):
        turn.reply(
            f"I didn't see any new details to update for '{target.title}'. "
            "Want me to adjust the time or title?"
        )
        return

    target_date = new_date or target.start.date()
    if wants_time:
        existing_duration = max(5, _minutes_of(target.end) - _minutes_of(target.start))
        start_raw = data.new_start_time or target.start.strftime("%H:%M")
        end_raw = data.new_end_time
        duration = data.new_duration_minutes
        if end_raw is None and duration is None:
            # Moving only the start keeps the event's length.
            duration = existing_duration
        window = canonicalize_window(start_raw, end_raw, duration, context)
        if window is None:
            turn.reply("I couldn't parse the new time window. Could you restate the start and end?")
            return
        turn.notes.extend(window.adjustments)
        new_start = at_minutes(target_date, window.start_minutes)
        new_end = at_minutes(target_date, window.end_minutes)
    elif wants_date:
        new_start = datetime.combine(target_date, target.start.time())
        new_end = new_start + (target.end - target.start)
    else:
        new_start, new_end = target.start, target.end

    update_times = wants_time or wants_date
    token = turn.access_token
    updated = await dispatcher.mutate(
        context,
        lambda key: dispatcher.calendar.update_event(
            token, target.id,
            new_start=new_start if update_times else None,
            new_end=new_end if update_times else None,
            new_title=title_update,
            new_location=location_update,
            new_notes=notes_update,
        ),
    )
    if not updated.ok:
        turn.reply(
            f"I hit an error updating '{target.title}': {updated.error_message()}. Want me to try again?"
        )
        return

    verification_dates = [new_start.date()]
    if target.start.date() != new_start.date():
        verification_dates.append(target.start.date())
    verified = await dispatcher.find_event_by_id(turn, target.id, verification_dates)
    if verified is None:
        logger.warning("[%s] verification failed post-update for id=%s", context, target.id)
        turn.reply(
            "I updated the event, but couldn't confirm the new details in Google Calendar. "
            "Could you check and let me know?"
        )
        return

    expected_title = title_update or target.title
    times_ok = not update_times or (verified.start == new_start and verified.end == new_end)
    if verified.title != expected_title or not times_ok:
        turn.reply(
            f"Google shows '{verified.title}' at {verified.start.date()} "
            f"{format_range(verified.start, verified.end)}. Want me to adjust again?"
        )
        return

    turn.calendar_mutated = True
    if update_times:
        turn.reply(
            f"Rescheduled '{verified.title}' to {format_range(verified.start, verified.end)} "
            f"on {verified.start.date()}."
        )
    else:
        turn.reply(f"Updated '{verified.title}' on {verified.start.date()}.")


# ── delete ──────────────────────────────────────────────────────────────────────

async def exec_delete_calendar_event(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: DeleteCalendarEvent
) -> None:
    context = f"delete_calendar_event#{idx}"
    assumptions = data.assumptions or ""
    raw_title = (data.title or "").strip() or None
    bulk = is_bulk_delete_intent(raw_title, data.assumptions, domain="calendar")
    title_filter = None if bulk else raw_title

    date_text = data.date
    if not date_text:
        found = _DATE_IN_TEXT_RE.search(assumptions)
        date_text = found.group(1) if found else None
    start_raw = None
    if not bulk:
        start_raw = data.start_time
        if not start_raw:
            found = _TIME_IN_TEXT_RE.search(assumptions)
            start_raw = found.group(1) if found else None

    day = parse_date(date_text) if date_text else (dispatcher.today() if bulk else None)
    if day is None:
        turn.reply("I need the date to remove that calendar event. Could you share it?")
        return
    if _not_ready(dispatcher, turn, "I need Google access before I can remove that event."):
        return

    start_value = canonicalize_time_value(start_raw, context, "start time") if start_raw else None

    def matches(event: CalendarEvent) -> bool:
        if title_filter and title_filter.lower() not in event.title.lower():
            return False
        if start_value is not None and _minutes_of(event.start) != start_value.minutes:
            return False
        return event.start.date() == day

    id_match = _EVENT_ID_IN_TEXT_RE.search(assumptions)
    event_id = id_match.group(1) if id_match else None

    before = await dispatcher.list_events_for_day(turn, day, title_filter)
    if before is None:
        turn.reply(f"I couldn't read your calendar for {day}. Want me to try again?")
        return

    resolved: CalendarEvent | None = None
    if event_id:
        resolved = next((e for e in before if e.id == event_id), None) or await dispatcher.find_event_by_id(
            turn, event_id, [day],
        )
    elif not any(matches(e) for e in before):
        if bulk:
            turn.reply(f"There aren't any events on {day}, so there's nothing to clear.")
        else:
            label = f"'{title_filter}'" if title_filter else "that event"
            turn.reply(f"I couldn't locate {label} on {day}. Could you confirm the time?")
        return

    token = turn.access_token
    if event_id:
        deleted = await dispatcher.mutate(
            context, lambda key: dispatcher.calendar.delete_event_by_id(token, event_id),
        )
    else:
        day_start = datetime.combine(day, time.min)
        start_filter = (
            time(start_value.minutes // 60, start_value.minutes % 60) if start_value else None
        )
        deleted = await dispatcher.mutate(
            context,
            lambda key: dispatcher.calendar.delete_events_in_range(
                token, day_start, day_start + timedelta(days=1),
                title_filter=title_filter, start_time_filter=start_filter,
            ),
        )
    if not deleted.ok:
        turn.reply(f"I couldn't remove that event: {deleted.error_message()}. Want me to try again?")
        return

    verified = False
    still_there: CalendarEvent | None = None
    if event_id:
        days = {day}
        if resolved is not None:
            days.add(resolved.start.date())
        after_lists = [await dispatcher.list_events_for_day(turn, d) for d in sorted(days)]
        if all(lst is not None for lst in after_lists):
            leftovers = [e for lst in after_lists for e in lst if e.id == event_id]
            still_there = leftovers[0] if leftovers else None
            verified = resolved is not None and still_there is None
    else:
        after = await dispatcher.list_events_for_day(turn, day, title_filter)
        if after is not None:
            remaining = [e for e in after if matches(e)]
            still_there = remaining[0] if remaining else None
            verified = len(remaining) < sum(1 for e in before if matches(e))

    if not verified:
        if still_there is not None:
            description = f"'{still_there.title}' at {still_there.start.strftime('%H:%M')}"
        else:
            description = "those events" if bulk else "that event"
        turn.reply(
            f"I tried to delete {description} on {day}, but it still shows in Google Calendar. "
            "Should I try again or pick a different one?"
        )
        return

    if bulk:
        target = "all events"
    elif title_filter:
        target = f"'{title_filter}'"
    elif resolved is not None:
        target = f"'{resolved.title}'"
    else:
        first = next((e for e in before if matches(e)), None)
        target = f"'{first.title}'" if first else "that event"
    time_summary = f" at {start_value.label}" if start_value and not bulk else ""
    turn.calendar_mutated = True
    turn.reply(f"Removed {target} on {day}{time_summary}.")
