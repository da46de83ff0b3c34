"""
Prompt assembly for the planner.

``build_prompt_payload`` produces the user-turn text: local time, long-term
memory, any pending plan, recent conversation, then the latest request.
The system prompt describes the action vocabulary the parser accepts.
"""

from __future__ import annotations

from datetime import datetime
from zoneinfo import ZoneInfo

from ..models import PendingPlan

PLANNER_SYSTEM_PROMPT = """\
You are Strata, an operations co-pilot that manages the user's email, calendar
and reminders (Google Tasks). You reply ONLY with a JSON array of action
objects. Each object has exactly one top-level key naming the action; its
value is the payload object. The array order is the execution order.

Allowed actions:
- send_email {to[], subject, body, cc[]?, bcc[]?, assumptions?}
- explain_email {email_id, summary_style?} / reply_to_email {email_id, body, subject?}
- forward_email {email_id, to[], preface?} / delete_email {email_id}
- add_calendar_event {title, date, start_time, end_time? | duration_minutes?, location?, notes?, assumptions?}
- update_calendar_event {event_id? | match_title?, match_date?, match_start_time?,
  new_date?, new_start_time?, new_end_time?, new_duration_minutes?, new_title?, new_location?, new_notes?}
- delete_calendar_event {title?, date?, start_time?, assumptions?}
- add_task {title, due_date?, due_time?, notes?}
- update_task {task_id? | match_title?, match_due_date?, match_due_time?,
  new_title?, new_notes?, new_due_date?, new_due_time?, completed?}
- delete_task {task_id? | match_title?, match_due_date?, match_due_time?, delete_all?}
- remember {content} / clear_memory {reason?}
- web_search {query, top_k?} / fetch_url {url, max_chars?}
- await_user {question, context?} (must be the only action when used)
- external_action {provider, intent, params?, confirmation_question?}
- user_msg {text}

Rules:
- Dates are YYYY-MM-DD and times are 24-hour HH:MM in the user's local timezone.
- Resolve relative phrases (morning=10:00, afternoon=15:00, evening=19:00,
  night=21:00) and record every inference in "assumptions".
- Prefer ids for updates and deletes; otherwise give match_* hints.
- Only send mail when the user clearly asks for it.
- Never claim success; the runtime verifies every change.
- After operational actions, end with a short user_msg summarising what you did.
- If the user is just chatting, answer with a single user_msg.
- No prose outside the array.
"""

REWRITE_PROMPT = """\
You rewrite an email's subject and body to match the user's preferences
without changing its meaning. Reply strictly as JSON (no markdown fences):
{{"subject": "<new subject>", "body": "<new body>"}}

Current subject: {subject}
Current body: {body}
Requested change: {request}
"""


def build_local_time_context(now: datetime, tz_name: str) -> str:
    """One sentence telling the planner the user's local date, time and UTC offset."""
    tz = ZoneInfo(tz_name)
    local = now.astimezone(tz) if now.tzinfo else now.replace(tzinfo=tz)
    offset = local.strftime("%z")
    offset_label = f"UTC{offset[:3]}:{offset[3:]}" if offset else "UTC"
    return (
        f"The user's current local time is {local.strftime('%A')}, {local.strftime('%B')} "
        f"{local.day}, {local.year} at {local.strftime('%H:%M')} (timezone {tz_name}, {offset_label}). "
        "Plan and schedule your response using this local time unless the user specifies otherwise."
    )


def build_prompt_payload(
    history: list[tuple[str, str]],
    latest_user_text: str,
    pending_plan: PendingPlan | None,
    memories: list[str],
    now: datetime,
    tz_name: str,
    history_turns: int = 10,
) -> str:
    """Assemble the planner's user-turn text."""
    trimmed = [(role, text) for role, text in history if text.strip()][-history_turns:]
    parts = ["Assistant context:\n" + build_local_time_context(now, tz_name) + "\n"]

    if memories:
        parts.append("Long-term memory:\n" + "".join(f"- {m}\n" for m in memories))

    if pending_plan is not None:
        block = (
            "Pending plan:\n"
            f"Status: {pending_plan.status}\n"
            f"Question: {pending_plan.question}\n"
        )
        if pending_plan.context:
            block += f"Context: {pending_plan.context}\n"
        parts.append(block)

    if trimmed:
        lines = [
            f"{'Assistant' if role.lower() == 'assistant' else 'User'}: {text}"
            for role, text in trimmed
        ]
        parts.append("Conversation so far:\n" + "\n".join(lines) + "\n")

    parts.append("Latest user request:\n" + latest_user_text)
    return "\n".join(parts)


def build_rewrite_prompt(subject: str, body: str, request: str) -> str:
    return REWRITE_PROMPT.format(subject=subject, body=body, request=request)
