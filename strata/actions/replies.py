"""Assistant-facing reply text built from a finished turn."""

from __future__ import annotations

from collections import Counter

from .parser import parse_response
from .schema import ActionKind

NOTHING_DETECTED_REPLY = "I didn't detect any actions to take. Let me know how I can help."
NOTHING_DONE_REPLY = "I can line up the next steps for you. Want me to go ahead?"

# (kind, verb, singular noun, plural noun) in reporting order
_COUNTED = (
    (ActionKind.ADD_CALENDAR_EVENT, "added", "calendar event", "calendar events"),
    (ActionKind.UPDATE_CALENDAR_EVENT, "updated", "calendar event", "calendar events"),
    (ActionKind.DELETE_CALENDAR_EVENT, "removed", "calendar event", "calendar events"),
)
_COUNTED_AFTER_MAIL = (
    (ActionKind.REPLY_TO_EMAIL, "prepared", "email reply", "email replies"),
    (ActionKind.FORWARD_EMAIL, "prepared", "forward", "forwards"),
    (ActionKind.DELETE_EMAIL, "deleted", "email", "emails"),
    (ActionKind.ADD_TASK, "created", "task", "tasks"),
    (ActionKind.UPDATE_TASK, "updated", "task", "tasks"),
    (ActionKind.DELETE_TASK, "removed", "task", "tasks"),
)


def _count(n: int, singular: str, plural: str) -> str:
    return f"{n} {singular if n == 1 else plural}"


def build_assistant_message(
    raw: str | None,
    sent_emails: int = 0,
    failed_emails: int = 0,
    messages: list[str] | None = None,
) -> str:
    """
    The single line to show for a turn.

    The last handler/planner message wins; otherwise a "Done and dusted"
    summary is built from the action kinds in ``raw`` and the mail counters.
    """
    if messages:
        return messages[-1]
    if not raw or not raw.strip():
        return NOTHING_DETECTED_REPLY

    parsed = parse_response(raw)
    kinds = Counter(action.kind for action in parsed.actions)

    parts = [
        f"{verb} {_count(kinds[kind], singular, plural)}"
        for kind, verb, singular, plural in _COUNTED
        if kinds[kind]
    ]
    if sent_emails > 0:
        parts.append(f"sent {_count(sent_emails, 'email', 'emails')}")
    if failed_emails > 0:
        parts.append(f"({_count(failed_emails, 'email', 'emails')} failed)")
    parts.extend(
        f"{verb} {_count(kinds[kind], singular, plural)}"
        for kind, verb, singular, plural in _COUNTED_AFTER_MAIL
        if kinds[kind]
    )

    if not parts:
        return NOTHING_DONE_REPLY
    return f"Done and dusted - I {', '.join(parts)}. Want me to tweak anything?"
