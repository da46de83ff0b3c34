"""
Shared constants for strata.

Centralises keyword vocabularies and user-facing wording used across the
resolver, dispatcher and turn boundary.
"""

# ── Standardised error messages ─────────────────────────────────────────────────
ERROR_MESSAGES = {
    "parse_failed": "I couldn't read a plan from that response. Could you rephrase the request?",
    "planner_failed": "I couldn't reach the assistant service just now. Please try again in a moment.",
    "google_not_connected": "I need you to reconnect Google before I can do that.",
    "not_configured": "That service isn't configured yet.",
    "cancelled": "Operation cancelled.",
    "action_crashed": "Something went wrong while handling {kind}: {error}",
}


# ── Fixed replies ───────────────────────────────────────────────────────────────
DEFAULT_AWAIT_QUESTION = "I need a bit more detail before I proceed. Could you clarify?"
DEFAULT_EXTERNAL_QUESTION = "I can help with {intent} via {provider}. Want me to proceed?"
REMEMBER_REPLY = "Got it - I'll remember that."
CLEAR_MEMORY_REPLY = "Done. I've cleared your saved memory."
PENDING_DECLINED_REPLY = "Okay, I won't proceed."
PENDING_EXTERNAL_ACCEPTED_REPLY = "Got it. I'll proceed once the integration is connected."
PENDING_AWAIT_CANCELLED_REPLY = "No problem - tell me what you'd like to do instead."


# ── Bridge button labels ────────────────────────────────────────────────────────
TASK_DELETE_CONFIRM_LABEL = "Delete"
TASK_DELETE_CANCEL_LABEL = "Keep"
CALENDAR_CONFIRM_LABEL = "Use this"
CALENDAR_CANCEL_LABEL = "Skip"


# ── Pending-plan statuses ───────────────────────────────────────────────────────
PENDING_AWAIT_USER = "await_user"
PENDING_EXTERNAL_ACTION = "external_action"


# ── Pending-plan fast path vocabulary ───────────────────────────────────────────
YES_TOKENS = frozenset({"yes", "y", "ok", "okay", "sure", "do it", "go ahead", "proceed"})
NO_TOKENS = frozenset({
    "no", "n", "stop", "cancel", "don't", "do not", "never mind", "nevermind",
})
CANCEL_TOKENS = frozenset({"cancel", "never mind", "nevermind"})


# ── Title normalisation ─────────────────────────────────────────────────────────
STOPWORDS = frozenset({
    "a", "an", "the", "to", "at", "on", "in", "for", "with",
    "and", "or", "of", "my", "your", "their",
})
MATCH_ALL_QUERIES = frozenset({"*", "all"})


# ── Bulk delete guard ───────────────────────────────────────────────────────────
BULK_ALL_KEYWORDS = frozenset({"all", "every", "everything"})
BULK_VERB_KEYWORDS = frozenset({"clear", "delete", "remove", "reset", "wipe"})

CALENDAR_DOMAIN_KEYWORDS = frozenset({
    "events", "event", "calendar", "appointments", "schedule", "agenda",
    "meetings", "meeting", "plans", "entries",
})
CALENDAR_BULK_ALLOWED = frozenset({
    "all", "every", "everything", "clear", "delete", "remove", "reset", "wipe",
    "my", "calendar", "events", "event", "appointments", "appointment",
    "schedule", "today", "for", "the", "day", "this", "entire", "whole", "on",
    "please", "agenda", "meetings", "meeting", "entries", "plan", "plans",
})

TASK_DOMAIN_KEYWORDS = frozenset({
    "tasks", "task", "reminders", "reminder", "todos", "todo", "list", "items",
})
TASK_BULK_ALLOWED = frozenset({
    "all", "every", "everything", "clear", "delete", "remove", "reset", "wipe",
    "my", "tasks", "task", "reminders", "reminder", "todos", "todo", "to", "do",
    "list", "items", "the", "for", "this", "entire", "whole", "please", "of",
})


# ── Task ranking ────────────────────────────────────────────────────────────────
MISSING_NOTES_PHRASES = (
    "without description", "without notes", "no description", "no notes",
    "missing description", "missing notes", "empty description", "empty notes",
)


# ── Calendar → task mirroring ───────────────────────────────────────────────────
DEADLINE_KEYWORDS = frozenset({
    "deadline", "submit", "submission", "deliver", "deliverable", "handoff",
    "handover", "final", "due", "review", "report", "proposal", "presentation",
    "invoice", "milestone",
})


# ── Minimum total score before a calendar match is trusted ─────────────────────
CALENDAR_MIN_MATCH_SCORE = 25
