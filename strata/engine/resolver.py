"""
Reference resolution: maps fuzzy planner hints (titles, dates, times)
onto concrete tasks and calendar events.

All functions are pure. Ties among top calendar candidates are reported as
ambiguous so the caller can escalate; nothing here picks silently.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum

from ..constants import (
    BULK_ALL_KEYWORDS,
    CALENDAR_BULK_ALLOWED,
    CALENDAR_DOMAIN_KEYWORDS,
    CALENDAR_MIN_MATCH_SCORE,
    MATCH_ALL_QUERIES,
    MISSING_NOTES_PHRASES,
    STOPWORDS,
    TASK_BULK_ALLOWED,
    TASK_DOMAIN_KEYWORDS,
)
from ..models import CalendarEvent, TaskItem

logger = logging.getLogger(__name__)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9 ]")
_SPACES_RE = re.compile(r"\s+")


# ── Normalisation ───────────────────────────────────────────────────────────────

def normalize_text(value: str | None) -> str:
    """Strip diacritics, lowercase, and collapse punctuation to single spaces."""
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", value)
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    cleaned = _NON_ALNUM_RE.sub(" ", stripped.lower())
    return _SPACES_RE.sub(" ", cleaned).strip()


def tokenize(value: str | None, drop_stopwords: bool = True) -> list[str]:
    tokens = normalize_text(value).split()
    if drop_stopwords:
        tokens = [t for t in tokens if t not in STOPWORDS]
    return tokens


def _tokens_match(a: str, b: str) -> bool:
    return a == b or a.startswith(b) or b.startswith(a)


# ── Tasks ───────────────────────────────────────────────────────────────────────

def title_matches(candidate: str, query: str | None) -> bool:
    """Fuzzy task-title match: containment, then prefix-tolerant token overlap."""
    if query is None:
        return True
    if query.strip().lower() in MATCH_ALL_QUERIES:
        return True

    norm_candidate = normalize_text(candidate)
    norm_query = normalize_text(query)
    if not norm_query:
        return False
    if norm_query in norm_candidate or (norm_candidate and norm_candidate in norm_query):
        return True

    query_tokens = tokenize(query)
    candidate_tokens = tokenize(candidate)
    if not query_tokens or not candidate_tokens:
        return False

    matched = sum(
        1 for q in query_tokens if any(_tokens_match(q, c) for c in candidate_tokens)
    )
    if matched / len(query_tokens) >= 0.6:
        return True
    return len(query_tokens) >= 3 and matched >= 2


def due_matches(task: TaskItem, match_date: date | None, match_time: time | None) -> bool:
    """Due filter: the task must be due on/before ``match_date`` and at exactly ``match_time``."""
    if match_date is None and match_time is None:
        return True
    if task.due is None:
        return False
    if match_date is not None and task.due.date() > match_date:
        return False
    if match_time is not None:
        if not task.due_has_time:
            return False
        if task.due.time().replace(second=0, microsecond=0) != match_time:
            return False
    return True


def prefers_missing_notes(*texts: str | None) -> bool:
    haystack = " ".join(t.lower() for t in texts if t)
    return any(phrase in haystack for phrase in MISSING_NOTES_PHRASES)


def task_score(
    task: TaskItem,
    match_date: date | None,
    match_time: time | None,
    prefer_missing_notes: bool,
) -> int:
    notes_blank = not (task.notes or "").strip()
    score = 0
    if prefer_missing_notes and notes_blank:
        score += 5
    if match_date is not None and task.due is not None and task.due.date() == match_date:
        score += 3
    if (
        match_time is not None
        and task.due is not None
        and task.due_has_time
        and task.due.time().replace(second=0, microsecond=0) == match_time
    ):
        score += 2
    if notes_blank:
        score += 1
    return score


def rank_tasks(
    tasks: list[TaskItem],
    match_date: date | None = None,
    match_time: time | None = None,
    prefer_missing_notes: bool = False,
) -> list[TaskItem]:
    """Highest score first; ties broken by case-insensitive title."""
    return sorted(
        tasks,
        key=lambda t: (-task_score(t, match_date, match_time, prefer_missing_notes), t.title.lower()),
    )


def find_task_candidates(
    tasks: list[TaskItem],
    task_id: str | None = None,
    match_title: str | None = None,
    match_date: date | None = None,
    match_time: time | None = None,
    prefer_missing_notes: bool = False,
) -> list[TaskItem]:
    """
    Filter and rank tasks for an update/delete.

    An explicit ``task_id`` wins when it is present in ``tasks``. Otherwise the
    title and due filters are applied and survivors are ranked.
    """
    if task_id:
        for task in tasks:
            if task.id == task_id:
                return [task]
        logger.info("Task id %s not in the fetched list; falling back to title match", task_id)
        if not match_title:
            return []

    survivors = [
        t for t in tasks
        if title_matches(t.title, match_title) and due_matches(t, match_date, match_time)
    ]
    return rank_tasks(survivors, match_date, match_time, prefer_missing_notes)


# ── Calendar ────────────────────────────────────────────────────────────────────

def title_similarity(candidate: str, query: str) -> int:
    norm_candidate = normalize_text(candidate)
    norm_query = normalize_text(query)
    if not norm_candidate or not norm_query:
        return 0
    if norm_candidate == norm_query:
        return 100
    if norm_query in norm_candidate or norm_candidate in norm_query:
        return 90

    query_tokens = tokenize(query)
    candidate_tokens = tokenize(candidate)
    if not query_tokens or not candidate_tokens:
        return 0

    exact = sum(1 for q in query_tokens if q in candidate_tokens)
    partial = sum(
        1 for q in query_tokens
        if q not in candidate_tokens and any(_tokens_match(q, c) for c in candidate_tokens)
    )
    score = int(exact / len(query_tokens) * 70) + int(partial / len(query_tokens) * 20)
    if exact == len(query_tokens):
        score += 5
    return min(score, 95)


def time_proximity_score(event_start: datetime, target_minutes: int | None) -> int:
    if target_minutes is None:
        return 0
    diff = abs(event_start.hour * 60 + event_start.minute - target_minutes)
    if diff == 0:
        return 40
    if diff <= 5:
        return 30
    if diff <= 15:
        return 20
    if diff <= 30:
        return 10
    if diff <= 60:
        return 5
    return 0


def date_proximity_score(event_day: date, target: date | None) -> int:
    if target is None:
        return 0
    delta = abs((event_day - target).days)
    return {0: 40, 1: 25, 2: 10}.get(delta, 0)


@dataclass(frozen=True)
class ScoredEvent:
    event: CalendarEvent
    title_score: int
    total: int


def score_event(
    event: CalendarEvent,
    match_title: str | None,
    match_date: date | None,
    match_start_minutes: int | None,
) -> ScoredEvent:
    title_score = title_similarity(event.title, match_title) if match_title else 0
    total = (
        title_score
        + time_proximity_score(event.start, match_start_minutes)
        + date_proximity_score(event.day, match_date)
    )
    return ScoredEvent(event=event, title_score=title_score, total=total)


class MatchOutcome(str, Enum):
    PICKED = "picked"
    AMBIGUOUS = "ambiguous"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class EventMatch:
    outcome: MatchOutcome
    event: CalendarEvent | None = None
    candidates: tuple[CalendarEvent, ...] = field(default_factory=tuple)


def choose_event(
    events: list[CalendarEvent],
    match_title: str | None,
    match_date: date | None,
    match_start_minutes: int | None,
) -> EventMatch:
    """
    Pick the event a fuzzy reference most likely means.

    * no events, or a title hint whose best total score (title, time and
      date points together) is below the confidence floor → NO_MATCH
    * several events tied at a positive best score → AMBIGUOUS
    * otherwise the top scorer → PICKED
    """
    if not events:
        return EventMatch(MatchOutcome.NO_MATCH)

    scored = [score_event(e, match_title, match_date, match_start_minutes) for e in events]
    best = max(s.total for s in scored)
    if match_title and best < CALENDAR_MIN_MATCH_SCORE:
        logger.info("No calendar event resembles %r", match_title)
        return EventMatch(MatchOutcome.NO_MATCH)

    if best <= 0:
        chosen = max(scored, key=lambda s: s.total)
        return EventMatch(MatchOutcome.PICKED, event=chosen.event)

    leaders = tuple(s.event for s in scored if s.total == best)
    if len(leaders) == 1:
        return EventMatch(MatchOutcome.PICKED, event=leaders[0])

    logger.info(
        "Calendar reference %r is ambiguous between %d events (score %d)",
        match_title, len(leaders), best,
    )
    return EventMatch(MatchOutcome.AMBIGUOUS, candidates=leaders)


# ── Bulk delete guard ───────────────────────────────────────────────────────────

_DOMAINS = {
    "calendar": (CALENDAR_DOMAIN_KEYWORDS, CALENDAR_BULK_ALLOWED),
    "tasks": (TASK_DOMAIN_KEYWORDS, TASK_BULK_ALLOWED),
}


def is_bulk_delete_intent(text: str | None, assumptions: str | None = None, domain: str = "calendar") -> bool:
    """
    True only when the request clearly means "everything in this domain".

    Needs an all/every/everything keyword plus a domain noun (or a filter that
    is just "all"), and every filter token must come from the domain's
    allow-list, so "delete my alarm" never clears a calendar.
    """
    domain_keywords, allowed = _DOMAINS[domain]
    filter_tokens = tokenize(text, drop_stopwords=False)
    combined = set(filter_tokens) | set(tokenize(assumptions, drop_stopwords=False))
    if not combined:
        return False

    has_all = bool(combined & BULK_ALL_KEYWORDS)
    has_domain = bool(combined & domain_keywords)
    only_all = len(filter_tokens) == 1 and filter_tokens[0] in BULK_ALL_KEYWORDS

    if not has_all or not (has_domain or only_all):
        return False
    return all(token in allowed for token in filter_tokens)
