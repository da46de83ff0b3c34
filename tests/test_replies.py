"""Tests for strata/actions/replies.py"""

import json

from strata.actions.replies import (
    NOTHING_DETECTED_REPLY,
    NOTHING_DONE_REPLY,
    build_assistant_message,
)


def _raw(*actions):
    return json.dumps(list(actions))


def test_last_message_wins():
    assert build_assistant_message("[]", messages=["first", "second"]) == "second"


def test_empty_response():
    assert build_assistant_message("") == NOTHING_DETECTED_REPLY
    assert build_assistant_message(None) == NOTHING_DETECTED_REPLY


def test_summary_counts_actions():
    raw = _raw(
        {"add_calendar_event": {"title": "Gym", "date": "2026-03-02", "start_time": "07:00"}},
        {"add_task": {"title": "Buy milk"}},
        {"add_task": {"title": "Call mum"}},
    )
    assert build_assistant_message(raw) == (
        "Done and dusted - I added 1 calendar event, created 2 tasks. Want me to tweak anything?"
    )


def test_summary_includes_mail_counters():
    raw = _raw({"send_email": {"to": ["a@x.com", "b@x.com"], "subject": "Hi", "body": "Hello"}})
    assert build_assistant_message(raw, sent_emails=1, failed_emails=1) == (
        "Done and dusted - I sent 1 email, (1 email failed). Want me to tweak anything?"
    )


def test_nothing_operational():
    assert build_assistant_message(_raw({"web_search": {"query": "weather"}})) == NOTHING_DONE_REPLY
