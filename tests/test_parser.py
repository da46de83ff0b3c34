"""Tests for strata/actions/parser.py and schema.py"""

import pytest

from strata.actions.parser import (
    decode_actions,
    extract_json_array,
    parse_response,
    parse_rewrite,
)
from strata.actions.schema import ActionKind, AddCalendarEvent, SendEmail
from strata.exceptions import ActionParseError


class TestExtractJsonArray:
    def test_prefers_json_fence(self):
        raw = 'Sure!\n```json\n[{"user_msg": {"text": "hi"}}]\n```\nbye [1]'
        assert extract_json_array(raw) == '[{"user_msg": {"text": "hi"}}]'

    def test_bare_fence(self):
        raw = "```\n[]\n```"
        assert extract_json_array(raw) == "[]"

    def test_unfenced_balanced_scan(self):
        raw = 'Plan: [{"user_msg": {"text": "a [bracket] inside"}}] trailing'
        assert extract_json_array(raw) == '[{"user_msg": {"text": "a [bracket] inside"}}]'

    def test_no_array(self):
        assert extract_json_array("nothing to see") is None


class TestDecodeActions:
    def test_preserves_order(self):
        actions = decode_actions(
            '[{"user_msg": {"text": "one"}},'
            ' {"add_task": {"title": "Buy milk"}},'
            ' {"user_msg": {"text": "two"}}]'
        )
        assert [a.kind for a in actions] == [
            ActionKind.USER_MSG, ActionKind.ADD_TASK, ActionKind.USER_MSG,
        ]
        assert actions[0].payload.text == "one"

    def test_two_tags_in_one_object_fails(self):
        with pytest.raises(ActionParseError, match="exactly one tag"):
            decode_actions('[{"user_msg": {"text": "a"}, "add_task": {"title": "b"}}]')

    def test_unknown_tag_fails(self):
        with pytest.raises(ActionParseError, match="unknown tag"):
            decode_actions('[{"launch_rocket": {}}]')

    def test_one_bad_element_fails_everything(self):
        with pytest.raises(ActionParseError):
            decode_actions('[{"user_msg": {"text": "ok"}}, {"add_task": {}}]')

    def test_non_array_root_fails(self):
        with pytest.raises(ActionParseError, match="array"):
            decode_actions('{"user_msg": {"text": "a"}}')

    def test_unknown_payload_fields_are_ignored(self):
        actions = decode_actions(
            '[{"add_calendar_event": {"title": "Gym", "date": "2026-03-02",'
            ' "start_time": "07:00", "colour": "red"}}]'
        )
        payload = actions[0].payload
        assert isinstance(payload, AddCalendarEvent)
        assert not hasattr(payload, "colour")

    def test_recipient_string_is_split(self):
        actions = decode_actions(
            '[{"send_email": {"to": "a@x.com, b@x.com", "subject": "Hi", "body": "Yo"}}]'
        )
        payload = actions[0].payload
        assert isinstance(payload, SendEmail)
        assert payload.to == ["a@x.com", "b@x.com"]

    def test_mutating_flags(self):
        actions = decode_actions(
            '[{"add_task": {"title": "a"}}, {"web_search": {"query": "q"}}, {"delete_email": {"email_id": "1"}}]'
        )
        assert [a.is_mutating for a in actions] == [True, False, True]

    def test_json_dict_drops_unset_fields(self):
        action = decode_actions('[{"remember": {"content": "likes tea"}}]')[0]
        assert action.to_json_dict() == {"remember": {"content": "likes tea"}}


class TestParseResponse:
    def test_never_raises_on_garbage(self):
        result = parse_response("I'm not sure what you mean.")
        assert not result.ok
        assert result.actions == []

    def test_invalid_json_reports_error(self):
        result = parse_response("[{user_msg: }]")
        assert not result.ok
        assert "invalid JSON" in result.error

    def test_success(self):
        result = parse_response('```json\n[{"clear_memory": {}}]\n```')
        assert result.ok
        assert result.actions[0].kind is ActionKind.CLEAR_MEMORY


class TestParseRewrite:
    def test_fenced_object(self):
        rewrite = parse_rewrite('```json\n{"subject": " New ", "body": "Hello"}\n```')
        assert rewrite is not None
        assert rewrite.subject == "New"
        assert rewrite.body == "Hello"

    def test_missing_body(self):
        assert parse_rewrite('{"subject": "x"}') is None

    def test_no_object(self):
        assert parse_rewrite("no json here") is None
