"""Tests for strata/assistant.py and strata/session.py — the turn boundary."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from conftest import NOW
from strata.assistant import Assistant, AssistantReply, local_pending_response
from strata.constants import ERROR_MESSAGES
from strata.engine.dispatcher import ExecutionSummary, TurnResult
from strata.exceptions import RemoteServiceError
from strata.models import Result
from strata.session import SessionManager


def _planner_returning(*actions):
    planner = AsyncMock()
    planner.send_prompt.return_value = Result.success(json.dumps(list(actions)))
    return planner


class TestLocalPendingResponse:
    @pytest.mark.asyncio
    async def test_no_pending_plan(self, plan_store):
        assert await local_pending_response(None, "yes", plan_store) is None

    @pytest.mark.asyncio
    async def test_no_declines_and_clears(self, plan_store):
        pending = await plan_store.save("await_user", "Which day?")
        assert await local_pending_response(pending, "  No ", plan_store) == "Okay, I won't proceed."
        assert await plan_store.get() is None

    @pytest.mark.asyncio
    async def test_yes_accepts_external_action(self, plan_store):
        pending = await plan_store.save("external_action", "Book a ride?")
        reply = await local_pending_response(pending, "go ahead", plan_store)
        assert reply == "Got it. I'll proceed once the integration is connected."
        assert await plan_store.get() is None

    @pytest.mark.asyncio
    async def test_yes_to_await_user_goes_to_planner(self, plan_store):
        pending = await plan_store.save("await_user", "Tuesday or Wednesday?")
        assert await local_pending_response(pending, "yes", plan_store) is None
        assert await plan_store.get() is not None

    @pytest.mark.asyncio
    async def test_free_text_goes_to_planner(self, plan_store):
        pending = await plan_store.save("await_user", "Which day?")
        assert await local_pending_response(pending, "Tuesday please", plan_store) is None


class TestAssistant:
    @pytest.mark.asyncio
    async def test_turn_runs_planner_and_dispatcher(self, dispatcher, notes):
        notes.notes.append("prefers mornings")
        planner = _planner_returning({"user_msg": {"text": "Hi!"}})
        assistant = Assistant(dispatcher, planner, notes=notes, timezone="UTC")

        reply = await assistant.handle_message("u1", "hello", history=[("user", "earlier")], access_token="tok")

        assert reply.messages == ["Hi!"]
        prompt = planner.send_prompt.call_args.args[0]
        assert "prefers mornings" in prompt
        assert "User: earlier" in prompt
        assert prompt.endswith("Latest user request:\nhello")

    @pytest.mark.asyncio
    async def test_pending_plan_is_in_prompt(self, dispatcher, plan_store):
        await plan_store.save("await_user", "Which dentist?", context="two dentists")
        planner = _planner_returning({"user_msg": {"text": "ok"}})
        assistant = Assistant(dispatcher, planner, timezone="UTC")

        await assistant.handle_message("u1", "the later one")

        prompt = planner.send_prompt.call_args.args[0]
        assert "Pending plan:" in prompt
        assert "Question: Which dentist?" in prompt
        assert "Context: two dentists" in prompt

    @pytest.mark.asyncio
    async def test_fast_path_skips_planner(self, dispatcher, plan_store):
        await plan_store.save("await_user", "Which day?")
        planner = _planner_returning()
        assistant = Assistant(dispatcher, planner, timezone="UTC")

        reply = await assistant.handle_message("u1", "stop")

        assert reply.messages == ["Okay, I won't proceed."]
        planner.send_prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_summary_when_planner_sends_no_user_msg(self, dispatcher, tasks):
        planner = _planner_returning({"add_task": {"title": "Buy milk"}})
        assistant = Assistant(dispatcher, planner, timezone="UTC")
        reply = await assistant.handle_message("u1", "remind me to buy milk", access_token="tok")
        assert reply.messages == ["Added 'Buy milk' to your tasks."]
        assert reply.refresh.tasks

    @pytest.mark.asyncio
    async def test_planner_failure(self, dispatcher):
        planner = AsyncMock()
        planner.send_prompt.return_value = Result.failure(RemoteServiceError("overloaded", status_code=529))
        assistant = Assistant(dispatcher, planner, timezone="UTC")
        reply = await assistant.handle_message("u1", "hello")
        assert reply.messages == ["I couldn't process that due to an error: overloaded."]
        assert reply.error == "overloaded"

    @pytest.mark.asyncio
    async def test_unparseable_plan(self, dispatcher):
        planner = AsyncMock()
        planner.send_prompt.return_value = Result.success("Sorry, I can't help with that.")
        assistant = Assistant(dispatcher, planner, timezone="UTC")
        reply = await assistant.handle_message("u1", "hello")
        assert reply.messages == [ERROR_MESSAGES["parse_failed"]]

    @pytest.mark.asyncio
    async def test_rewrite_mail(self, dispatcher):
        planner = AsyncMock()
        planner.mail_rewrite.return_value = Result.success('{"subject": "Hi", "body": "Shorter."}')
        assistant = Assistant(dispatcher, planner, timezone="UTC")
        result = await assistant.rewrite_mail("Hello", "A long body", "make it shorter")
        assert result.ok
        assert result.value.body == "Shorter."

    @pytest.mark.asyncio
    async def test_turns_for_one_user_are_serialized(self, dispatcher):
        order = []
        gate = asyncio.Event()

        async def slow_prompt(prompt, screen=None):
            order.append("start")
            await gate.wait()
            order.append("end")
            return Result.success('[{"user_msg": {"text": "done"}}]')

        planner = AsyncMock()
        planner.send_prompt.side_effect = slow_prompt
        assistant = Assistant(dispatcher, planner, timezone="UTC")

        first = asyncio.create_task(assistant.handle_message("u1", "one"))
        second = asyncio.create_task(assistant.handle_message("u1", "two"))
        await asyncio.sleep(0.01)
        assert order == ["start"]
        gate.set()
        await asyncio.gather(first, second)
        assert order == ["start", "end", "start", "end"]

    @pytest.mark.asyncio
    async def test_cancel_stops_the_in_flight_turn(self, dispatcher):
        started = asyncio.Event()

        async def hang(prompt, screen=None):
            started.set()
            await asyncio.sleep(60)

        planner = AsyncMock()
        planner.send_prompt.side_effect = hang
        sessions = SessionManager()
        assistant = Assistant(dispatcher, planner, sessions=sessions, timezone="UTC")

        turn = asyncio.create_task(assistant.handle_message("u1", "hello"))
        await started.wait()
        assert sessions.is_busy("u1")
        assert sessions.cancel("u1") is True

        reply = await turn
        assert reply.cancelled
        assert reply.messages == [ERROR_MESSAGES["cancelled"]]
        assert not sessions.is_busy("u1")


class TestAssistantReply:
    def test_mail_status(self):
        def reply(sent, failed):
            return AssistantReply(messages=[], turn=TurnResult(summary=ExecutionSummary(sent, failed)))

        assert reply(2, 0).mail_status == "Sent email successfully"
        assert reply(0, 1).mail_status == "Failed to send email"
        assert reply(1, 1).mail_status == "Partially sent (1 sent, 1 failed)"
        assert reply(0, 0).mail_status is None


class TestSessionManager:
    def test_lock_is_per_user(self):
        sm = SessionManager()
        assert sm.get_lock("a") is sm.get_lock("a")
        assert sm.get_lock("a") is not sm.get_lock("b")

    def test_cancel_with_nothing_running(self):
        assert SessionManager().cancel("nobody") is False


def test_clock_is_the_dispatchers(dispatcher):
    assert dispatcher.now() == NOW
