"""Tests for strata/engine/bridges.py"""

import asyncio
from datetime import datetime

import pytest

from strata.engine.bridges import (
    CalendarConfirmationBridge,
    MailPreviewBridge,
    TaskConfirmationBridge,
)
from strata.exceptions import BridgeError
from strata.models import CalendarEvent, TaskItem


def _event(event_id):
    start = datetime(2026, 3, 2, 10, 0)
    return CalendarEvent(id=event_id, title="Sync", start=start, end=start.replace(hour=11))


class TestNoSubscribers:
    @pytest.mark.asyncio
    async def test_mail_preview_is_cancelled(self):
        decision = await MailPreviewBridge(timeout=1).request_preview(["a@x.com"], "Hi", "Body")
        assert decision.send is False

    @pytest.mark.asyncio
    async def test_task_delete_is_declined(self):
        assert await TaskConfirmationBridge(timeout=1).request_delete([], "Delete?") is False

    @pytest.mark.asyncio
    async def test_calendar_choice_is_skipped(self):
        bridge = CalendarConfirmationBridge(timeout=1)
        assert await bridge.request_choice([_event("a")], "Which?") is None
        assert bridge.current is None


class TestSubscribers:
    @pytest.mark.asyncio
    async def test_sync_subscriber_can_edit_mail(self):
        bridge = MailPreviewBridge(timeout=1)
        bridge.subscribe(lambda req: req.send(subject="Edited"))
        decision = await bridge.request_preview(["a@x.com"], "Hi", "Body")
        assert decision.send is True
        assert decision.subject == "Edited"
        assert decision.to == ("a@x.com",)
        assert decision.body == "Body"

    @pytest.mark.asyncio
    async def test_async_subscriber_resolves_later(self):
        bridge = TaskConfirmationBridge(timeout=1)
        seen = []

        async def confirm_later(request):
            seen.append(request.reason)
            await asyncio.sleep(0.01)
            request.confirm()

        bridge.subscribe(confirm_later)
        task = TaskItem(id="t1", title="Old reminder")
        assert await bridge.request_delete([task], "Delete 'Old reminder'?") is True
        assert seen == ["Delete 'Old reminder'?"]

    @pytest.mark.asyncio
    async def test_current_is_exposed_while_waiting(self):
        bridge = CalendarConfirmationBridge(timeout=1)
        observed = []

        async def pick_later(request):
            observed.append(bridge.current is request)
            await asyncio.sleep(0)
            request.pick("b")

        bridge.subscribe(pick_later)
        chosen = await bridge.request_choice([_event("a"), _event("b")], "Which?")
        assert chosen.id == "b"
        assert observed == [True]
        assert bridge.current is None

    @pytest.mark.asyncio
    async def test_pick_unknown_candidate_raises(self):
        bridge = CalendarConfirmationBridge(timeout=1)
        errors = []

        def bad_pick(request):
            try:
                request.pick("zzz")
            except BridgeError as e:
                errors.append(e)
            request.skip()

        bridge.subscribe(bad_pick)
        assert await bridge.request_choice([_event("a")], "Which?") is None
        assert len(errors) == 1

    @pytest.mark.asyncio
    async def test_second_answer_is_ignored(self):
        bridge = TaskConfirmationBridge(timeout=1)
        results = []

        def answer_twice(request):
            results.append(request.confirm())
            results.append(request.cancel())

        bridge.subscribe(answer_twice)
        assert await bridge.request_delete([], "Delete?") is True
        assert results == [True, False]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        bridge = TaskConfirmationBridge(timeout=1)
        unsubscribe = bridge.subscribe(lambda req: req.confirm())
        unsubscribe()
        assert not bridge.has_subscribers
        assert await bridge.request_delete([], "Delete?") is False

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self):
        bridge = TaskConfirmationBridge(timeout=1)

        def broken(request):
            raise RuntimeError("ui crashed")

        bridge.subscribe(broken)
        bridge.subscribe(lambda req: req.confirm())
        assert await bridge.request_delete([], "Delete?") is True

    @pytest.mark.asyncio
    async def test_only_subscriber_failing_dismisses_at_once(self):
        bridge = MailPreviewBridge(timeout=30)

        def broken(request):
            raise RuntimeError("ui crashed")

        bridge.subscribe(broken)
        decision = await asyncio.wait_for(bridge.request_preview(["a@x.com"], "Hi", "Body"), timeout=1)
        assert decision.send is False

    @pytest.mark.asyncio
    async def test_only_async_subscriber_failing_dismisses(self):
        bridge = CalendarConfirmationBridge(timeout=30)

        async def broken(request):
            raise RuntimeError("ui crashed")

        bridge.subscribe(broken)
        chosen = await asyncio.wait_for(bridge.request_choice([_event("a")], "Which?"), timeout=1)
        assert chosen is None


class TestTimeout:
    @pytest.mark.asyncio
    async def test_unanswered_request_is_dismissed(self):
        bridge = MailPreviewBridge(timeout=0.05)
        bridge.subscribe(lambda req: None)
        decision = await bridge.request_preview(["a@x.com"], "Hi", "Body")
        assert decision.send is False

    def test_default_timeout_comes_from_settings(self, monkeypatch):
        from strata.config import reset_settings

        monkeypatch.setenv("STRATA_BRIDGE_TIMEOUT_SECONDS", "0")
        reset_settings()
        assert MailPreviewBridge().timeout is None
