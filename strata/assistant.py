"""
Turn boundary: one user message in, assistant replies out.

    user text ──▶ pending yes/no fast path ──▶ (reply locally)
         └──▶ prompt (time, memory, pending plan, history) ──▶ planner
                   ──▶ ExecutionDispatcher ──▶ replies + refresh signals

Turns for the same user are serialized through ``SessionManager``; a turn
can be cancelled from outside with ``SessionManager.cancel``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from .actions.parser import MailRewrite, parse_rewrite
from .actions.replies import build_assistant_message
from .ai.prompt import build_prompt_payload
from .config import settings
from .constants import (
    CANCEL_TOKENS,
    ERROR_MESSAGES,
    NO_TOKENS,
    PENDING_AWAIT_CANCELLED_REPLY,
    PENDING_AWAIT_USER,
    PENDING_DECLINED_REPLY,
    PENDING_EXTERNAL_ACCEPTED_REPLY,
    PENDING_EXTERNAL_ACTION,
    YES_TOKENS,
)
from .engine.dispatcher import ExecutionDispatcher, RefreshSignals, TurnResult
from .exceptions import RemoteServiceError, StorageError
from .memory.plans import PendingPlanStore
from .models import PendingPlan, Result
from .session import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class AssistantReply:
    messages: list[str]
    refresh: RefreshSignals = field(default_factory=RefreshSignals)
    turn: TurnResult | None = None
    error: str | None = None
    cancelled: bool = False

    @property
    def mail_status(self) -> str | None:
        """Short banner describing mail delivery for this turn, if any mail was attempted."""
        if self.turn is None:
            return None
        sent = self.turn.summary.sent_emails
        failed = self.turn.summary.failed_emails
        if sent and not failed:
            return "Sent email successfully"
        if failed and not sent:
            return "Failed to send email"
        if sent and failed:
            return f"Partially sent ({sent} sent, {failed} failed)"
        return None


async def local_pending_response(
    pending: PendingPlan | None, text: str, plan_store: PendingPlanStore
) -> str | None:
    """
    Answer a bare yes/no to a pending plan without calling the planner.

    Returns the reply, or None when the planner should handle the message.
    """
    if pending is None:
        return None
    normalized = text.strip().lower()
    if not normalized:
        return None

    if normalized in NO_TOKENS:
        await plan_store.clear()
        return PENDING_DECLINED_REPLY
    if pending.status == PENDING_EXTERNAL_ACTION and normalized in YES_TOKENS:
        await plan_store.clear()
        return PENDING_EXTERNAL_ACCEPTED_REPLY
    if pending.status == PENDING_AWAIT_USER and normalized in CANCEL_TOKENS:
        await plan_store.clear()
        return PENDING_AWAIT_CANCELLED_REPLY
    return None


class Assistant:
    def __init__(
        self,
        dispatcher: ExecutionDispatcher,
        planner,
        notes=None,
        sessions: SessionManager | None = None,
        timezone: str | None = None,
        history_turns: int | None = None,
        memory_limit: int | None = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.planner = planner
        self.notes = notes
        self.sessions = sessions or SessionManager()
        self._timezone = timezone or settings.timezone
        self._history_turns = history_turns or settings.history_turns
        self._memory_limit = memory_limit or settings.memory_prompt_limit

    async def handle_message(
        self,
        user_id: str,
        text: str,
        history: list[tuple[str, str]] | None = None,
        access_token: str | None = None,
        screen: bytes | None = None,
    ) -> AssistantReply:
        """Run one turn for ``user_id``. Waits for any earlier turn of the same user."""
        async with self.sessions.get_lock(user_id):
            turn_task = asyncio.create_task(
                self._run_turn(text, history or [], access_token, screen)
            )
            self.sessions.track(user_id, turn_task)
            try:
                return await turn_task
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is not None and current.cancelling():
                    raise
                logger.info("Turn for user %s cancelled", user_id)
                return AssistantReply(messages=[ERROR_MESSAGES["cancelled"]], cancelled=True)

    async def _load_memories(self) -> list[str]:
        if self.notes is None:
            return []
        try:
            notes = await self.notes.list(limit=self._memory_limit)
        except StorageError as e:
            logger.warning("Could not load memory notes: %s", e)
            return []
        return [n.content for n in notes]

    async def _run_turn(
        self,
        text: str,
        history: list[tuple[str, str]],
        access_token: str | None,
        screen: bytes | None,
    ) -> AssistantReply:
        plan_store = self.dispatcher.plan_store
        pending = await plan_store.get()
        if (local := await local_pending_response(pending, text, plan_store)) is not None:
            logger.info("Answered pending %s locally", pending.status)
            return AssistantReply(messages=[local])

        prompt = build_prompt_payload(
            history,
            text,
            pending,
            await self._load_memories(),
            self.dispatcher.now(),
            self._timezone,
            history_turns=self._history_turns,
        )
        response = await self.planner.send_prompt(prompt, screen)
        if not response.ok:
            error = response.error_message()
            logger.error("Planner call failed: %s", error)
            return AssistantReply(
                messages=[f"I couldn't process that due to an error: {error}."],
                error=error,
            )

        raw = response.value or ""
        turn = await self.dispatcher.handle_response(raw, access_token)
        if turn.parse_error:
            return AssistantReply(
                messages=[ERROR_MESSAGES["parse_failed"]], turn=turn, error=turn.parse_error,
            )

        messages = turn.messages or [
            build_assistant_message(raw, turn.summary.sent_emails, turn.summary.failed_emails)
        ]
        return AssistantReply(messages=messages, refresh=turn.refresh, turn=turn)

    async def rewrite_mail(self, subject: str, body: str, request: str) -> Result[MailRewrite]:
        """Ask the planner to rewrite a draft shown in the mail preview."""
        response = await self.planner.mail_rewrite(subject, body, request)
        if not response.ok:
            return response
        rewrite = parse_rewrite(response.value or "")
        if rewrite is None:
            return Result.failure(RemoteServiceError("rewrite response had no subject/body"))
        return Result.success(rewrite)
