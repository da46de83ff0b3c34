"""Control-flow action executors: user_msg, await_user, external_action."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...actions.schema import AwaitUser, ExternalAction, UserMsg
from ...constants import (
    DEFAULT_AWAIT_QUESTION,
    DEFAULT_EXTERNAL_QUESTION,
    PENDING_AWAIT_USER,
    PENDING_EXTERNAL_ACTION,
)
from ...exceptions import StorageError

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)


def exec_user_msg(turn: TurnContext, data: UserMsg) -> None:
    """Append the planner's message, or let it replace a handler-produced one."""
    text = data.text.strip()
    if not text:
        return
    if turn.suppress_next_user_msg and turn.messages:
        turn.messages[-1] = text
    else:
        turn.messages.append(text)
    turn.suppress_next_user_msg = False


async def _pause_and_ask(
    dispatcher: ExecutionDispatcher,
    turn: TurnContext,
    question: str,
    status: str,
    context: str | None = None,
    action_json: str | None = None,
) -> None:
    """Pause the turn, then persist the question. The pause holds even if saving fails."""
    from ..dispatcher import DispatcherState

    turn.state = DispatcherState.PAUSED_FOR_CLARIFICATION
    turn.messages.append(question)
    try:
        await dispatcher.plan_store.save(
            status=status, question=question, context=context, action_json=action_json,
        )
    except StorageError as e:
        logger.error("Pending plan not saved (%s): %s", status, e)


async def exec_await_user(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: AwaitUser
) -> None:
    question = data.question.strip() or DEFAULT_AWAIT_QUESTION
    await _pause_and_ask(dispatcher, turn, question, PENDING_AWAIT_USER, context=data.context)
    logger.info("[%d] await_user: pausing for clarification", idx)


async def exec_external_action(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: ExternalAction
) -> None:
    question = (data.confirmation_question or "").strip() or DEFAULT_EXTERNAL_QUESTION.format(
        intent=data.intent, provider=data.provider,
    )
    await _pause_and_ask(
        dispatcher,
        turn,
        question,
        PENDING_EXTERNAL_ACTION,
        context=data.assumptions,
        action_json=data.model_dump_json(),
    )
    logger.info("[%d] external_action %s/%s: awaiting confirmation", idx, data.provider, data.intent)
