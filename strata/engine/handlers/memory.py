"""Memory action executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...actions.schema import ClearMemory, Remember
from ...constants import CLEAR_MEMORY_REPLY, ERROR_MESSAGES, REMEMBER_REPLY
from ...exceptions import StorageError

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)


async def exec_remember(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: Remember
) -> None:
    content = data.content.strip()
    if not content:
        logger.info("[%d] remember skipped: empty content", idx)
        return
    if dispatcher.notes is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return
    try:
        await dispatcher.notes.add(content)
    except StorageError as e:
        logger.error("[%d] remember failed: %s", idx, e)
        turn.reply("I couldn't save that to memory just now.")
        return
    turn.reply(REMEMBER_REPLY)


async def exec_clear_memory(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: ClearMemory
) -> None:
    if dispatcher.notes is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return
    try:
        await dispatcher.notes.clear()
    except StorageError as e:
        logger.error("[%d] clear_memory failed: %s", idx, e)
        turn.reply("I couldn't clear your saved memory just now.")
        return
    logger.info("[%d] memory cleared (reason: %s)", idx, data.reason or "none given")
    turn.reply(CLEAR_MEMORY_REPLY)
