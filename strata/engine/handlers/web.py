"""Web action executors."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ...actions.schema import FetchUrl, WebSearch
from ...config import settings
from ...constants import ERROR_MESSAGES
from ...web.search import format_results

if TYPE_CHECKING:
    from ..dispatcher import ExecutionDispatcher, TurnContext

logger = logging.getLogger(__name__)

_MIN_RESULTS, _MAX_RESULTS = 1, 5
_MIN_CHARS, _MAX_CHARS = 500, 4000


def _clamp(value: int | None, default: int, low: int, high: int) -> int:
    return max(low, min(high, value if value is not None else default))


async def exec_web_search(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: WebSearch
) -> None:
    query = data.query.strip()
    if not query:
        turn.reply("What should I search for?")
        return
    if dispatcher.web is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return

    limit = _clamp(data.top_k, settings.web_search_default_results, _MIN_RESULTS, _MAX_RESULTS)
    result = await dispatcher.web.search(query, limit)
    if not result.ok:
        turn.reply(f"I couldn't search the web just now ({result.error_message()}).")
        return
    logger.info("[%d] web_search %r → %d result(s)", idx, query, len(result.value or []))
    turn.reply(format_results(result.value or []))


async def exec_fetch_url(
    dispatcher: ExecutionDispatcher, turn: TurnContext, idx: int, data: FetchUrl
) -> None:
    url = data.url.strip()
    if not url:
        turn.reply("Which page should I open?")
        return
    if dispatcher.web is None:
        turn.reply(ERROR_MESSAGES["not_configured"])
        return

    max_chars = _clamp(data.max_chars, settings.web_fetch_default_chars, _MIN_CHARS, _MAX_CHARS)
    result = await dispatcher.web.fetch(url, max_chars)
    if not result.ok:
        turn.reply(f"I couldn't fetch that page ({result.error_message()}).")
        return
    logger.info("[%d] fetch_url %s → %d chars", idx, url, len(result.value or ""))
    turn.reply(f"Here's a quick summary from {url}:\n{result.value}")
