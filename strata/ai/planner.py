"""
Anthropic-backed planner: sends the assembled prompt and returns the raw
text the parser consumes. Transient API errors (rate limit, 5xx) are
retried with exponential backoff; every outcome is returned as a Result.
"""

from __future__ import annotations

import asyncio
import base64
import logging

import anthropic

from ..config import settings
from ..exceptions import RemoteServiceError
from ..models import Result
from .prompt import PLANNER_SYSTEM_PROMPT, build_rewrite_prompt

logger = logging.getLogger(__name__)

_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 2.0  # seconds


class ClaudePlanner:
    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None = None,
        model: str | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self._client = client or anthropic.AsyncAnthropic(
            api_key=settings.anthropic_api_key,
            timeout=settings.planner_timeout,
        )
        self._model = model or settings.planner_model
        self._max_tokens = max_tokens or settings.planner_max_tokens

    async def _complete(self, system: str, content: list[dict] | str) -> Result[str]:
        messages = [{"role": "user", "content": content}]
        for attempt in range(_MAX_RETRIES):
            try:
                response = await self._client.messages.create(
                    model=self._model,
                    max_tokens=self._max_tokens,
                    system=system,
                    messages=messages,
                )
            except (anthropic.RateLimitError, anthropic.APIStatusError) as e:
                status = getattr(e, "status_code", None)
                if isinstance(e, anthropic.APIStatusError) and status is not None and status < 500 and status != 429:
                    logger.error("Planner request rejected (%s): %s", status, e)
                    return Result.failure(RemoteServiceError(str(e), status_code=status))
                if attempt < _MAX_RETRIES - 1:
                    delay = _RETRY_BASE_DELAY * (2**attempt)
                    logger.warning(
                        "Planner transient error %s (attempt %d/%d). Retrying in %.1fs",
                        status, attempt + 1, _MAX_RETRIES, delay,
                    )
                    await asyncio.sleep(delay)
                    continue
                return Result.failure(RemoteServiceError(str(e), status_code=status))
            except anthropic.APIConnectionError as e:
                logger.error("Planner unreachable: %s", e)
                return Result.failure(RemoteServiceError(f"planner unreachable: {e}"))

            text = "".join(
                block.text for block in response.content if getattr(block, "type", "") == "text"
            )
            return Result.success(text)

        return Result.failure(RemoteServiceError("planner retries exhausted"))

    async def send_prompt(self, prompt: str, screen: bytes | None = None) -> Result[str]:
        """
        Ask the planner for an action array.

        ``screen`` is an optional JPEG attached as an image block.
        """
        if screen:
            content: list[dict] | str = [
                {
                    "type": "image",
                    "source": {
                        "type": "base64",
                        "media_type": "image/jpeg",
                        "data": base64.b64encode(screen).decode("ascii"),
                    },
                },
                {"type": "text", "text": prompt},
            ]
        else:
            content = prompt
        return await self._complete(PLANNER_SYSTEM_PROMPT, content)

    async def mail_rewrite(self, subject: str, body: str, request: str) -> Result[str]:
        """Ask for a rewritten ``{subject, body}`` JSON object; parse with ``parse_rewrite``."""
        return await self._complete(
            "You are an email rewriting assistant.",
            build_rewrite_prompt(subject, body, request),
        )
