"""
Bounded retry for remote mutations.

Each logical mutation gets one fresh idempotency key, reused across its
attempts so a backend that honours it can drop the duplicate. Only
rate-limit (429) and server (5xx) failures are retried, with a linear
back-off of ``backoff × attempt`` seconds. Cancellation during the
back-off propagates to the caller.

Usage:
    result = await with_mutation_retry(
        "create_event",
        lambda key: calendar.create_event(token, ..., idempotency_key=key),
    )
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from typing import Awaitable, Callable, TypeVar

from ..config import settings
from ..models import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_STATUS_IN_MESSAGE_RE = re.compile(r"(?<!\d)(429|5\d\d)(?!\d)")


def generate_idempotency_key() -> str:
    """16 random bytes, hex encoded."""
    return secrets.token_hex(16)


def is_retryable_error(error: Exception | None) -> bool:
    """True for 429 / 5xx failures, judged by status code or, failing that, the message."""
    if error is None:
        return False
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return status == 429 or 500 <= status <= 599
    return bool(_STATUS_IN_MESSAGE_RE.search(str(error)))


async def with_mutation_retry(
    label: str,
    call: Callable[[str], Awaitable[Result[T]]],
    max_attempts: int | None = None,
    backoff_seconds: float | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Result[T]:
    """
    Run ``call(idempotency_key)`` until it succeeds, fails permanently, or
    ``max_attempts`` is reached. Returns the last ``Result``.
    """
    attempts = max_attempts if max_attempts is not None else settings.mutation_max_attempts
    backoff = backoff_seconds if backoff_seconds is not None else settings.mutation_backoff_seconds
    key = generate_idempotency_key()

    result: Result[T] = Result.failure(RuntimeError(f"{label}: no attempt made"))
    for attempt in range(1, attempts + 1):
        logger.debug("%s attempt %d/%d (key=%s)", label, attempt, attempts, key)
        result = await call(key)
        if result.ok:
            if attempt > 1:
                logger.info("%s succeeded on attempt %d", label, attempt)
            return result

        if not is_retryable_error(result.error):
            logger.warning("%s failed (not retrying): %s", label, result.error_message())
            return result

        if attempt < attempts:
            delay = backoff * attempt
            logger.warning(
                "%s transient failure on attempt %d/%d, retrying in %.1fs: %s",
                label, attempt, attempts, delay, result.error_message(),
            )
            await sleep(delay)
        else:
            logger.error("%s: all %d attempts failed: %s", label, attempts, result.error_message())

    return result
