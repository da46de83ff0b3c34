"""
Base utilities for Google API clients.

Every public client method returns a ``Result`` instead of raising: the
synchronous google-api-python-client call runs in a worker thread and
``HttpError`` is mapped to ``GoogleAPIError`` with its HTTP status so the
engine's retry wrapper can tell transient failures from permanent ones.

Usage:
    from .base import run_google_call

    async def my_api_call(self, token):
        def _sync():
            return build_service("gmail", "v1", token).users().messages().list(...).execute()
        return await run_google_call("gmail.list", _sync)
"""

import asyncio
import logging
from typing import Callable, TypeVar

from ..exceptions import MissingTokenError, RemoteServiceError
from ..models import Result

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GoogleAPIError(RemoteServiceError):
    """Wrapper for Google API errors with status code."""


def build_service(api: str, version: str, token: str):
    """Build a discovery client authorised with a bearer access token."""
    from google.oauth2.credentials import Credentials  # type: ignore[import]
    from googleapiclient.discovery import build  # type: ignore[import]
    return build(api, version, credentials=Credentials(token=token), cache_discovery=False)


def http_error_to_google_error(error: Exception) -> GoogleAPIError:
    status = getattr(getattr(error, "resp", None), "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None
    reason = getattr(error, "reason", None) or str(error)
    return GoogleAPIError(f"HTTP {status}: {reason}" if status else reason, status_code=status)


async def run_google_call(label: str, fn: Callable[[], T]) -> Result[T]:
    """Run a blocking Google client call in a thread and wrap the outcome."""
    from googleapiclient.errors import HttpError  # type: ignore[import]
    try:
        value = await asyncio.to_thread(fn)
    except HttpError as e:
        mapped = http_error_to_google_error(e)
        logger.warning("%s failed: %s", label, mapped)
        return Result.failure(mapped)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("%s failed: %s", label, e)
        return Result.failure(GoogleAPIError(str(e) or type(e).__name__))
    return Result.success(value)


def require_token(token: str | None) -> Result | None:
    """Return a failure Result when no token is available, else None."""
    if not token:
        return Result.failure(MissingTokenError())
    return None
