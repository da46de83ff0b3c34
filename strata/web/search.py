"""
Web search and page fetch for the ``web_search`` / ``fetch_url`` actions.
Search uses DuckDuckGo via the ddgs package (no API key); fetch uses httpx.
"""

import asyncio
import html
import logging
import re

import httpx
from ddgs import DDGS  # type: ignore[import]

from ..config import settings
from ..exceptions import RemoteServiceError
from ..models import Result, WebSearchResult

logger = logging.getLogger(__name__)

_SCRIPT_STYLE_RE = re.compile(r"<(script|style|noscript)[^>]*>.*?</\1>", re.DOTALL | re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")

_USER_AGENT = "Mozilla/5.0 (compatible; strata/0.1)"


def html_to_text(markup: str) -> str:
    """Very small HTML → text reduction: drop scripts/styles and tags, unescape, squash whitespace."""
    text = _SCRIPT_STYLE_RE.sub(" ", markup)
    text = _TAG_RE.sub(" ", text)
    return _WS_RE.sub(" ", html.unescape(text)).strip()


def format_results(results: list[WebSearchResult], max_snippet: int = 200) -> str:
    """Numbered plain-text list suitable for a chat message."""
    if not results:
        return "No results found."
    lines = []
    for i, r in enumerate(results, 1):
        snippet = r.snippet.strip()
        if len(snippet) > max_snippet:
            snippet = snippet[:max_snippet] + "…"
        lines.append(f"{i}. {r.title}\n   {r.url}" + (f"\n   {snippet}" if snippet else ""))
    return "\n\n".join(lines)


class WebClient:
    """Search + fetch collaborator. Both methods return ``Result``."""

    def __init__(self, timeout: float | None = None) -> None:
        self._timeout = timeout if timeout is not None else settings.web_fetch_timeout

    async def search(self, query: str, limit: int = 3) -> Result[list[WebSearchResult]]:
        def _sync() -> list[dict]:
            with DDGS() as ddgs:
                return list(ddgs.text(query, max_results=limit))

        try:
            raw = await asyncio.to_thread(_sync)
        except Exception as e:
            logger.warning("DuckDuckGo search failed for %r: %s", query, e)
            return Result.failure(RemoteServiceError(f"search failed: {e}"))
        return Result.success([
            WebSearchResult(
                title=r.get("title", "(no title)") or "(no title)",
                url=r.get("href", "") or "",
                snippet=r.get("body", "") or "",
            )
            for r in raw[:limit]
        ])

    async def fetch(self, url: str, max_chars: int = 2000) -> Result[str]:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Fetch of %s returned HTTP %d", url, status)
            return Result.failure(RemoteServiceError(f"HTTP {status}", status_code=status))
        except httpx.HTTPError as e:
            logger.warning("Fetch of %s failed: %s", url, e)
            return Result.failure(RemoteServiceError(f"fetch failed: {e}"))

        content_type = resp.headers.get("content-type", "")
        text = html_to_text(resp.text) if "html" in content_type else resp.text.strip()
        if len(text) > max_chars:
            text = text[:max_chars].rstrip() + "…"
        return Result.success(text)
