"""Tests for strata/web/search.py — DuckDuckGo and HTTP are mocked."""

from unittest.mock import MagicMock, patch

import httpx
import pytest

from strata.models import WebSearchResult
from strata.web.search import WebClient, format_results, html_to_text


def test_html_to_text():
    markup = "<html><head><style>p {}</style><script>alert(1)</script></head>" \
             "<body><h1>Title</h1><p>Fish &amp; chips</p></body></html>"
    assert html_to_text(markup) == "Title Fish & chips"


def test_format_results():
    results = [
        WebSearchResult(title="Python", url="https://python.org", snippet="The language"),
        WebSearchResult(title="PyPI", url="https://pypi.org"),
    ]
    text = format_results(results)
    assert text.startswith("1. Python\n   https://python.org\n   The language")
    assert "2. PyPI\n   https://pypi.org" in text


def test_format_results_empty():
    assert format_results([]) == "No results found."


def test_format_results_truncates_snippets():
    text = format_results([WebSearchResult(title="t", url="u", snippet="x" * 300)], max_snippet=10)
    assert text.endswith("x" * 10 + "…")


@pytest.mark.asyncio
async def test_search_maps_results():
    ddgs = MagicMock()
    ddgs.__enter__.return_value.text.return_value = [
        {"title": "Python", "href": "https://python.org", "body": "The language"},
        {"title": "", "href": "https://example.com", "body": ""},
    ]
    with patch("strata.web.search.DDGS", return_value=ddgs):
        result = await WebClient(timeout=1).search("python", limit=2)

    assert [r.title for r in result.value] == ["Python", "(no title)"]
    ddgs.__enter__.return_value.text.assert_called_once_with("python", max_results=2)


@pytest.mark.asyncio
async def test_search_failure_is_a_result():
    ddgs = MagicMock()
    ddgs.__enter__.return_value.text.side_effect = RuntimeError("ratelimited")
    with patch("strata.web.search.DDGS", return_value=ddgs):
        result = await WebClient(timeout=1).search("python")
    assert not result.ok
    assert "ratelimited" in result.error_message()


def _mock_transport(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", factory)


@pytest.mark.asyncio
async def test_fetch_strips_html_and_truncates(monkeypatch):
    def handler(request):
        return httpx.Response(200, html="<p>" + "word " * 50 + "</p>")

    _mock_transport(monkeypatch, handler)
    result = await WebClient(timeout=1).fetch("https://example.com", max_chars=20)
    assert result.value.startswith("word word")
    assert result.value.endswith("…")
    assert len(result.value) <= 21


@pytest.mark.asyncio
async def test_fetch_http_error(monkeypatch):
    _mock_transport(monkeypatch, lambda request: httpx.Response(404, text="missing"))
    result = await WebClient(timeout=1).fetch("https://example.com/nope")
    assert result.status_code == 404
