"""Tests for feed parsing and HTTP probe helpers."""

from unittest.mock import patch

import httpx
import pytest

from lucid_rss import (
    USER_AGENT,
    extract_feed_links,
    fetch_feed,
    fetch_json,
    parse_feed,
    probe_url,
    resolve_redirect,
)

RSS_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Journal</title>
    <link>https://example.com</link>
    <description>Research updates</description>
    <item><title>One</title><link>https://example.com/1</link><guid>1</guid></item>
    <item><title>Two</title><link>https://example.com/2</link><guid>2</guid></item>
  </channel>
</rss>
"""

EMPTY_RSS_BODY = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Quiet</title><link>https://example.com</link>
<description>Nothing yet</description></channel></rss>
"""

HTML_BODY = b"<html><head><title>Home</title></head><body><p>Hello</p></body></html>"


_AsyncClient = httpx.AsyncClient


def _transport(handler):
    """Serve every client request from ``handler``."""
    mock = httpx.MockTransport(handler)
    return patch.object(
        httpx, "AsyncClient", lambda **kwargs: _AsyncClient(transport=mock, **kwargs)
    )


class TestParseFeed:
    """Tests for parse_feed."""

    def test_parses_rss_channel_and_items(self) -> None:
        parsed = parse_feed(RSS_BODY)
        assert parsed.title == "Example Journal"
        assert parsed.description == "Research updates"
        assert parsed.item_count == 2
        assert parsed.has_items is True
        assert parsed.entries[0].url == "https://example.com/1"

    def test_feed_without_items_is_still_a_feed(self) -> None:
        parsed = parse_feed(EMPTY_RSS_BODY)
        assert parsed.has_items is False
        assert parsed.title == "Quiet"

    def test_html_page_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_feed(HTML_BODY)


class TestProbeUrl:
    """Tests for probe_url."""

    @pytest.mark.asyncio
    async def test_head_success(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200)

        with _transport(handler):
            assert await probe_url("https://example.com/feed") is True

        assert seen[0].method == "HEAD"
        assert seen[0].headers["user-agent"] == USER_AGENT

    @pytest.mark.asyncio
    async def test_falls_back_to_get_when_head_not_allowed(self) -> None:
        methods: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(405 if request.method == "HEAD" else 200)

        with _transport(handler):
            assert await probe_url("https://example.com/feed") is True

        assert methods == ["HEAD", "GET"]

    @pytest.mark.asyncio
    async def test_not_found_and_network_errors_are_false(self) -> None:
        def not_found(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with _transport(not_found):
            assert await probe_url("https://example.com/feed") is False
        with _transport(broken):
            assert await probe_url("https://example.com/feed") is False


class TestFetchFeed:
    """Tests for fetch_feed."""

    @pytest.mark.asyncio
    async def test_fetches_and_parses(self) -> None:
        with _transport(lambda request: httpx.Response(200, content=RSS_BODY)):
            parsed = await fetch_feed("https://example.com/rss")
        assert parsed.item_count == 2

    @pytest.mark.asyncio
    async def test_http_error_raises_value_error(self) -> None:
        with _transport(lambda request: httpx.Response(500)):
            with pytest.raises(ValueError, match="Failed to fetch feed"):
                await fetch_feed("https://example.com/rss")

    @pytest.mark.asyncio
    async def test_html_body_raises_value_error(self) -> None:
        with _transport(lambda request: httpx.Response(200, content=HTML_BODY)):
            with pytest.raises(ValueError):
                await fetch_feed("https://example.com/")


class TestFetchJson:
    """Tests for fetch_json."""

    @pytest.mark.asyncio
    async def test_passes_query_params(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["url"] == "https://example.com/rss"
            return httpx.Response(200, json={"ok": True})

        with _transport(handler):
            data = await fetch_json(
                "https://archive.org/wayback/available", params={"url": "https://example.com/rss"}
            )
        assert data == {"ok": True}


class TestResolveRedirect:
    """Tests for resolve_redirect."""

    @pytest.mark.asyncio
    async def test_returns_absolute_location(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(301, headers={"location": "https://new.example.org/"})

        with _transport(handler):
            assert await resolve_redirect("https://old.example.com") == "https://new.example.org/"

    @pytest.mark.asyncio
    async def test_relative_location_is_joined(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"location": "/moved"})

        with _transport(handler):
            assert await resolve_redirect("https://example.com") == "https://example.com/moved"

    @pytest.mark.asyncio
    async def test_non_redirect_returns_none(self) -> None:
        with _transport(lambda request: httpx.Response(200)):
            assert await resolve_redirect("https://example.com") is None


class TestExtractFeedLinks:
    """Tests for extract_feed_links."""

    def test_link_alternates_and_feed_anchors(self) -> None:
        html = """
        <html><head>
          <link rel="alternate" type="application/rss+xml" href="/rss.xml">
          <link rel="alternate" type="application/atom+xml" href="https://example.com/atom.xml">
          <link rel="stylesheet" type="text/css" href="/style.css">
        </head><body>
          <a href="/blog/feed">Feed</a>
          <a href="/about">About</a>
          <a href="/rss.xml">Duplicate</a>
          <a href="mailto:someone@example.com">Mail</a>
        </body></html>
        """
        links = extract_feed_links(html, "https://example.com/page")
        assert links == [
            "https://example.com/rss.xml",
            "https://example.com/atom.xml",
            "https://example.com/blog/feed",
        ]

    def test_page_without_feeds(self) -> None:
        assert extract_feed_links("<html><body>none</body></html>", "https://example.com") == []
