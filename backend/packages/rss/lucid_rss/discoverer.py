"""
Feed probing and discovery helpers.

Lightweight HTTP primitives used by discovery strategies and candidate
validation: existence probes, redirect resolution, feed fetching and
feed-link extraction from HTML pages.
"""

import re
from typing import Any
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from .parser import ParsedFeed, parse_feed

USER_AGENT = "LucidFeed/1.0 (Feed Alternative Discovery)"

FEED_LINK_TYPES = ["application/rss+xml", "application/atom+xml"]

_FEED_HREF_PATTERN = re.compile(r"(\.rss$|\.atom$|/feed(/|$|\.)|/rss(/|$|\.)|atom\.xml$)", re.I)


def _client(timeout: float, follow_redirects: bool = True) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=timeout,
        follow_redirects=follow_redirects,
        headers={"User-Agent": USER_AGENT},
    )


async def probe_url(url: str, timeout: float = 3.0) -> bool:
    """
    Check whether a URL exists without downloading it.

    Sends a HEAD request and falls back to GET for servers that reject HEAD.

    Args:
        url: URL to probe.
        timeout: Request timeout in seconds.

    Returns:
        True if the final response is a 2xx.
    """
    async with _client(timeout) as client:
        try:
            response = await client.head(url)
            if response.status_code in (405, 501):
                response = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL):
            return False
    return response.is_success


async def fetch_feed(url: str, timeout: float = 10.0) -> ParsedFeed:
    """
    Fetch and parse a syndication document.

    Args:
        url: Feed URL.
        timeout: Request timeout in seconds.

    Returns:
        Parsed feed.

    Raises:
        ValueError: If the request fails or the body is not a feed.
    """
    async with _client(timeout) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ValueError(f"Failed to fetch feed: {type(e).__name__}: {e}") from e

    return parse_feed(response.content)


async def fetch_text(url: str, timeout: float = 10.0) -> str:
    """
    Fetch a page body as text.

    Raises:
        ValueError: If the request fails.
    """
    async with _client(timeout) as client:
        try:
            response = await client.get(url)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ValueError(f"Failed to fetch URL: {type(e).__name__}: {e}") from e
    return response.text


async def fetch_json(url: str, params: dict[str, str] | None = None, timeout: float = 10.0) -> Any:
    """
    Fetch a JSON document.

    Raises:
        ValueError: If the request fails or the body is not JSON.
    """
    async with _client(timeout) as client:
        try:
            response = await client.get(url, params=params)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise ValueError(f"Failed to fetch URL: {type(e).__name__}: {e}") from e
    return response.json()


async def resolve_redirect(url: str, timeout: float = 5.0) -> str | None:
    """
    Return the redirect target of a URL, without following it.

    Returns:
        Absolute Location of a 3xx response, or None.
    """
    async with _client(timeout, follow_redirects=False) as client:
        try:
            response = await client.head(url)
        except (httpx.HTTPError, httpx.InvalidURL):
            return None

    if not response.is_redirect:
        return None
    location = response.headers.get("location")
    if not location:
        return None
    return urljoin(url, location)


def extract_feed_links(html: str, base_url: str) -> list[str]:
    """
    Extract feed URLs advertised or linked from an HTML page.

    Looks at ``<link>`` alternates first, then anchors whose path looks
    like a feed endpoint.

    Args:
        html: HTML page content.
        base_url: URL the page was fetched from, for relative links.

    Returns:
        Absolute URLs in document order, deduplicated.
    """
    soup = BeautifulSoup(html, "lxml")
    hrefs: list[str] = []

    for link in soup.find_all("link", attrs={"type": FEED_LINK_TYPES}):
        href = link.get("href")
        if href:
            hrefs.append(str(href).strip())

    for anchor in soup.find_all("a", href=True):
        href = str(anchor.get("href") or "").strip()
        if href and _FEED_HREF_PATTERN.search(href.split("?")[0]):
            hrefs.append(href)

    seen: set[str] = set()
    links: list[str] = []
    for href in hrefs:
        absolute = urljoin(base_url, href)
        if not absolute.startswith(("http://", "https://")) or absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)
    return links
