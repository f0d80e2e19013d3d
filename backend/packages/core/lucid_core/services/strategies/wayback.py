"""
Web archive discovery.

For feeds that look permanently gone, finds the closest archived snapshot,
extracts feed links and "moved to ..." notices from it, and checks whether
the live domain now redirects somewhere else.
"""

import re
from urllib.parse import urlparse

from lucid_core import get_logger
from lucid_core.schemas import Candidate, FeedRecord, FetchStatus
from lucid_rss import extract_feed_links, fetch_json, fetch_text, resolve_redirect

from .base import DiscoveryStrategy

logger = get_logger(__name__)

WAYBACK_API_URL = "https://archive.org/wayback/available"

# Error fragments that mean the resource or host is gone
PERMANENT_ERROR_MARKERS = (
    "404",
    "enotfound",
    "name or service not known",
    "nodename nor servname",
    "name resolution",
    "getaddrinfo failed",
)

_ARCHIVED_URL = re.compile(r"/web/\d+(?:[a-z]{2}_)?/(https?://.+)")

_DOMAIN_MENTIONS = [
    re.compile(r"moved to ([a-z0-9.-]+\.[a-z]{2,})", re.I),
    re.compile(r"new (?:site|website|domain|url).*?([a-z0-9.-]+\.[a-z]{2,})", re.I),
    re.compile(r"now at ([a-z0-9.-]+\.[a-z]{2,})", re.I),
    re.compile(r"relocated to ([a-z0-9.-]+\.[a-z]{2,})", re.I),
]

ARCHIVE_SIMILARITY = 0.85
DOMAIN_MOVE_SIMILARITY = 0.9


def convert_archived_url(url: str) -> str | None:
    """Turn a snapshot URL back into the live URL it archived."""
    match = _ARCHIVED_URL.search(url)
    if match:
        return match.group(1)
    if url.startswith(("http://", "https://")):
        return url
    return None


def extract_domain_mentions(html: str) -> list[str]:
    domains: list[str] = []
    for pattern in _DOMAIN_MENTIONS:
        for match in pattern.finditer(html):
            domain = match.group(1).lower().strip(".")
            if domain not in domains:
                domains.append(domain)
    return domains


def construct_feed_url(domain: str, feed: FeedRecord) -> str | None:
    """
    Build the likely feed URL of a feed that moved to a new domain.

    Keeps the original path when there is one; otherwise uses the default
    feed path of the source type. Youtube and reddit feeds never move.
    """
    if not domain:
        return None
    if not domain.startswith("http"):
        domain = f"https://{domain}"

    parsed = urlparse(domain)
    if not parsed.netloc:
        return None
    origin = f"{parsed.scheme}://{parsed.netloc}"

    original_path = urlparse(feed.url).path
    if original_path and original_path != "/":
        return origin + original_path

    if feed.source_type in ("youtube", "reddit"):
        return None
    if feed.source_type == "podcast":
        return f"{origin}/rss"
    return f"{origin}/feed"


class WaybackDiscovery(DiscoveryStrategy):
    """Recover moved feeds via the Internet Archive and live redirects."""

    name = "wayback_machine"

    def is_applicable(self, feed: FeedRecord) -> bool:
        if feed.last_fetch_status == FetchStatus.PERMANENT_ERROR:
            return True
        error = (feed.last_error_message or "").lower()
        return any(marker in error for marker in PERMANENT_ERROR_MARKERS)

    async def _discover(self, feed: FeedRecord) -> list[Candidate]:
        candidates: list[Candidate] = []

        snapshot_url = await self.find_snapshot(feed.url)
        if snapshot_url:
            for url in await self.extract_new_urls(snapshot_url, feed):
                candidates.append(
                    self._candidate(
                        url, feed, ARCHIVE_SIMILARITY, title=f"{feed.name} (Archived)"
                    )
                )

        candidates.extend(await self.check_domain_move(feed))
        return candidates

    async def find_snapshot(self, url: str) -> str | None:
        """URL of the closest archived snapshot, if the archive has one."""
        try:
            data = await fetch_json(
                WAYBACK_API_URL, params={"url": url}, timeout=self.config.archive_timeout
            )
        except ValueError as e:
            logger.info("Archive lookup failed", extra={"url": url, "error": str(e)})
            return None

        closest = (data or {}).get("archived_snapshots", {}).get("closest") or {}
        if closest.get("available") is False:
            return None
        return closest.get("url")

    async def extract_new_urls(self, snapshot_url: str, feed: FeedRecord) -> list[str]:
        try:
            html = await fetch_text(snapshot_url, timeout=self.config.archive_timeout)
        except ValueError as e:
            logger.info("Archived page unavailable", extra={"url": snapshot_url, "error": str(e)})
            return []

        urls: list[str] = []
        for link in extract_feed_links(html, snapshot_url):
            current = convert_archived_url(link)
            if current and current != feed.url and current not in urls:
                urls.append(current)

        for domain in extract_domain_mentions(html):
            current = construct_feed_url(domain, feed)
            if current and current != feed.url and current not in urls:
                urls.append(current)

        return urls

    async def check_domain_move(self, feed: FeedRecord) -> list[Candidate]:
        original_host = urlparse(feed.url).hostname
        if not original_host:
            return []

        location = await resolve_redirect(
            f"https://{original_host}", timeout=self.config.redirect_timeout
        )
        if not location:
            return []

        new_host = urlparse(location).hostname
        if not new_host or new_host == original_host:
            return []

        new_url = construct_feed_url(new_host, feed)
        if not new_url:
            return []

        return [
            self._candidate(
                new_url,
                feed,
                DOMAIN_MOVE_SIMILARITY,
                title=f"{feed.name} (New Domain)",
                description=f"Feed moved to {new_host}",
            )
        ]
