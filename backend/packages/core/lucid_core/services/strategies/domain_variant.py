"""
Domain-variant discovery.

Tries protocol and subdomain permutations of the broken feed URL, then
common feed paths on the same origin.
"""

import asyncio
import re
from urllib.parse import urlparse

from lucid_core.schemas import Candidate, FeedRecord
from lucid_rss import fetch_feed, probe_url

from .base import DiscoveryStrategy

PROTOCOLS = ("https", "http")
SUBDOMAINS = ("", "www.", "feed.", "feeds.", "blog.", "news.")

COMMON_FEED_PATHS = [
    "/feed",
    "/feeds",
    "/rss",
    "/rss.xml",
    "/feed.xml",
    "/atom.xml",
    "/index.xml",
    "/blog/feed",
    "/blog/rss",
    "/news/feed",
    "/news/rss",
    "/posts/feed",
    "/api/feed",
    "/api/rss",
    "/.rss",
    "/feed/",
    "/feeds/",
    "/rss/",
    "/feed.rss",
    "/feed.atom",
]

# Paths that already are the canonical feed endpoints
_GENERIC_PATHS = {"/feed", "/rss", "/"}

_YOUTUBE_CHANNEL = re.compile(r"(?:channel_id=|channel/)([A-Za-z0-9_-]+)")
_SUBREDDIT = re.compile(r"/r/([^/?#.]+)")

VARIANT_SIMILARITY = 0.9
PATH_SIMILARITY = 0.8


class DomainVariantDiscovery(DiscoveryStrategy):
    """Probe URL permutations on the broken feed's own domain."""

    name = "domain_variant"

    def is_applicable(self, feed: FeedRecord) -> bool:
        return True

    async def _discover(self, feed: FeedRecord) -> list[Candidate]:
        parsed = urlparse(feed.url)
        if not parsed.hostname:
            return []

        variations = self.generate_url_variations(feed.url)
        results = await asyncio.gather(*(self._try_variant(url, feed) for url in variations))
        candidates = [candidate for candidate in results if candidate is not None]

        if (parsed.path or "/") not in _GENERIC_PATHS:
            candidates.extend(await self.try_common_feed_paths(feed))

        return candidates

    @staticmethod
    def generate_url_variations(url: str) -> list[str]:
        """All protocol/subdomain permutations of a URL, excluding the URL itself."""
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if parsed.port:
            host = f"{host}:{parsed.port}"
        base_domain = host.removeprefix("www.")
        path = parsed.path or "/"

        variations: list[str] = []
        for protocol in PROTOCOLS:
            for subdomain in SUBDOMAINS:
                variant = f"{protocol}://{subdomain}{base_domain}{path}"
                if variant != url and variant not in variations:
                    variations.append(variant)

        if parsed.query:
            without_query = f"{parsed.scheme}://{parsed.netloc}{path}"
            if without_query not in variations:
                variations.append(without_query)

        return variations

    async def _try_variant(self, url: str, feed: FeedRecord) -> Candidate | None:
        if not await probe_url(url, timeout=self.config.probe_timeout):
            return None
        try:
            parsed = await fetch_feed(url, timeout=self.config.variant_parse_timeout)
        except ValueError:
            return None
        if not parsed.has_items:
            return None
        return self._candidate(
            url,
            feed,
            VARIANT_SIMILARITY,
            title=parsed.title or feed.name or None,
            description=parsed.description or feed.description,
        )

    def common_feed_paths(self, url: str) -> list[str]:
        """Feed paths worth probing on the URL's origin, with platform extras."""
        paths = list(COMMON_FEED_PATHS)
        host = (urlparse(url).hostname or "").lower()

        if "youtube" in host:
            match = _YOUTUBE_CHANNEL.search(url)
            if match:
                channel_id = match.group(1)
                paths.extend(
                    [
                        f"/feeds/videos.xml?channel_id={channel_id}",
                        f"/channel/{channel_id}",
                    ]
                )

        if "reddit" in host:
            match = _SUBREDDIT.search(url)
            if match:
                subreddit = match.group(1)
                paths.extend(
                    [
                        f"/r/{subreddit}.rss",
                        f"/r/{subreddit}/new.rss",
                        f"/r/{subreddit}/hot.rss",
                        f"/r/{subreddit}/top.rss",
                    ]
                )

        return paths

    async def try_common_feed_paths(self, feed: FeedRecord) -> list[Candidate]:
        """Probe common feed paths in small batches to avoid hammering the host."""
        parsed = urlparse(feed.url)
        origin = f"{parsed.scheme}://{parsed.netloc}"
        urls = [origin + path for path in self.common_feed_paths(feed.url)]
        urls = [url for url in urls if url != feed.url]

        batch_size = max(1, self.config.path_probe_batch_size)
        candidates: list[Candidate] = []
        for start in range(0, len(urls), batch_size):
            batch = urls[start : start + batch_size]
            found = await asyncio.gather(
                *(probe_url(url, timeout=self.config.path_probe_timeout) for url in batch)
            )
            candidates.extend(
                self._candidate(url, feed, PATH_SIMILARITY, title=None)
                for url, ok in zip(batch, found)
                if ok
            )
            if start + batch_size < len(urls):
                await asyncio.sleep(self.config.path_probe_pause_seconds)

        return candidates
