"""
RSS/Atom feed parser.

Parses syndication documents using feedparser.
"""

from typing import Any

import feedparser
from feedparser import FeedParserDict


class ParsedFeed:
    """Parsed feed metadata used to judge a replacement candidate."""

    def __init__(self, data: FeedParserDict):
        """
        Initialize from feedparser data.

        Args:
            data: Parsed feed data from feedparser.
        """
        feed_info = data.get("feed", {})
        self.title = feed_info.get("title", "")
        self.description = feed_info.get("description") or feed_info.get("subtitle", "")
        self.site_url = feed_info.get("link", "")
        self.version = data.get("version") or ""
        self.entries = [ParsedEntry(entry) for entry in data.get("entries", [])]

    @property
    def item_count(self) -> int:
        return len(self.entries)

    @property
    def has_items(self) -> bool:
        return self.item_count > 0


class ParsedEntry:
    """Minimal entry view; only identity and link are needed for validation."""

    def __init__(self, data: dict[str, Any]):
        self.guid = data.get("id") or data.get("link", "")
        self.url = data.get("link", "")
        self.title = data.get("title", "")


def parse_feed(content: str | bytes) -> ParsedFeed:
    """
    Parse RSS/Atom feed from content.

    Args:
        content: Feed XML content.

    Returns:
        Parsed feed data.

    Raises:
        ValueError: If the content is not a syndication document.
    """
    data = feedparser.parse(content)

    if data.get("bozo", False) and not data.get("entries"):
        raise ValueError(f"Failed to parse feed: {data.get('bozo_exception', 'Unknown error')}")

    # feedparser happily "parses" HTML pages into an empty result
    if not data.get("version") and not data.get("entries"):
        raise ValueError("Failed to parse feed: document is not RSS or Atom")

    return ParsedFeed(data)
