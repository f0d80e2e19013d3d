"""
RSS processing package.

Provides RSS/Atom parsing and the HTTP probes used for feed discovery.
"""

from .discoverer import (
    USER_AGENT,
    extract_feed_links,
    fetch_feed,
    fetch_json,
    fetch_text,
    probe_url,
    resolve_redirect,
)
from .parser import ParsedEntry, ParsedFeed, parse_feed

__all__ = [
    "parse_feed",
    "ParsedFeed",
    "ParsedEntry",
    "fetch_feed",
    "fetch_text",
    "fetch_json",
    "probe_url",
    "resolve_redirect",
    "extract_feed_links",
    "USER_AGENT",
]
