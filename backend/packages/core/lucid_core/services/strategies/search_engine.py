"""
Search-style discovery.

Derives a clean site name and synthesizes likely feed URLs on the same and
sibling domains, ranked by a static relevance heuristic. No live search
API is queried.
"""

import re
from urllib.parse import urlparse

from lucid_core.schemas import Candidate, FeedRecord

from .base import DiscoveryStrategy

_GENERIC_SUFFIX = re.compile(r"\s*-?\s*(RSS|Feed|Podcast|Blog|News|Updates?)$", re.I)
_PLATFORM_SUFFIX = re.compile(r"\s*-?\s*(YouTube|Reddit|Substack)$", re.I)

MAX_RESULTS = 5

# Well-known feeds by topic
TOPIC_FEEDS = [
    {
        "url": "https://www.healthline.com/rss",
        "name": "Healthline",
        "description": "Medical information and health advice",
        "topics": ["metabolic", "nutrition_science", "preventive_medicine"],
    },
    {
        "url": "https://www.sciencedaily.com/rss/all.xml",
        "name": "ScienceDaily",
        "description": "Latest science news and research",
        "topics": ["research", "neuroscience", "biology"],
    },
    {
        "url": "https://feeds.nature.com/nature/rss/current",
        "name": "Nature",
        "description": "International journal of science",
        "topics": ["research", "genetics", "biology"],
    },
    {
        "url": "https://pubmed.ncbi.nlm.nih.gov/rss/search/",
        "name": "PubMed",
        "description": "Biomedical literature database",
        "topics": ["research", "metabolic", "clinical_trials"],
    },
]


class SearchEngineDiscovery(DiscoveryStrategy):
    """Guess feed URLs from the site's name and domain."""

    name = "search_engine"

    def is_applicable(self, feed: FeedRecord) -> bool:
        return True

    @staticmethod
    def extract_site_name(feed: FeedRecord) -> str:
        name = _GENERIC_SUFFIX.sub("", feed.name or "")
        name = _PLATFORM_SUFFIX.sub("", name).strip()
        if len(name) < 3:
            host = (urlparse(feed.url).hostname or "").removeprefix("www.")
            name = host.split(".")[0] if host else name
        return name.strip()

    async def _discover(self, feed: FeedRecord) -> list[Candidate]:
        site_name = self.extract_site_name(feed)
        domain = (urlparse(feed.url).hostname or "").lower().removeprefix("www.")
        if not site_name or not domain:
            return []

        base = domain.split(".")[0]
        results: list[tuple[str, str, str | None, float]] = []
        for url in (
            f"https://{domain}/feed",
            f"https://{domain}/rss",
            f"https://feeds.{domain}",
            f"https://{base}.com/feed",
            f"https://{base}.org/feed",
            f"https://{base}.net/feed",
            f"https://blog.{domain}/feed",
            f"https://news.{domain}/feed",
        ):
            if url != feed.url:
                relevance = 0.7 if domain in url else 0.4
                results.append(
                    (url, f"{site_name} Feed", f"Potential RSS feed for {site_name}", relevance)
                )

        wanted = set(feed.topics)
        for known in TOPIC_FEEDS:
            if wanted.intersection(known["topics"]) and known["url"] != feed.url:
                results.append((known["url"], known["name"], known["description"], 0.5))

        seen: set[str] = set()
        unique = []
        for result in results:
            if result[0] not in seen:
                seen.add(result[0])
                unique.append(result)
        # Stable sort keeps synthesis order among equal relevance
        unique.sort(key=lambda result: result[3], reverse=True)

        return [
            self._candidate(url, feed, relevance, title=title, description=description)
            for url, title, description, relevance in unique[:MAX_RESULTS]
        ]
