"""
Social platform discovery.

Source-type heuristics for video channels, community forums and audio
shows, plus a small curated table of topically related sources.
"""

import re

from lucid_core.schemas import Candidate, FeedRecord

from .base import DiscoveryStrategy

_CHANNEL_ID = re.compile(r"channel_id=([^&]+)")
_SUBREDDIT = re.compile(r"/r/([^/.?#]+)")
_PODCAST_WORD = re.compile(r"\s*podcast\s*", re.I)

REDDIT_SORTS = ("hot", "new", "top", "rising")

# Alternate hosting platforms for audio shows: (domain, feed URL prefix)
PODCAST_PLATFORMS = [
    ("feeds.megaphone.fm", "https://feeds.megaphone.fm/"),
    ("feeds.libsyn.com", "https://feeds.libsyn.com/"),
    ("feeds.soundcloud.com", "https://feeds.soundcloud.com/users/soundcloud:users:"),
    ("anchor.fm", "https://anchor.fm/s/"),
]

RELATED_YOUTUBE_CHANNELS = [
    {
        "id": "UCh7B1G75V9J8gfQRLsaB0Tw",
        "name": "FoundMyFitness",
        "description": "Dr. Rhonda Patrick - Health and longevity research",
        "topics": ["longevity", "nutrition_science", "biohacking"],
    },
    {
        "id": "UCFk__lBKkAh-tBhl7YRo0Sg",
        "name": "Peter Attia MD",
        "description": "The Drive podcast - Longevity and health optimization",
        "topics": ["longevity", "metabolic", "preventive_medicine"],
    },
    {
        "id": "UC6mZF3XOGYCfYRiJM8oCbOQ",
        "name": "Andrew Huberman",
        "description": "Huberman Lab - Neuroscience and health",
        "topics": ["neuroscience", "sleep_optimization", "mental_health"],
    },
]

RELATED_SUBREDDITS = [
    {
        "name": "Biohackers",
        "description": "Biohacking and self-optimization",
        "topics": ["biohacking", "longevity", "supplementation"],
    },
    {
        "name": "ScientificNutrition",
        "description": "Evidence-based nutrition discussion",
        "topics": ["nutrition_science", "metabolic", "research"],
    },
    {
        "name": "Longevity",
        "description": "Longevity science and interventions",
        "topics": ["longevity", "preventive_medicine", "autophagy"],
    },
    {
        "name": "Nootropics",
        "description": "Cognitive enhancement and brain health",
        "topics": ["cognitive_science", "supplementation", "brain_fog"],
    },
]


def _related(table: list[dict], topics: list[str]) -> list[dict]:
    wanted = set(topics)
    return [entry for entry in table if wanted.intersection(entry["topics"])]


class SocialApiDiscovery(DiscoveryStrategy):
    """Platform-specific alternatives for youtube, reddit and podcast feeds."""

    name = "social_api"

    def is_applicable(self, feed: FeedRecord) -> bool:
        return feed.source_type in ("youtube", "reddit", "podcast")

    async def _discover(self, feed: FeedRecord) -> list[Candidate]:
        if feed.source_type == "youtube":
            return self.discover_youtube(feed)
        if feed.source_type == "reddit":
            return self.discover_reddit(feed)
        if feed.source_type == "podcast":
            return self.discover_podcast(feed)
        return []

    def discover_youtube(self, feed: FeedRecord) -> list[Candidate]:
        candidates: list[Candidate] = []

        match = _CHANNEL_ID.search(feed.url)
        if match:
            channel_id = match.group(1)
            for url in (
                f"https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}",
                f"https://youtube.com/feeds/videos.xml?channel_id={channel_id}",
                f"https://www.youtube.com/channel/{channel_id}",
            ):
                if url != feed.url:
                    candidates.append(self._candidate(url, feed, 0.95, source_type="youtube"))

        for channel in _related(RELATED_YOUTUBE_CHANNELS, feed.topics):
            candidates.append(
                Candidate(
                    url=f"https://www.youtube.com/feeds/videos.xml?channel_id={channel['id']}",
                    title=channel["name"],
                    description=channel["description"],
                    source_type="youtube",
                    topics=list(channel["topics"]),
                    strategy=self.name,
                    similarity_score=0.6,
                )
            )
        return candidates

    def discover_reddit(self, feed: FeedRecord) -> list[Candidate]:
        match = _SUBREDDIT.search(feed.url)
        if not match:
            return []

        subreddit = match.group(1)
        candidates: list[Candidate] = []
        for sort in REDDIT_SORTS:
            url = f"https://www.reddit.com/r/{subreddit}/{sort}.rss"
            if url != feed.url:
                candidates.append(
                    self._candidate(
                        url, feed, 0.9, title=f"r/{subreddit} ({sort})", source_type="reddit"
                    )
                )

        for related in _related(RELATED_SUBREDDITS, feed.topics):
            if related["name"].lower() == subreddit.lower():
                continue
            candidates.append(
                Candidate(
                    url=f"https://www.reddit.com/r/{related['name']}/.rss",
                    title=f"r/{related['name']}",
                    description=related["description"],
                    source_type="reddit",
                    topics=list(related["topics"]),
                    strategy=self.name,
                    similarity_score=0.5,
                )
            )
        return candidates

    def discover_podcast(self, feed: FeedRecord) -> list[Candidate]:
        show_name = _PODCAST_WORD.sub(" ", feed.name).strip()
        slug = re.sub(r"\s+", "", show_name.lower())
        if not slug:
            return []

        return [
            self._candidate(
                f"{prefix}{slug}/rss",
                feed,
                0.4,
                title=f"{feed.name} ({domain})",
                source_type="podcast",
            )
            for domain, prefix in PODCAST_PLATFORMS
            if domain not in feed.url
        ]
