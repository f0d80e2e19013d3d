"""
Topic-based discovery.

Finds catalog feeds that cover the same topics as the broken feed.
"""

from collections.abc import Awaitable, Callable

from lucid_core.config import ResilienceConfig
from lucid_core.schemas import Candidate, FeedRecord

from .base import DiscoveryStrategy

MIN_TOPIC_OVERLAP = 0.3
MAX_CANDIDATES = 10


class TopicBasedDiscovery(DiscoveryStrategy):
    """Suggest catalog feeds sharing at least 30% of the broken feed's topics."""

    name = "topic_based"

    def __init__(
        self,
        config: ResilienceConfig,
        catalog_provider: Callable[[], Awaitable[list[FeedRecord]]],
    ) -> None:
        super().__init__(config)
        self._catalog_provider = catalog_provider

    def is_applicable(self, feed: FeedRecord) -> bool:
        return bool(feed.topics)

    async def _discover(self, feed: FeedRecord) -> list[Candidate]:
        if not feed.topics:
            return []

        original_topics = set(feed.topics)
        catalog = await self._catalog_provider()

        scored: list[tuple[FeedRecord, float]] = []
        for other in catalog:
            if other.id == feed.id or other.url == feed.url:
                continue
            if not other.is_active or not other.is_approved:
                continue
            overlap = len(original_topics.intersection(other.topics)) / len(feed.topics)
            if overlap >= MIN_TOPIC_OVERLAP:
                scored.append((other, overlap))

        # Same source type first, then by overlap
        scored.sort(key=lambda item: (item[0].source_type != feed.source_type, -item[1]))

        return [
            Candidate(
                url=other.url,
                title=other.name or None,
                description=other.description,
                source_type=other.source_type,
                topics=list(other.topics),
                strategy=self.name,
                similarity_score=overlap,
            )
            for other, overlap in scored[:MAX_CANDIDATES]
        ]
