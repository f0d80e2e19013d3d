"""
Discovery strategy base class.

A strategy proposes replacement candidates for a broken feed. Strategies
are independent: a failure inside one is logged and yields no candidates,
so it never blocks the others.
"""

from abc import ABC, abstractmethod

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig
from lucid_core.schemas import Candidate, FeedRecord

logger = get_logger(__name__)


class DiscoveryStrategy(ABC):
    """Abstract base class for discovery strategies."""

    name: str = ""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config

    @abstractmethod
    def is_applicable(self, feed: FeedRecord) -> bool:
        """Whether this strategy can help with the given feed."""

    async def discover(self, feed: FeedRecord) -> list[Candidate]:
        """
        Propose candidates for a broken feed.

        Never raises; internal errors are logged and produce an empty list.
        """
        try:
            return await self._discover(feed)
        except Exception:
            logger.exception(
                "Discovery strategy failed",
                extra={"strategy": self.name, "feed_id": feed.id},
            )
            return []

    @abstractmethod
    async def _discover(self, feed: FeedRecord) -> list[Candidate]: ...

    def _candidate(self, url: str, feed: FeedRecord, similarity: float, **fields) -> Candidate:
        """Candidate that inherits the broken feed's description, type and topics."""
        values = {
            "url": url,
            "title": feed.name or None,
            "description": feed.description,
            "source_type": feed.source_type,
            "topics": list(feed.topics),
        }
        values.update(fields)
        return Candidate(strategy=self.name, similarity_score=similarity, **values)
