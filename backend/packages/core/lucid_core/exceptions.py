"""
Resilience engine exceptions.
"""


class ResilienceError(Exception):
    """Base class for resilience engine errors."""


class FeedNotFoundError(ResilienceError):
    """Raised when a discovery job references a feed that no longer exists."""

    def __init__(self, feed_id: str) -> None:
        super().__init__(f"Feed not found: {feed_id}")
        self.feed_id = feed_id
