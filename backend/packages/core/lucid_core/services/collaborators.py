"""
Collaborator contracts.

The resilience engine owns no storage or delivery. Everything it reads or
writes goes through these interfaces; ``lucid_database`` provides the SQL
implementations.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable
from datetime import datetime
from typing import Any, TypeVar

from lucid_core import get_logger
from lucid_core.schemas import (
    Candidate,
    DiscoveryAttempt,
    FeedHealthPatch,
    FeedRecord,
    FeedSubscription,
    HealingAttemptLog,
    HealingProfile,
    HealingProfilePatch,
    HealingStatus,
    ValidationResult,
)

logger = get_logger(__name__)

T = TypeVar("T")


class FeedCatalogStore(ABC):
    """Read and update access to the feed catalog and subscriptions."""

    @abstractmethod
    async def get_feed_by_id(self, feed_id: str) -> FeedRecord | None: ...

    @abstractmethod
    async def get_feed_catalog(
        self,
        *,
        active_only: bool = False,
        approved_only: bool = False,
        source_type: str | None = None,
    ) -> list[FeedRecord]: ...

    @abstractmethod
    async def insert_or_find_catalog_entry(
        self, candidate: Candidate, defaults: FeedRecord | None = None
    ) -> FeedRecord:
        """
        Return the catalog feed for a candidate URL, creating it if absent.

        Args:
            candidate: Candidate to register.
            defaults: Feed whose name/description/domain/category fill gaps.
        """

    @abstractmethod
    async def update_feed_health(self, feed_id: str, patch: FeedHealthPatch) -> None: ...

    @abstractmethod
    async def get_all_feed_subscriptions(self) -> list[FeedSubscription]: ...

    @abstractmethod
    async def auto_subscribe_users_to_alternative(self, old_feed_id: str, new_feed_id: str) -> int:
        """Move every subscriber of ``old_feed_id`` to ``new_feed_id``; return users moved."""


class DiscoveryStore(ABC):
    """Persistence of discovery attempts."""

    @abstractmethod
    async def get_discovery_attempt_count(self, feed_id: str) -> int: ...

    @abstractmethod
    async def save_discovery_attempt(self, attempt: DiscoveryAttempt) -> DiscoveryAttempt: ...

    @abstractmethod
    async def mark_discovery_accepted(
        self, attempt_id: str, accepted: bool, note: str | None = None
    ) -> bool:
        """Record a user's decision; return False if the attempt does not exist."""


class HealingStore(ABC):
    """Persistence of healing profiles and the attempt log."""

    @abstractmethod
    async def get_healing_profile(self, feed_id: str) -> HealingProfile | None: ...

    @abstractmethod
    async def update_healing_profile(
        self, feed_id: str, patch: HealingProfilePatch
    ) -> HealingProfile:
        """Apply a patch, creating the profile if needed."""

    @abstractmethod
    async def log_healing_attempt(self, attempt: HealingAttemptLog) -> HealingAttemptLog: ...

    @abstractmethod
    async def get_recent_healing_attempts(
        self, feed_id: str, limit: int = 10
    ) -> list[HealingAttemptLog]:
        """Newest first."""

    @abstractmethod
    async def get_feeds_by_healing_status(self, status: HealingStatus) -> list[FeedRecord]: ...

    @abstractmethod
    async def get_healing_attempts_since(
        self, since: datetime | None = None, limit: int | None = None
    ) -> list[HealingAttemptLog]:
        """Attempts across all feeds, newest first."""


class ResilienceStore(FeedCatalogStore, DiscoveryStore, HealingStore, ABC):
    """All persistence the engine needs, from one backend."""


class FeedValidator(ABC):
    """Fetches a candidate URL and checks it is a syndication feed."""

    @abstractmethod
    async def validate_candidate(self, url: str) -> ValidationResult: ...


class Notifier(ABC):
    """Records user-facing notifications. Delivery happens elsewhere."""

    @abstractmethod
    async def notify_users_of_switch(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int: ...

    @abstractmethod
    async def notify_users_of_suggestion(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int: ...


async def safe_persist(operation: Awaitable[T], what: str, feed_id: str) -> T | None:
    """
    Await a best-effort write. Errors are logged and swallowed.
    """
    try:
        return await operation
    except Exception:
        logger.exception(f"Failed to persist {what}", extra={"feed_id": feed_id})
        return None
