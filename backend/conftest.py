"""Global pytest fixtures for testing."""

import contextlib
from collections.abc import AsyncGenerator
from datetime import datetime
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lucid_core.config import ResilienceConfig
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
from lucid_core.services.collaborators import FeedValidator, Notifier, ResilienceStore
from lucid_database.models import Base

with contextlib.suppress(OSError):
    dotenv.load_dotenv()

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class InMemoryStore(ResilienceStore):
    """Dict-backed store for exercising the engine without a database."""

    def __init__(self) -> None:
        self.feeds: dict[str, FeedRecord] = {}
        self.subscriptions: list[FeedSubscription] = []
        self.discovery_attempts: list[DiscoveryAttempt] = []
        self.profiles: dict[str, HealingProfile] = {}
        self.healing_attempts: list[HealingAttemptLog] = []
        self._ids = 0

    def _next_id(self, prefix: str) -> str:
        self._ids += 1
        return f"{prefix}-{self._ids}"

    def add_feed(self, **fields: Any) -> FeedRecord:
        feed = FeedRecord(**fields)
        self.feeds[feed.id] = feed
        return feed

    def subscribe(self, feed_id: str, *user_ids: str) -> None:
        for user_id in user_ids:
            self.subscriptions.append(FeedSubscription(user_id=user_id, feed_id=feed_id))

    async def get_feed_by_id(self, feed_id: str) -> FeedRecord | None:
        return self.feeds.get(feed_id)

    async def get_feed_catalog(
        self,
        *,
        active_only: bool = False,
        approved_only: bool = False,
        source_type: str | None = None,
    ) -> list[FeedRecord]:
        return [
            feed
            for feed in self.feeds.values()
            if (not active_only or feed.is_active)
            and (not approved_only or feed.is_approved)
            and (source_type is None or feed.source_type == source_type)
        ]

    async def insert_or_find_catalog_entry(
        self, candidate: Candidate, defaults: FeedRecord | None = None
    ) -> FeedRecord:
        for feed in self.feeds.values():
            if feed.url.lower() == candidate.url.lower():
                return feed
        return self.add_feed(
            id=self._next_id("feed"),
            url=candidate.url,
            name=candidate.title or f"{defaults.name if defaults else candidate.url} (Alternative)",
            description=candidate.description or (defaults.description if defaults else None),
            source_type=candidate.source_type or (defaults.source_type if defaults else "journal"),
            topics=candidate.topics or (defaults.topics if defaults else []),
            domain=defaults.domain if defaults else None,
            category=defaults.category if defaults else None,
        )

    async def update_feed_health(self, feed_id: str, patch: FeedHealthPatch) -> None:
        self.feeds[feed_id] = self.feeds[feed_id].model_copy(update=patch.changes())

    async def get_all_feed_subscriptions(self) -> list[FeedSubscription]:
        return list(self.subscriptions)

    async def auto_subscribe_users_to_alternative(self, old_feed_id: str, new_feed_id: str) -> int:
        already = {s.user_id for s in self.subscriptions if s.feed_id == new_feed_id}
        moved = 0
        kept: list[FeedSubscription] = []
        for sub in self.subscriptions:
            if sub.feed_id != old_feed_id:
                kept.append(sub)
                continue
            if sub.user_id not in already:
                kept.append(FeedSubscription(user_id=sub.user_id, feed_id=new_feed_id))
                already.add(sub.user_id)
                moved += 1
        self.subscriptions = kept
        return moved

    async def get_discovery_attempt_count(self, feed_id: str) -> int:
        return sum(1 for a in self.discovery_attempts if a.original_feed_id == feed_id)

    async def save_discovery_attempt(self, attempt: DiscoveryAttempt) -> DiscoveryAttempt:
        saved = attempt.model_copy(update={"id": attempt.id or self._next_id("attempt")})
        self.discovery_attempts.append(saved)
        return saved

    async def mark_discovery_accepted(
        self, attempt_id: str, accepted: bool, note: str | None = None
    ) -> bool:
        for index, attempt in enumerate(self.discovery_attempts):
            if attempt.id == attempt_id:
                self.discovery_attempts[index] = attempt.model_copy(
                    update={"accepted": accepted, "user_note": note or attempt.user_note}
                )
                return True
        return False

    async def get_healing_profile(self, feed_id: str) -> HealingProfile | None:
        return self.profiles.get(feed_id)

    async def update_healing_profile(
        self, feed_id: str, patch: HealingProfilePatch
    ) -> HealingProfile:
        profile = self.profiles.get(feed_id) or HealingProfile(feed_id=feed_id)
        profile = profile.model_copy(update=patch.changes())
        self.profiles[feed_id] = profile
        return profile

    async def log_healing_attempt(self, attempt: HealingAttemptLog) -> HealingAttemptLog:
        logged = attempt.model_copy(update={"id": attempt.id or self._next_id("heal")})
        self.healing_attempts.append(logged)
        return logged

    def _newest_first(self, attempts: list[HealingAttemptLog]) -> list[HealingAttemptLog]:
        # Stable on insertion order for equal timestamps
        indexed = list(enumerate(attempts))
        indexed.sort(key=lambda item: (item[1].attempted_at, item[0]), reverse=True)
        return [attempt for _, attempt in indexed]

    async def get_recent_healing_attempts(
        self, feed_id: str, limit: int = 10
    ) -> list[HealingAttemptLog]:
        mine = [a for a in self.healing_attempts if a.feed_id == feed_id]
        return self._newest_first(mine)[:limit]

    async def get_feeds_by_healing_status(self, status: HealingStatus) -> list[FeedRecord]:
        return [feed for feed in self.feeds.values() if feed.healing_status == status]

    async def get_healing_attempts_since(
        self, since: datetime | None = None, limit: int | None = None
    ) -> list[HealingAttemptLog]:
        attempts = [a for a in self.healing_attempts if since is None or a.attempted_at >= since]
        ordered = self._newest_first(attempts)
        return ordered[:limit] if limit is not None else ordered


class RecordingNotifier(Notifier):
    """Notifier that records every call."""

    def __init__(self) -> None:
        self.switches: list[dict[str, Any]] = []
        self.suggestions: list[dict[str, Any]] = []

    async def notify_users_of_switch(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int:
        self.switches.append(
            {"user_ids": user_ids, "old": old_feed, "new": new_feed, "details": details}
        )
        return len(user_ids)

    async def notify_users_of_suggestion(
        self,
        user_ids: list[str],
        old_feed: FeedRecord,
        new_feed: FeedRecord,
        details: dict[str, Any] | None = None,
    ) -> int:
        self.suggestions.append(
            {"user_ids": user_ids, "old": old_feed, "new": new_feed, "details": details}
        )
        return len(user_ids)


class StubValidator(FeedValidator):
    """Validator answering from a URL -> result table; unknown URLs are invalid."""

    def __init__(self, results: dict[str, ValidationResult] | None = None) -> None:
        self.results = results or {}
        self.calls: list[str] = []

    def accept(self, url: str, item_count: int = 5, title: str | None = None) -> None:
        self.results[url] = ValidationResult(
            is_valid=True, has_items=item_count > 0, item_count=item_count, title=title
        )

    async def validate_candidate(self, url: str) -> ValidationResult:
        self.calls.append(url)
        return self.results.get(url, ValidationResult(is_valid=False, error="HTTP 404"))


@pytest.fixture
def resilience_config() -> ResilienceConfig:
    """Config with network-free defaults and no pauses."""
    return ResilienceConfig(
        _env_file=None,
        poll_interval_seconds=0.01,
        path_probe_pause_seconds=0,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def validator() -> StubValidator:
    return StubValidator()


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()
