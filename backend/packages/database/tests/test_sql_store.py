"""Tests for the SQL store and notifier."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from lucid_core.exceptions import FeedNotFoundError
from lucid_core.schemas import (
    Candidate,
    DiscoveryAttempt,
    FeedHealthPatch,
    FetchStatus,
    HealingAttemptLog,
    HealingProfilePatch,
    HealingStatus,
)
from lucid_database import SqlNotifier, SqlResilienceStore
from lucid_database.models import FeedCatalog, FeedNotification, generate_uuid


async def _add_feed(session_factory, **fields) -> str:
    values = {
        "id": generate_uuid(),
        "url": "https://example.com/feed",
        "name": "Example",
        "description": "Research updates",
        "source_type": "journal",
        "topics": ["longevity", "metabolic"],
        "domain": "health",
        "category": "research",
    }
    values.update(fields)
    async with session_factory() as session:
        session.add(FeedCatalog(**values))
        await session.commit()
    return values["id"]


@pytest.fixture
def sql_store(session_factory) -> SqlResilienceStore:
    return SqlResilienceStore(session_factory)


@pytest.fixture
def sql_notifier(session_factory) -> SqlNotifier:
    return SqlNotifier(session_factory)


class TestCatalog:
    """Tests for catalog reads and writes."""

    @pytest.mark.asyncio
    async def test_insert_takes_defaults_from_broken_feed(self, session_factory, sql_store) -> None:
        broken = await sql_store.get_feed_by_id(await _add_feed(session_factory))
        candidate = Candidate(url="https://www.example.com/rss", strategy="domain_variant")

        entry = await sql_store.insert_or_find_catalog_entry(candidate, defaults=broken)

        assert entry.id != broken.id
        assert entry.name == "Example (Alternative)"
        assert entry.description == "Research updates"
        assert entry.topics == ["longevity", "metabolic"]
        assert (entry.domain, entry.category) == ("health", "research")
        assert entry.healing_status == HealingStatus.HEALTHY
        assert entry.is_active and entry.is_approved

    @pytest.mark.asyncio
    async def test_existing_url_matches_case_insensitively(
        self, session_factory, sql_store
    ) -> None:
        feed_id = await _add_feed(session_factory, url="https://Example.com/RSS")
        candidate = Candidate(
            url="https://example.com/rss", title="Other", strategy="topic_based"
        )

        entry = await sql_store.insert_or_find_catalog_entry(candidate)

        assert entry.id == feed_id
        assert entry.name == "Example"
        assert len(await sql_store.get_feed_catalog()) == 1

    @pytest.mark.asyncio
    async def test_catalog_filters(self, session_factory, sql_store) -> None:
        await _add_feed(session_factory, url="https://a.org/rss")
        await _add_feed(session_factory, url="https://b.fm/rss", source_type="podcast")
        await _add_feed(session_factory, url="https://c.org/rss", is_active=False)

        assert len(await sql_store.get_feed_catalog()) == 3
        assert len(await sql_store.get_feed_catalog(active_only=True)) == 2
        [podcast] = await sql_store.get_feed_catalog(source_type="podcast")
        assert podcast.url == "https://b.fm/rss"

    @pytest.mark.asyncio
    async def test_update_feed_health(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(
            session_factory, consecutive_failures=6, last_fetch_status="permanent_error"
        )
        healed_at = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

        await sql_store.update_feed_health(
            feed_id,
            FeedHealthPatch(
                consecutive_failures=0,
                last_fetch_status=FetchStatus.SUCCESS,
                healing_status=HealingStatus.HEALED,
                last_healing_at=healed_at,
            ),
        )

        feed = await sql_store.get_feed_by_id(feed_id)
        assert feed.consecutive_failures == 0
        assert feed.last_fetch_status == FetchStatus.SUCCESS
        assert feed.healing_status == HealingStatus.HEALED
        assert feed.last_healing_at == healed_at
        assert [f.id for f in await sql_store.get_feeds_by_healing_status(HealingStatus.HEALED)] == [
            feed_id
        ]

    @pytest.mark.asyncio
    async def test_update_unknown_feed_raises(self, sql_store) -> None:
        with pytest.raises(FeedNotFoundError):
            await sql_store.update_feed_health("missing", FeedHealthPatch(consecutive_failures=0))


class TestSubscriptions:
    """Tests for subscriber migration."""

    @pytest.mark.asyncio
    async def test_migration_skips_existing_subscribers(self, session_factory, sql_store) -> None:
        old_id = await _add_feed(session_factory, url="https://old.org/rss")
        new_id = await _add_feed(session_factory, url="https://new.org/rss")
        for user_id in ("u1", "u2", "u3"):
            await sql_store.add_subscription(user_id, old_id)
        await sql_store.add_subscription("u2", new_id)

        moved = await sql_store.auto_subscribe_users_to_alternative(old_id, new_id)

        assert moved == 2
        subscriptions = await sql_store.get_all_feed_subscriptions()
        assert sorted(s.user_id for s in subscriptions if s.feed_id == new_id) == [
            "u1",
            "u2",
            "u3",
        ]
        assert not [s for s in subscriptions if s.feed_id == old_id]

    @pytest.mark.asyncio
    async def test_same_feed_is_a_no_op(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(session_factory)
        await sql_store.add_subscription("u1", feed_id)

        assert await sql_store.auto_subscribe_users_to_alternative(feed_id, feed_id) == 0

    @pytest.mark.asyncio
    async def test_add_subscription_is_idempotent(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(session_factory)
        await sql_store.add_subscription("u1", feed_id)
        await sql_store.add_subscription("u1", feed_id)

        assert len(await sql_store.get_all_feed_subscriptions()) == 1


class TestDiscoveryAttempts:
    """Tests for discovery attempt records."""

    @pytest.mark.asyncio
    async def test_save_count_and_accept(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(session_factory)
        low = await sql_store.save_discovery_attempt(
            DiscoveryAttempt(
                original_feed_id=feed_id,
                candidate_url="https://a.org/rss",
                strategy="topic_based",
                confidence=55,
                metadata={"similarity_score": 0.4},
            )
        )
        await sql_store.save_discovery_attempt(
            DiscoveryAttempt(
                original_feed_id=feed_id,
                candidate_url="https://b.org/rss",
                strategy="domain_variant",
                confidence=88,
            )
        )

        assert await sql_store.get_discovery_attempt_count(feed_id) == 2
        attempts = await sql_store.get_discovery_attempts(feed_id)
        assert [a.confidence for a in attempts] == [88, 55]
        assert attempts[1].metadata == {"similarity_score": 0.4}

        assert await sql_store.mark_discovery_accepted(low.id, True, "Looks right") is True
        [_, accepted] = await sql_store.get_discovery_attempts(feed_id)
        assert accepted.accepted is True
        assert accepted.user_note == "Looks right"
        assert accepted.processed_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_accepting_unknown_attempt(self, sql_store) -> None:
        assert await sql_store.mark_discovery_accepted("missing", False) is False


class TestHealing:
    """Tests for healing profiles and the attempt log."""

    @pytest.mark.asyncio
    async def test_profile_upsert_and_clear(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(session_factory)

        created = await sql_store.update_healing_profile(
            feed_id, HealingProfilePatch(success_count=1, preferred_tactic="domain_variant")
        )
        assert (created.success_count, created.failure_count) == (1, 0)
        assert created.preferred_tactic == "domain_variant"

        cleared = await sql_store.update_healing_profile(
            feed_id, HealingProfilePatch(preferred_tactic=None)
        )
        assert cleared.preferred_tactic is None
        assert cleared.success_count == 1
        assert (await sql_store.get_healing_profile(feed_id)).preferred_tactic is None

    @pytest.mark.asyncio
    async def test_attempt_log_ordering_and_window(self, session_factory, sql_store) -> None:
        feed_id = await _add_feed(session_factory)
        now = datetime.now(UTC)
        for hours, tactic in ((3, "topic_based"), (2, "wayback_machine"), (1, "domain_variant")):
            await sql_store.log_healing_attempt(
                HealingAttemptLog(
                    feed_id=feed_id,
                    tactic=tactic,
                    success=tactic == "domain_variant",
                    response_time_ms=150,
                    attempted_at=now - timedelta(hours=hours),
                    metadata={"decision": "none"},
                )
            )

        recent = await sql_store.get_recent_healing_attempts(feed_id, limit=2)
        assert [a.tactic for a in recent] == ["domain_variant", "wayback_machine"]
        assert recent[0].attempted_at.tzinfo is not None
        assert recent[0].metadata == {"decision": "none"}

        since = (now - timedelta(minutes=150)).astimezone(timezone(timedelta(hours=5)))
        window = await sql_store.get_healing_attempts_since(since)
        assert [a.tactic for a in window] == ["domain_variant", "wayback_machine"]
        assert len(await sql_store.get_healing_attempts_since(None, limit=1)) == 1


class TestSqlNotifier:
    """Tests for notification writes and throttling."""

    @pytest.mark.asyncio
    async def test_repeat_suggestions_are_suppressed(
        self, session_factory, sql_store, sql_notifier
    ) -> None:
        old = await sql_store.get_feed_by_id(await _add_feed(session_factory, name="Old"))
        new = await sql_store.get_feed_by_id(
            await _add_feed(session_factory, url="https://new.org/rss", name="New")
        )

        assert await sql_notifier.notify_users_of_suggestion(["u1", "u2", "u1"], old, new) == 2
        assert await sql_notifier.notify_users_of_suggestion(["u1", "u2", "u3"], old, new) == 1

        [notification] = await sql_notifier.get_user_notifications("u3")
        assert notification.notification_type == "suggestion"
        assert notification.feed_id == old.id
        assert notification.message.startswith('Alternative found for "Old"')
        assert notification.technical_details["new_feed_url"] == "https://new.org/rss"

    @pytest.mark.asyncio
    async def test_suggestion_after_cooldown(
        self, session_factory, sql_store, sql_notifier
    ) -> None:
        old = await sql_store.get_feed_by_id(await _add_feed(session_factory))
        new = await sql_store.get_feed_by_id(
            await _add_feed(session_factory, url="https://new.org/rss")
        )
        stale = datetime.now(UTC) - timedelta(hours=49)
        async with session_factory() as session:
            session.add(
                FeedNotification(
                    id=generate_uuid(),
                    user_id="u1",
                    feed_id=old.id,
                    notification_type="suggestion",
                    severity="info",
                    message="earlier",
                    technical_details={},
                    is_read=False,
                    created_at=stale,
                    updated_at=stale,
                )
            )
            await session.commit()

        assert await sql_notifier.notify_users_of_suggestion(["u1"], old, new) == 1

    @pytest.mark.asyncio
    async def test_switch_notices_always_go_out(
        self, session_factory, sql_store, sql_notifier
    ) -> None:
        old = await sql_store.get_feed_by_id(await _add_feed(session_factory, name="Old"))
        new = await sql_store.get_feed_by_id(
            await _add_feed(session_factory, url="https://new.org/rss")
        )

        details = {"confidence": 92}
        assert await sql_notifier.notify_users_of_switch(["u1"], old, new, details) == 1
        assert await sql_notifier.notify_users_of_switch(["u1"], old, new, details) == 1

        notifications = await sql_notifier.get_user_notifications("u1")
        assert [n.notification_type for n in notifications] == ["switch", "switch"]
        assert notifications[0].technical_details["confidence"] == 92
        assert "automatically switched" in notifications[0].message

    @pytest.mark.asyncio
    async def test_mark_read(self, session_factory, sql_store, sql_notifier) -> None:
        old = await sql_store.get_feed_by_id(await _add_feed(session_factory))
        new = await sql_store.get_feed_by_id(
            await _add_feed(session_factory, url="https://new.org/rss")
        )
        await sql_notifier.notify_users_of_switch(["u1", "u2"], old, new)
        [mine] = await sql_notifier.get_user_notifications("u1")
        [theirs] = await sql_notifier.get_user_notifications("u2")

        assert await sql_notifier.mark_notifications_read("u1", [mine.id, theirs.id]) == 1
        assert await sql_notifier.mark_notifications_read("u1", [mine.id]) == 0
        assert await sql_notifier.get_user_notifications("u1", unread_only=True) == []
        assert len(await sql_notifier.get_user_notifications("u2", unread_only=True)) == 1
