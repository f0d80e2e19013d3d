"""Tests for the feed discovery worker tasks."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from lucid_core.engine import ResilienceEngine
from lucid_core.schemas import DiscoveryAttempt, HealingStatus
from lucid_worker import main
from lucid_worker.tasks.discovery import (
    check_healing_health,
    queue_feed_discovery,
    record_discovery_decision,
    refresh_healing_patterns,
    scan_failing_feeds,
)


@pytest.fixture
def ctx(store, notifier, validator, resilience_config) -> dict:
    engine = ResilienceEngine(store, notifier, resilience_config, validator=validator)
    return {"redis": None, "engine": engine}


class TestQueueFeedDiscovery:
    """Tests for queue_feed_discovery."""

    @pytest.mark.asyncio
    async def test_queues_with_priority_override(self, store, ctx) -> None:
        store.add_feed(id="feed-1", url="https://example.com/feed")

        result = await queue_feed_discovery(ctx, "feed-1", priority="high")

        assert result == {"status": "queued", "feed_id": "feed-1", "priority": "high"}
        assert "feed-1" in ctx["engine"].queue

    @pytest.mark.asyncio
    async def test_unknown_feed_is_skipped(self, ctx) -> None:
        result = await queue_feed_discovery(ctx, "missing")
        assert result == {"status": "skipped", "feed_id": "missing"}


@pytest.mark.asyncio
async def test_scan_failing_feeds(store, ctx) -> None:
    """Only active, failing feeds that are not already healing or healed are queued."""
    store.add_feed(id="ok", url="https://ok.org/rss")
    store.add_feed(id="failing", url="https://failing.org/rss", consecutive_failures=4)
    store.add_feed(
        id="healing",
        url="https://healing.org/rss",
        consecutive_failures=9,
        healing_status=HealingStatus.HEALING,
    )
    store.add_feed(
        id="healed",
        url="https://healed.org/rss",
        consecutive_failures=5,
        healing_status=HealingStatus.HEALED,
    )
    store.add_feed(
        id="inactive", url="https://inactive.org/rss", consecutive_failures=9, is_active=False
    )

    result = await scan_failing_feeds(ctx)

    assert result == {"scanned": 4, "failing": 1, "queued": 1}
    assert "failing" in ctx["engine"].queue

    # A second scan finds the job already queued
    assert (await scan_failing_feeds(ctx))["queued"] == 0


@pytest.mark.asyncio
async def test_refresh_healing_patterns(ctx) -> None:
    assert await refresh_healing_patterns(ctx) == {"patterns": 0, "source_types": []}


@pytest.mark.asyncio
async def test_check_healing_health(ctx) -> None:
    assert await check_healing_health(ctx) == {"success_rate": 0.0}


@pytest.mark.asyncio
async def test_record_discovery_decision(store, ctx) -> None:
    attempt = await store.save_discovery_attempt(
        DiscoveryAttempt(
            original_feed_id="feed-1",
            candidate_url="https://other.org/rss",
            strategy="topic_based",
            confidence=72,
        )
    )

    result = await record_discovery_decision(ctx, attempt.id, True, "Thanks")

    assert result == {"status": "recorded", "attempt_id": attempt.id}
    assert store.discovery_attempts[0].accepted is True
    assert (await record_discovery_decision(ctx, "missing", False))["status"] == "not_found"


@pytest.mark.asyncio
async def test_startup_and_shutdown_manage_engine() -> None:
    """Startup builds and starts the engine; shutdown stops it and closes the database."""
    worker_ctx: dict = {}

    with (
        patch.object(main, "init_logging"),
        patch.object(main, "init_database", AsyncMock(return_value=MagicMock())) as init_db,
        patch.object(main, "close_database", AsyncMock()) as close_db,
    ):
        await main.startup(worker_ctx)
        engine = worker_ctx["engine"]
        assert isinstance(engine, ResilienceEngine)
        assert engine.get_status().is_running is True

        await main.shutdown(worker_ctx)

    init_db.assert_awaited_once()
    close_db.assert_awaited_once()
    assert engine.get_status().is_running is False


def test_worker_settings() -> None:
    assert main.WorkerSettings.functions == [queue_feed_discovery, record_discovery_decision]
    assert len(main.WorkerSettings.cron_jobs) == 3
    assert main.WorkerSettings.on_startup is main.startup
