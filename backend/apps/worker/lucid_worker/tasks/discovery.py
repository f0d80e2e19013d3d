"""
Feed discovery tasks.

Background tasks that feed failing catalog feeds into the resilience
engine and keep its learning state fresh. The engine itself is built at
worker startup and shared through the worker context.
"""

from typing import Any

from lucid_core import get_logger
from lucid_core.engine import ResilienceEngine
from lucid_core.schemas import HealingStatus, JobPriority

logger = get_logger(__name__)

# Feeds already being healed, or whose subscribers have moved to an alternative
_SETTLED_STATUSES = (HealingStatus.HEALING, HealingStatus.HEALED)


def _engine(ctx: dict[str, Any]) -> ResilienceEngine:
    return ctx["engine"]


async def queue_feed_discovery(
    ctx: dict[str, Any],
    feed_id: str,
    reason: str = "manual",
    priority: str | None = None,
) -> dict[str, Any]:
    """
    Queue alternative discovery for one feed.

    Args:
        ctx: Worker context.
        feed_id: Catalog feed identifier.
        reason: Why discovery was requested.
        priority: Optional priority override (high, medium or low).

    Returns:
        Dictionary describing whether a job was queued.
    """
    engine = _engine(ctx)
    job = await engine.queue_discovery(
        feed_id, reason=reason, priority=JobPriority(priority) if priority else None
    )
    if job is None:
        return {"status": "skipped", "feed_id": feed_id}
    return {"status": "queued", "feed_id": feed_id, "priority": job.priority.value}


async def scan_failing_feeds(ctx: dict[str, Any]) -> dict[str, int]:
    """Queue discovery for every active, unhealed feed past the failure threshold."""
    engine = _engine(ctx)
    feeds = await engine.store.get_feed_catalog(active_only=True)
    failing = [
        feed
        for feed in feeds
        if feed.consecutive_failures >= engine.config.failure_threshold
        and feed.healing_status not in _SETTLED_STATUSES
    ]

    queued = 0
    for feed in failing:
        if await engine.handle_feed_failure(feed.id) is not None:
            queued += 1

    logger.info(
        "Scanned catalog for failing feeds",
        extra={"scanned": len(feeds), "failing": len(failing), "queued": queued},
    )
    return {"scanned": len(feeds), "failing": len(failing), "queued": queued}


async def refresh_healing_patterns(ctx: dict[str, Any]) -> dict[str, Any]:
    """Recompute per-source-type tactic patterns."""
    patterns = await _engine(ctx).analyze_patterns()
    return {
        "patterns": len(patterns),
        "source_types": [pattern.source_type for pattern in patterns],
    }


async def check_healing_health(ctx: dict[str, Any]) -> dict[str, float]:
    """Log an alert when the last hour's healing success rate is low."""
    rate = await _engine(ctx).check_and_alert()
    return {"success_rate": rate}


async def record_discovery_decision(
    ctx: dict[str, Any],
    attempt_id: str,
    accepted: bool,
    note: str | None = None,
) -> dict[str, Any]:
    """Store a user's accept or decline of a suggested alternative."""
    updated = await _engine(ctx).record_user_decision(attempt_id, accepted, note)
    return {"status": "recorded" if updated else "not_found", "attempt_id": attempt_id}
