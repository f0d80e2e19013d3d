"""
Healing learning loop.

Keeps per-feed healing profiles up to date, promotes tactics that keep
working, decays stale preferences and derives per-source-type patterns
used as a fallback recommendation.
"""

import math
from collections.abc import Callable
from datetime import UTC, datetime

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig
from lucid_core.schemas import (
    FeedHealthPatch,
    FeedRecord,
    FetchStatus,
    HealingAttemptLog,
    HealingProfile,
    HealingProfilePatch,
    PatternAnalysis,
    TacticStatistics,
)
from lucid_core.ttl_cache import TTLCache

from .collaborators import ResilienceStore

logger = get_logger(__name__)

PROMOTION_WINDOW = 10
PROMOTION_MIN_ATTEMPTS = 3
PROMOTION_SUCCESS_RATE = 0.7
CONFIDENCE_MIN_ATTEMPTS = 3
CONFIDENCE_SUCCESS_RATE = 0.5
PATTERN_TOP_TACTICS = 3
METRICS_WINDOW = 100


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)


class LearningLoop:
    """Adaptive selection of recovery tactics."""

    def __init__(
        self,
        store: ResilienceStore,
        config: ResilienceConfig,
        pattern_cache: TTLCache[list[PatternAnalysis]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.config = config
        if pattern_cache is None:
            pattern_cache = TTLCache(config.pattern_cache_ttl_seconds)
        self.pattern_cache = pattern_cache
        self._now = clock

    async def learn_from_attempt(self, attempt: HealingAttemptLog) -> None:
        """
        Fold a logged healing attempt into the feed's profile.

        Failures are logged and swallowed; learning never interrupts healing.
        """
        logger.info(
            "Learning from healing attempt",
            extra={"feed_id": attempt.feed_id, "tactic": attempt.tactic, "success": attempt.success},
        )
        try:
            await self.update_tactic_stats(
                attempt.feed_id, attempt.tactic, attempt.success, attempt.response_time_ms or 0
            )
            if attempt.success:
                await self.consider_tactic_promotion(attempt.feed_id, attempt.tactic)
        except Exception:
            logger.exception("Failed to learn from attempt", extra={"feed_id": attempt.feed_id})

    async def update_tactic_stats(
        self, feed_id: str, tactic: str, success: bool, duration_ms: int
    ) -> HealingProfile:
        profile = await self.store.get_healing_profile(feed_id) or HealingProfile(feed_id=feed_id)

        total = profile.total_attempts + 1
        avg = round((profile.avg_recovery_time_ms * (total - 1) + duration_ms) / total)

        changes = {
            "success_count": profile.success_count + (1 if success else 0),
            "failure_count": profile.failure_count + (0 if success else 1),
            "avg_recovery_time_ms": avg,
            "last_updated": self._now(),
        }
        if success:
            changes["last_successful_tactic"] = tactic
        return await self.store.update_healing_profile(feed_id, HealingProfilePatch(**changes))

    async def consider_tactic_promotion(self, feed_id: str, tactic: str) -> bool:
        """Promote a tactic that succeeded in more than 70% of its recent attempts."""
        recent = await self.store.get_recent_healing_attempts(feed_id, PROMOTION_WINDOW)
        tactic_attempts = [attempt for attempt in recent if attempt.tactic == tactic]
        if len(tactic_attempts) < PROMOTION_MIN_ATTEMPTS:
            return False

        success_rate = sum(1 for a in tactic_attempts if a.success) / len(tactic_attempts)
        if success_rate <= PROMOTION_SUCCESS_RATE:
            return False

        await self.promote_successful_tactic(feed_id, tactic)
        return True

    async def promote_successful_tactic(self, feed_id: str, tactic: str) -> None:
        logger.info("Promoting tactic", extra={"feed_id": feed_id, "tactic": tactic})
        await self.store.update_healing_profile(
            feed_id,
            HealingProfilePatch(
                preferred_tactic=tactic,
                last_successful_tactic=tactic,
                last_updated=self._now(),
            ),
        )
        if await self.store.get_feed_by_id(feed_id) is not None:
            await self.store.update_feed_health(
                feed_id,
                FeedHealthPatch(
                    last_fetch_status=FetchStatus.SUCCESS,
                    consecutive_failures=0,
                    preferred_recovery_tactic=tactic,
                ),
            )

    async def get_best_tactic(self, feed_id: str) -> str | None:
        """
        Recommend a recovery tactic for a feed.

        Uses the feed's own preferred tactic when it is fresh and has a good
        record, otherwise the pattern for its source type.
        """
        try:
            profile = await self.store.get_healing_profile(feed_id)
            if profile is not None:
                profile = await self.apply_decay(feed_id, profile)
                if profile.preferred_tactic and self.has_confidence(profile):
                    return profile.preferred_tactic

            feed = await self.store.get_feed_by_id(feed_id)
            if feed is None:
                return None
            return await self.get_pattern_based_tactic(feed.source_type)
        except Exception:
            logger.exception("Failed to get best tactic", extra={"feed_id": feed_id})
            return None

    def decay_factor(self, last_updated: datetime | None) -> float:
        """1.0 while fresh, then shrinking linearly per stale day down to a floor."""
        if last_updated is None:
            return 1.0
        elapsed = self._now() - _aware(last_updated)
        days = math.floor(elapsed.total_seconds() / 86400)
        if days <= self.config.decay_threshold_days:
            return 1.0
        return max(
            self.config.min_decay_factor,
            1 - self.config.decay_rate * (days - self.config.decay_threshold_days),
        )

    async def apply_decay(self, feed_id: str, profile: HealingProfile) -> HealingProfile:
        """Clear a stale preferred tactic so the next attempt re-evaluates it."""
        if not profile.preferred_tactic:
            return profile

        factor = self.decay_factor(profile.last_updated)
        if factor >= self.config.decay_clear_factor:
            return profile

        logger.info(
            "Clearing decayed preferred tactic",
            extra={"feed_id": feed_id, "tactic": profile.preferred_tactic, "factor": round(factor, 2)},
        )
        await self.store.update_healing_profile(
            feed_id, HealingProfilePatch(preferred_tactic=None, last_updated=self._now())
        )
        return profile.model_copy(update={"preferred_tactic": None})

    @staticmethod
    def has_confidence(profile: HealingProfile) -> bool:
        if profile.total_attempts < CONFIDENCE_MIN_ATTEMPTS:
            return False
        return profile.success_rate > CONFIDENCE_SUCCESS_RATE

    async def get_pattern_based_tactic(self, source_type: str | None) -> str | None:
        if not source_type:
            return None
        for pattern in await self.get_patterns():
            if pattern.source_type == source_type and pattern.preferred_tactics:
                return pattern.preferred_tactics[0]
        return None

    async def get_patterns(self) -> list[PatternAnalysis]:
        """Cached patterns, recomputed when stale."""
        cached = self.pattern_cache.get()
        if cached is not None:
            return cached
        return await self.analyze_patterns()

    async def analyze_patterns(self) -> list[PatternAnalysis]:
        """Rank tactics per source type across the whole catalog and cache the result."""
        feeds = await self.store.get_feed_catalog()
        by_type: dict[str, list[FeedRecord]] = {}
        for feed in feeds:
            by_type.setdefault(feed.source_type or "unknown", []).append(feed)

        patterns: list[PatternAnalysis] = []
        for source_type, feed_list in by_type.items():
            if len(feed_list) < self.config.min_pattern_samples:
                continue

            stats: dict[str, list[int]] = {}
            for feed in feed_list:
                profile = await self.store.get_healing_profile(feed.id)
                if profile is None or not profile.last_successful_tactic:
                    continue
                counts = stats.setdefault(profile.last_successful_tactic, [0, 0])
                counts[0] += profile.success_count
                counts[1] += profile.total_attempts

            ranked = sorted(
                ((tactic, success / total) for tactic, (success, total) in stats.items() if total),
                key=lambda item: item[1],
                reverse=True,
            )
            if not ranked:
                continue

            pattern = PatternAnalysis(
                source_type=source_type,
                preferred_tactics=[tactic for tactic, _ in ranked[:PATTERN_TOP_TACTICS]],
                success_rate=sum(rate for _, rate in ranked) / len(ranked),
                sample_size=len(feed_list),
            )
            patterns.append(pattern)
            logger.info(
                "Healing pattern derived",
                extra={
                    "source_type": source_type,
                    "tactics": pattern.preferred_tactics,
                    "success_rate": round(pattern.success_rate, 3),
                },
            )

        return self.pattern_cache.set(patterns)

    async def get_feed_metrics(self, feed_id: str) -> list[TacticStatistics]:
        """Per-tactic statistics for one feed, best success rate first."""
        attempts = await self.store.get_recent_healing_attempts(feed_id, METRICS_WINDOW)

        groups: dict[str, list[HealingAttemptLog]] = {}
        for attempt in attempts:
            groups.setdefault(attempt.tactic or "unknown", []).append(attempt)

        metrics: list[TacticStatistics] = []
        for tactic, group in groups.items():
            successes = [a for a in group if a.success]
            last_success = max((a.attempted_at for a in successes), default=None)
            total_duration = sum(a.response_time_ms or 0 for a in group)
            metrics.append(
                TacticStatistics(
                    tactic=tactic,
                    success_rate=len(successes) / len(group),
                    avg_duration_ms=round(total_duration / len(group)),
                    total_attempts=len(group),
                    last_success=last_success,
                    confidence=self.calculate_confidence(group, last_success),
                )
            )

        metrics.sort(key=lambda stat: stat.success_rate, reverse=True)
        return metrics

    def calculate_confidence(
        self, attempts: list[HealingAttemptLog], last_success: datetime | None
    ) -> float:
        if not attempts:
            return 0.0
        success_rate = sum(1 for a in attempts if a.success) / len(attempts)
        recency = self.recency_bonus(last_success) if last_success else 0.0
        sample_size = min(len(attempts) / 10, 1.0)
        return min(1.0, success_rate * 0.5 + recency * 0.3 + sample_size * 0.2)

    def recency_bonus(self, last_success: datetime) -> float:
        days = (self._now() - _aware(last_success)).days
        if days <= 7:
            return 1.0
        if days <= 14:
            return 0.8
        if days <= 30:
            return 0.5
        return 0.2
