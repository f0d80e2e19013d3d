"""
Alternative feed finder.

Runs the discovery strategies for a broken feed, then deduplicates, scores
and validates their candidates and acts on the best one: adopt it for
every subscriber, suggest it, or do nothing.
"""

import asyncio
import math
import re
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlparse

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig
from lucid_core.schemas import (
    Candidate,
    DiscoveryAttempt,
    DiscoveryDecision,
    DiscoveryOutcome,
    FeedRecord,
    ValidationResult,
)
from lucid_core.ttl_cache import TTLCache

from .collaborators import FeedValidator, Notifier, ResilienceStore, safe_persist
from .strategies import (
    DEFAULT_STRATEGY_CONFIDENCE,
    STRATEGY_CONFIDENCE,
    DiscoveryStrategy,
    default_strategies,
)

logger = get_logger(__name__)

# Score weights for candidate ranking
TOPIC_MATCH_WEIGHT = 0.30
SAME_SOURCE_TYPE_WEIGHT = 0.20
DOMAIN_SIMILARITY_WEIGHT = 0.20
STRATEGY_WEIGHT = 0.15

VALIDATION_BONUS = 10
VALIDATION_PENALTY = 20

_COMMON_SUBDOMAIN = re.compile(r"^(www\.|blog\.|feed\.|feeds\.|api\.)")


class AlternativeFinder:
    """Discover, rank and act on replacement feeds."""

    def __init__(
        self,
        store: ResilienceStore,
        validator: FeedValidator,
        notifier: Notifier,
        config: ResilienceConfig,
        strategies: list[DiscoveryStrategy] | None = None,
        catalog_cache: TTLCache[list[FeedRecord]] | None = None,
    ) -> None:
        self.store = store
        self.validator = validator
        self.notifier = notifier
        self.config = config
        if catalog_cache is None:
            catalog_cache = TTLCache(config.catalog_cache_ttl_seconds)
        self.catalog_cache = catalog_cache
        self.strategies = (
            strategies
            if strategies is not None
            else default_strategies(config, self.get_cached_feed_catalog)
        )

    async def get_cached_feed_catalog(self) -> list[FeedRecord]:
        """Feed catalog, refreshed when the cached copy is older than its TTL."""
        cached = self.catalog_cache.get()
        if cached is not None:
            return cached

        catalog = await self.store.get_feed_catalog()
        logger.debug("Feed catalog cached", extra={"feeds": len(catalog)})
        return self.catalog_cache.set(catalog)

    def invalidate_catalog_cache(self) -> None:
        self.catalog_cache.invalidate()

    # ------------------------------------------------------------------
    # Discovery and ranking
    # ------------------------------------------------------------------

    async def find_alternatives(
        self, feed: FeedRecord, preferred_tactic: str | None = None
    ) -> tuple[list[Candidate], int]:
        """
        Find validated alternatives for a broken feed.

        A preferred tactic learned from earlier recoveries runs first, so its
        candidates win duplicate URLs, and wins confidence ties.

        Returns:
            Valid candidates sorted by confidence (best first), and the number
            of unique candidates the strategies produced.
        """
        applicable = [strategy for strategy in self.strategies if strategy.is_applicable(feed)]
        applicable.sort(key=lambda s: s.name != preferred_tactic)
        logger.info(
            "Finding alternatives",
            extra={
                "feed_id": feed.id,
                "strategies": [s.name for s in applicable],
                "preferred_tactic": preferred_tactic,
            },
        )

        results = await asyncio.gather(
            *(strategy.discover(feed) for strategy in applicable), return_exceptions=True
        )
        found: list[Candidate] = []
        for strategy, result in zip(applicable, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Strategy raised past its boundary",
                    extra={"strategy": strategy.name, "feed_id": feed.id, "error": repr(result)},
                )
                continue
            found.extend(result)

        unique = self.deduplicate_candidates(found)
        original_url = feed.url.lower()
        unique = [candidate for candidate in unique if candidate.url.lower() != original_url]
        for candidate in unique:
            candidate.confidence = self.score_candidate(candidate, feed)
        unique.sort(key=lambda c: (c.confidence, c.strategy == preferred_tactic), reverse=True)

        top = unique[: self.config.validation_limit]
        await self.validate_candidates(top)

        valid = [candidate for candidate in top if candidate.is_valid]
        valid.sort(key=lambda c: (c.confidence, c.strategy == preferred_tactic), reverse=True)

        logger.info(
            "Alternatives found",
            extra={"feed_id": feed.id, "unique": len(unique), "valid": len(valid)},
        )
        return valid, len(unique)

    @staticmethod
    def deduplicate_candidates(candidates: list[Candidate]) -> list[Candidate]:
        """Keep the first candidate for each case-insensitive URL."""
        seen: set[str] = set()
        unique: list[Candidate] = []
        for candidate in candidates:
            key = candidate.url.lower()
            if key in seen:
                continue
            seen.add(key)
            unique.append(candidate)
        return unique

    @classmethod
    def score_candidate(cls, candidate: Candidate, original: FeedRecord) -> int:
        """
        Confidence (0-100) that a candidate replaces the original feed.

        Weighted sum of topic overlap, same source type, domain similarity
        and the originating strategy's prior; a strategy-reported
        similarity is averaged into the total.
        """
        score = 0.0

        if candidate.topics and original.topics:
            matching = [topic for topic in candidate.topics if topic in original.topics]
            score += len(matching) / len(original.topics) * TOPIC_MATCH_WEIGHT

        if candidate.source_type == original.source_type:
            score += SAME_SOURCE_TYPE_WEIGHT

        original_domain = _host(original.url)
        candidate_domain = _host(candidate.url)
        if original_domain and candidate_domain:
            if original_domain == candidate_domain:
                score += DOMAIN_SIMILARITY_WEIGHT
            elif cls.are_similar_domains(original_domain, candidate_domain):
                score += DOMAIN_SIMILARITY_WEIGHT * 0.5

        prior = STRATEGY_CONFIDENCE.get(candidate.strategy, DEFAULT_STRATEGY_CONFIDENCE)
        score += prior * STRATEGY_WEIGHT

        if candidate.similarity_score:
            score = (score + candidate.similarity_score) / 2

        return _clamp(math.floor(score * 100 + 0.5))

    @staticmethod
    def are_similar_domains(domain1: str, domain2: str) -> bool:
        """Hosts share a base name or one contains the other, ignoring common subdomains."""
        clean1 = _COMMON_SUBDOMAIN.sub("", domain1)
        clean2 = _COMMON_SUBDOMAIN.sub("", domain2)
        if clean1 in clean2 or clean2 in clean1:
            return True
        return clean1.split(".")[0] == clean2.split(".")[0]

    async def validate_candidates(self, candidates: list[Candidate]) -> None:
        """Validate candidates concurrently, updating each in place."""
        semaphore = asyncio.Semaphore(self.config.validation_concurrency)

        async def _run(candidate: Candidate) -> None:
            async with semaphore:
                await self.validate_candidate(candidate)

        await asyncio.gather(*(_run(candidate) for candidate in candidates))

    async def validate_candidate(self, candidate: Candidate) -> bool:
        """
        Fetch a candidate and adjust its confidence by the result.

        Valid feeds gain 10 points when they have entries and fill in a
        missing title/description; invalid ones lose 20 points.
        """
        try:
            result = await self.validator.validate_candidate(candidate.url)
        except Exception as e:
            logger.exception("Validator raised", extra={"url": candidate.url})
            result = ValidationResult(is_valid=False, error=f"{type(e).__name__}: {e}")

        candidate.validation = result
        if not result.is_valid:
            candidate.confidence = _clamp(candidate.confidence - VALIDATION_PENALTY)
            return False

        if result.title and not candidate.title:
            candidate.title = result.title
        if result.description and not candidate.description:
            candidate.description = result.description
        if result.has_items:
            candidate.confidence = _clamp(candidate.confidence + VALIDATION_BONUS)
        return True

    # ------------------------------------------------------------------
    # Decision and action
    # ------------------------------------------------------------------

    def decide(self, candidate: Candidate | None, feed: FeedRecord) -> DiscoveryDecision:
        if candidate is None:
            return DiscoveryDecision.NONE
        if (
            candidate.confidence >= self.config.adoption_threshold
            and candidate.source_type == feed.source_type
        ):
            return DiscoveryDecision.ADOPT
        if candidate.confidence >= self.config.suggestion_threshold:
            return DiscoveryDecision.SUGGEST
        return DiscoveryDecision.NONE

    async def heal_feed(
        self, feed: FeedRecord, preferred_tactic: str | None = None
    ) -> DiscoveryOutcome:
        """
        Run discovery for a broken feed and act on the best candidate.

        Attempt records and notifications are best-effort; a failure to
        write them is logged and does not undo the decision. Errors from
        catalog registration or subscriber migration propagate.
        """
        candidates, found = await self.find_alternatives(feed, preferred_tactic)
        outcome = DiscoveryOutcome(feed_id=feed.id, candidates=candidates, candidates_found=found)

        best = candidates[0] if candidates else None
        outcome.decision = self.decide(best, feed)

        alternative: FeedRecord | None = None
        subscriber_ids: list[str] = []
        if outcome.acted:
            outcome.chosen = best
            alternative = await self.ensure_catalog_entry(best, feed)
            if alternative.id == feed.id:
                logger.warning(
                    "Best candidate resolves to the broken feed itself",
                    extra={"feed_id": feed.id, "candidate_url": best.url},
                )
                outcome.decision = DiscoveryDecision.NONE
                outcome.chosen = None
                alternative = None
            else:
                outcome.alternative_feed_id = alternative.id
                subscriber_ids = await self.get_subscriber_ids(feed.id)

        if outcome.decision == DiscoveryDecision.ADOPT:
            outcome.migrated_count = await self.store.auto_subscribe_users_to_alternative(
                feed.id, alternative.id
            )
            logger.info(
                "Subscribers migrated to alternative",
                extra={
                    "feed_id": feed.id,
                    "alternative_feed_id": alternative.id,
                    "migrated": outcome.migrated_count,
                },
            )

        outcome.attempt_ids = await self.save_discovery_attempts(feed, candidates, outcome)

        if outcome.decision == DiscoveryDecision.ADOPT and outcome.migrated_count > 0:
            notified = await safe_persist(
                self.notifier.notify_users_of_switch(
                    subscriber_ids, feed, alternative, self._notification_details(outcome)
                ),
                "switch notification",
                feed.id,
            )
            outcome.notified_count = notified or 0
        elif outcome.decision == DiscoveryDecision.SUGGEST and subscriber_ids:
            notified = await safe_persist(
                self.notifier.notify_users_of_suggestion(
                    subscriber_ids, feed, alternative, self._notification_details(outcome)
                ),
                "suggestion notification",
                feed.id,
            )
            outcome.notified_count = notified or 0

        logger.info(
            "Discovery decision made",
            extra={
                "feed_id": feed.id,
                "decision": outcome.decision.value,
                "confidence": best.confidence if best else None,
                "candidate_url": best.url if best else None,
            },
        )
        return outcome

    async def ensure_catalog_entry(self, candidate: Candidate, feed: FeedRecord) -> FeedRecord:
        """Catalog feed for a candidate URL, registering it if needed."""
        key = candidate.url.lower()
        for existing in await self.get_cached_feed_catalog():
            if existing.url.lower() == key:
                return existing

        entry = await self.store.insert_or_find_catalog_entry(candidate, defaults=feed)
        self.invalidate_catalog_cache()
        return entry

    async def get_subscriber_ids(self, feed_id: str) -> list[str]:
        subscriptions = await self.store.get_all_feed_subscriptions()
        user_ids: list[str] = []
        for subscription in subscriptions:
            if subscription.feed_id == feed_id and subscription.user_id not in user_ids:
                user_ids.append(subscription.user_id)
        return user_ids

    async def save_discovery_attempts(
        self, feed: FeedRecord, candidates: list[Candidate], outcome: DiscoveryOutcome
    ) -> list[str]:
        """Persist the top candidates; the acted-on one carries the decision."""
        now = datetime.now(UTC)
        attempt_ids: list[str] = []
        for candidate in candidates[: self.config.attempts_to_persist]:
            acted_on = candidate is outcome.chosen
            auto_subscribed = acted_on and outcome.decision == DiscoveryDecision.ADOPT
            attempt = DiscoveryAttempt(
                original_feed_id=feed.id,
                candidate_feed_id=outcome.alternative_feed_id if acted_on else None,
                candidate_url=candidate.url,
                strategy=candidate.strategy,
                confidence=candidate.confidence,
                auto_subscribed=auto_subscribed,
                accepted=True if auto_subscribed else None,
                user_note=(
                    f"Auto-subscribed {outcome.migrated_count} users" if auto_subscribed else None
                ),
                metadata=self._attempt_metadata(feed, candidate, outcome if acted_on else None),
                validated_at=now if candidate.validation else None,
                processed_at=now if acted_on else None,
            )
            saved = await safe_persist(
                self.store.save_discovery_attempt(attempt), "discovery attempt", feed.id
            )
            if saved is not None and saved.id:
                attempt_ids.append(saved.id)
                if acted_on:
                    outcome.chosen_attempt_id = saved.id
        return attempt_ids

    @staticmethod
    def _attempt_metadata(
        feed: FeedRecord, candidate: Candidate, outcome: DiscoveryOutcome | None
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "similarity_score": candidate.similarity_score,
            "matched_topics": [topic for topic in candidate.topics if topic in feed.topics],
            "discovery_details": {
                "title": candidate.title,
                "description": candidate.description,
                "source_type": candidate.source_type,
                "validation": (
                    candidate.validation.model_dump() if candidate.validation else None
                ),
            },
        }
        if outcome is not None:
            metadata["decision"] = outcome.decision.value
            metadata["original_feed_name"] = feed.name
            metadata["subscribed_count"] = outcome.migrated_count
        return metadata

    @staticmethod
    def _notification_details(outcome: DiscoveryOutcome) -> dict[str, Any]:
        chosen = outcome.chosen
        return {
            "attempt_id": outcome.chosen_attempt_id,
            "candidate_url": chosen.url if chosen else None,
            "confidence": chosen.confidence if chosen else None,
            "strategy": chosen.strategy if chosen else None,
        }


def _host(url: str) -> str:
    try:
        host = urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host.removeprefix("www.")


def _clamp(value: int) -> int:
    return max(0, min(100, value))
