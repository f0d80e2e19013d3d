"""
Feed resilience engine.

Facade that wires the discovery strategies, alternative finder, job queue,
learning loop and health monitor around one set of collaborators. Each
engine owns its own queue and caches.
"""

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig, resilience_config
from lucid_core.schemas import (
    DiscoveryJob,
    EngineStatus,
    FailurePattern,
    FeedHealingHistory,
    HealingDashboard,
    HealingHealthReport,
    JobPriority,
    PatternAnalysis,
    TacticStatistics,
)
from lucid_core.services.alternative_finder import AlternativeFinder
from lucid_core.services.collaborators import FeedValidator, Notifier, ResilienceStore
from lucid_core.services.discovery_processor import DiscoveryProcessor
from lucid_core.services.discovery_queue import DiscoveryQueue
from lucid_core.services.feed_validator import HttpFeedValidator
from lucid_core.services.healing_monitor import HealingMonitor
from lucid_core.services.learning_loop import LearningLoop
from lucid_core.services.strategies import DiscoveryStrategy
from lucid_core.ttl_cache import TTLCache

logger = get_logger(__name__)


class ResilienceEngine:
    """
    Detects broken feeds, finds replacements and learns what works.

    Args:
        store: Catalog, discovery and healing persistence.
        notifier: Records user-facing notifications.
        config: Engine configuration.
        validator: Candidate validator; defaults to HTTP fetch + parse.
        strategies: Discovery strategies; defaults to the standard set.
    """

    def __init__(
        self,
        store: ResilienceStore,
        notifier: Notifier,
        config: ResilienceConfig | None = None,
        validator: FeedValidator | None = None,
        strategies: list[DiscoveryStrategy] | None = None,
    ) -> None:
        self.config = config or resilience_config
        self.store = store

        self.catalog_cache = TTLCache(self.config.catalog_cache_ttl_seconds)
        self.pattern_cache = TTLCache(self.config.pattern_cache_ttl_seconds)

        self.finder = AlternativeFinder(
            store,
            validator or HttpFeedValidator(self.config),
            notifier,
            self.config,
            strategies=strategies,
            catalog_cache=self.catalog_cache,
        )
        self.learning_loop = LearningLoop(store, self.config, pattern_cache=self.pattern_cache)
        self.queue = DiscoveryQueue(max_retries=self.config.max_job_retries)
        self.processor = DiscoveryProcessor(
            store, self.finder, self.learning_loop, self.config, queue=self.queue
        )
        self.monitor = HealingMonitor(store)

    # Failure intake and queueing

    async def handle_feed_failure(self, feed_id: str) -> DiscoveryJob | None:
        """Queue discovery once a feed has failed often enough."""
        feed = await self.store.get_feed_by_id(feed_id)
        if feed is None or not feed.is_active:
            return None
        if feed.consecutive_failures < self.config.failure_threshold:
            return None
        return await self.processor.queue_discovery(feed_id, reason="consecutive_failures")

    async def queue_discovery(
        self,
        feed_id: str,
        reason: str = "feed_failure",
        priority: JobPriority | None = None,
    ) -> DiscoveryJob | None:
        return await self.processor.queue_discovery(feed_id, reason=reason, priority=priority)

    # Poll loop

    def start(self) -> None:
        self.processor.start()

    async def stop(self) -> None:
        await self.processor.stop()

    async def process_batch(self) -> int:
        return await self.processor.process_batch()

    def get_status(self) -> EngineStatus:
        return self.processor.get_status()

    # User decisions

    async def record_user_decision(
        self, attempt_id: str, accepted: bool, note: str | None = None
    ) -> bool:
        """Record a user's accept/decline of a suggested alternative."""
        updated = await self.store.mark_discovery_accepted(attempt_id, accepted, note)
        logger.info(
            "User decision recorded",
            extra={"attempt_id": attempt_id, "accepted": accepted, "found": updated},
        )
        return updated

    # Learning

    async def get_best_tactic(self, feed_id: str) -> str | None:
        return await self.learning_loop.get_best_tactic(feed_id)

    async def analyze_patterns(self) -> list[PatternAnalysis]:
        return await self.learning_loop.analyze_patterns()

    async def get_feed_metrics(self, feed_id: str) -> list[TacticStatistics]:
        return await self.learning_loop.get_feed_metrics(feed_id)

    # Monitoring

    async def get_dashboard(self) -> HealingDashboard:
        return await self.monitor.get_dashboard()

    async def get_health_report(self) -> HealingHealthReport:
        return await self.monitor.generate_health_report()

    async def get_failure_patterns(self) -> list[FailurePattern]:
        return await self.monitor.get_failure_patterns()

    async def get_success_rate(self, hours: float | None = None, days: float | None = None) -> float:
        return await self.monitor.get_success_rate(hours=hours, days=days)

    async def get_feed_healing_history(self, feed_id: str, limit: int = 50) -> FeedHealingHistory:
        return await self.monitor.get_feed_healing_history(feed_id, limit)

    async def check_and_alert(self) -> float:
        return await self.monitor.check_and_alert()
