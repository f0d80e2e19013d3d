"""
Discovery job processor.

Polls the discovery queue, runs the alternative finder for each job,
drives the retry/backoff state machine, and records every run as a
healing attempt for the learning loop.
"""

import asyncio
import time
from datetime import UTC, datetime

from lucid_core import get_logger
from lucid_core.config import ResilienceConfig
from lucid_core.exceptions import FeedNotFoundError
from lucid_core.schemas import (
    DiscoveryDecision,
    DiscoveryJob,
    DiscoveryOutcome,
    EngineStatus,
    FeedHealthPatch,
    FeedRecord,
    HealingAttemptLog,
    HealingStatus,
    JobMetadata,
    JobPriority,
)

from .alternative_finder import AlternativeFinder
from .collaborators import ResilienceStore, safe_persist
from .discovery_queue import DiscoveryQueue
from .learning_loop import LearningLoop

logger = get_logger(__name__)

UMBRELLA_TACTIC = "alternative_discovery"
NO_ALTERNATIVE_MESSAGE = "No viable alternative feed found"

_STATUS_AFTER = {
    DiscoveryDecision.ADOPT: HealingStatus.HEALED,
    DiscoveryDecision.SUGGEST: HealingStatus.DEGRADED,
    DiscoveryDecision.NONE: HealingStatus.FAILED,
}


class DiscoveryProcessor:
    """Background processor for discovery jobs."""

    def __init__(
        self,
        store: ResilienceStore,
        finder: AlternativeFinder,
        learning_loop: LearningLoop,
        config: ResilienceConfig,
        queue: DiscoveryQueue | None = None,
    ) -> None:
        self.store = store
        self.finder = finder
        self.learning_loop = learning_loop
        self.config = config
        if queue is None:
            queue = DiscoveryQueue(max_retries=config.max_job_retries)
        self.queue = queue
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Poll loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Start polling. Processes a batch immediately, then every poll interval."""
        if self.is_running:
            logger.info("Discovery processor is already running")
            return
        logger.info(
            "Starting discovery processor",
            extra={"poll_interval": self.config.poll_interval_seconds},
        )
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if not self.is_running:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped discovery processor")

    async def _run(self) -> None:
        while True:
            try:
                await self.process_batch()
            except Exception:
                logger.exception("Error processing discovery batch")
            await asyncio.sleep(self.config.poll_interval_seconds)

    async def process_batch(self) -> int:
        """Run up to ``batch_size`` queued jobs concurrently; return how many ran."""
        jobs: list[DiscoveryJob] = []
        while len(jobs) < self.config.batch_size:
            job = self.queue.dequeue()
            if job is None:
                break
            jobs.append(job)

        if not jobs:
            return 0

        status = self.queue.status()
        logger.info(
            "Processing discovery batch",
            extra={"jobs": len(jobs), "pending": status.pending},
        )
        await asyncio.gather(*(self.process_job(job) for job in jobs))
        return len(jobs)

    # ------------------------------------------------------------------
    # Enqueueing
    # ------------------------------------------------------------------

    async def queue_discovery(
        self,
        feed_id: str,
        reason: str = "feed_failure",
        priority: JobPriority | None = None,
    ) -> DiscoveryJob | None:
        """
        Queue a discovery job for a failing feed.

        Returns:
            The queued job, or None if the feed is unknown, has used up its
            discovery attempts, or already has a job.
        """
        feed = await self.store.get_feed_by_id(feed_id)
        if feed is None:
            logger.warning("Cannot queue discovery for unknown feed", extra={"feed_id": feed_id})
            return None

        attempt_count = await self.store.get_discovery_attempt_count(feed_id)
        if attempt_count >= self.config.max_discovery_attempts:
            logger.info(
                "Feed has reached max discovery attempts",
                extra={"feed_id": feed_id, "attempts": attempt_count},
            )
            return None

        subscriptions = await self.store.get_all_feed_subscriptions()
        subscriber_count = len({s.user_id for s in subscriptions if s.feed_id == feed_id})

        job = DiscoveryJob(
            feed_id=feed_id,
            priority=priority or self.priority_for(subscriber_count),
            metadata=JobMetadata(
                subscriber_count=subscriber_count,
                last_error_type=feed.last_error_message,
                reason=reason,
            ),
        )
        if not self.queue.enqueue(job):
            return None
        return job

    def priority_for(self, subscriber_count: int) -> JobPriority:
        if subscriber_count >= self.config.high_priority_subscribers:
            return JobPriority.HIGH
        if subscriber_count >= self.config.medium_priority_subscribers:
            return JobPriority.MEDIUM
        return JobPriority.LOW

    # ------------------------------------------------------------------
    # Job execution
    # ------------------------------------------------------------------

    async def process_job(self, job: DiscoveryJob) -> DiscoveryOutcome | None:
        """
        Run one job to completion, requeue or abandonment.

        Never raises: job errors feed the retry state machine.
        """
        started = time.monotonic()
        logger.info(
            "Processing discovery job",
            extra={"feed_id": job.feed_id, "retry_count": job.retry_count},
        )
        try:
            outcome, feed, recommended = await self._execute(job)
        except FeedNotFoundError:
            logger.warning("Feed disappeared before discovery", extra={"feed_id": job.feed_id})
            self.queue.complete(job.feed_id)
            return None
        except Exception as e:
            logger.exception("Discovery job failed", extra={"feed_id": job.feed_id})
            requeued = self.queue.requeue(job)
            if not requeued:
                await self._set_healing_status(job.feed_id, HealingStatus.FAILED)
            await self._record_attempt(
                HealingAttemptLog(
                    feed_id=job.feed_id,
                    tactic=UMBRELLA_TACTIC,
                    success=False,
                    error_message=f"{type(e).__name__}: {e}",
                    response_time_ms=self._elapsed_ms(started),
                    metadata={
                        "decision": "error",
                        "retry_count": job.retry_count,
                        "requeued": requeued,
                        "reason": job.metadata.reason,
                    },
                )
            )
            return None

        self.queue.complete(job.feed_id)
        await self._set_healing_status(job.feed_id, _STATUS_AFTER[outcome.decision])
        await self._record_attempt(
            self.build_attempt_log(job, feed, outcome, recommended, self._elapsed_ms(started))
        )
        return outcome

    async def _execute(self, job: DiscoveryJob) -> tuple[DiscoveryOutcome, FeedRecord, str | None]:
        feed = await self.store.get_feed_by_id(job.feed_id)
        if feed is None:
            raise FeedNotFoundError(job.feed_id)

        await self._set_healing_status(job.feed_id, HealingStatus.HEALING)
        recommended = await self.learning_loop.get_best_tactic(job.feed_id)
        outcome = await self.finder.heal_feed(feed, preferred_tactic=recommended)
        return outcome, feed, recommended

    @staticmethod
    def build_attempt_log(
        job: DiscoveryJob,
        feed: FeedRecord,
        outcome: DiscoveryOutcome,
        recommended: str | None,
        response_time_ms: int,
    ) -> HealingAttemptLog:
        """Healing attempt entry describing one completed discovery run."""
        reference = outcome.chosen or outcome.best
        tactic = reference.strategy if reference else UMBRELLA_TACTIC

        error: str | None = None
        if not outcome.acted:
            best = outcome.best
            if best is not None and best.validation and best.validation.error:
                error = best.validation.error
            else:
                error = feed.last_error_message or NO_ALTERNATIVE_MESSAGE

        return HealingAttemptLog(
            feed_id=feed.id,
            tactic=tactic,
            success=outcome.acted,
            error_message=error,
            response_time_ms=response_time_ms,
            metadata={
                "decision": outcome.decision.value,
                "candidate_count": outcome.candidates_found,
                "valid_candidates": len(outcome.candidates),
                "confidence": reference.confidence if reference else None,
                "candidate_url": reference.url if reference else None,
                "retry_count": job.retry_count,
                "reason": job.metadata.reason,
                "recommended_tactic": recommended,
                "migrated_count": outcome.migrated_count,
            },
        )

    async def _record_attempt(self, attempt: HealingAttemptLog) -> None:
        logged = await safe_persist(
            self.store.log_healing_attempt(attempt), "healing attempt", attempt.feed_id
        )
        await self.learning_loop.learn_from_attempt(logged or attempt)

    async def _set_healing_status(self, feed_id: str, status: HealingStatus) -> None:
        await safe_persist(
            self.store.update_feed_health(
                feed_id,
                FeedHealthPatch(healing_status=status, last_healing_at=datetime.now(UTC)),
            ),
            "healing status",
            feed_id,
        )

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.monotonic() - started) * 1000)

    def get_status(self) -> EngineStatus:
        return EngineStatus(is_running=self.is_running, queue=self.queue.status())
