"""
Discovery job queue.

In-memory priority queue of discovery jobs. At most one job per feed may
be pending or processing at any time.
"""

import heapq
import itertools

from lucid_core import get_logger
from lucid_core.schemas import DiscoveryJob, JobPriority, QueueStatus

logger = get_logger(__name__)


class DiscoveryQueue:
    """
    Priority queue keyed by (priority, creation time).

    High priority jobs dequeue first; within a band the oldest job wins.
    Failed jobs are requeued with a growing retry count and a priority that
    only ever moves down, and are abandoned once the retry limit is hit.
    """

    def __init__(self, max_retries: int = 3) -> None:
        self.max_retries = max_retries
        self._heap: list[tuple[int, float, int, DiscoveryJob]] = []
        self._counter = itertools.count()
        self._pending: set[str] = set()
        self._processing: set[str] = set()

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, feed_id: str) -> bool:
        return feed_id in self._pending or feed_id in self._processing

    def enqueue(self, job: DiscoveryJob) -> bool:
        """
        Add a job unless one for the same feed is already queued or running.

        Returns:
            True if the job was added.
        """
        if job.feed_id in self:
            logger.debug("Discovery job already exists", extra={"feed_id": job.feed_id})
            return False

        entry = (job.priority.rank, job.created_at.timestamp(), next(self._counter), job)
        heapq.heappush(self._heap, entry)
        self._pending.add(job.feed_id)
        logger.info(
            "Enqueued discovery job",
            extra={"feed_id": job.feed_id, "priority": job.priority.value},
        )
        return True

    def dequeue(self) -> DiscoveryJob | None:
        """Pop the highest priority job and mark it as processing."""
        if not self._heap:
            return None
        *_, job = heapq.heappop(self._heap)
        self._pending.discard(job.feed_id)
        self._processing.add(job.feed_id)
        return job

    def complete(self, feed_id: str) -> None:
        self._processing.discard(feed_id)

    def requeue(self, job: DiscoveryJob) -> bool:
        """
        Put a failed job back with one more retry, or abandon it.

        Returns:
            True if requeued, False if abandoned.
        """
        self._processing.discard(job.feed_id)
        job.retry_count += 1

        if job.retry_count >= 2 and job.priority == JobPriority.HIGH:
            job.priority = JobPriority.MEDIUM
        elif job.retry_count >= 3 and job.priority == JobPriority.MEDIUM:
            job.priority = JobPriority.LOW

        if job.retry_count >= self.max_retries:
            logger.warning(
                "Max retries reached, abandoning discovery job",
                extra={"feed_id": job.feed_id, "retry_count": job.retry_count},
            )
            return False

        return self.enqueue(job)

    def status(self) -> QueueStatus:
        return QueueStatus(pending=len(self._pending), processing=len(self._processing))
