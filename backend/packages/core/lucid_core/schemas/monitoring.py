"""
Health monitoring schemas.

Read models returned by the healing monitor.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from .feed import FeedRecord
from .healing import HealingAttemptLog, HealingProfile


class OverallHealth(str, Enum):
    """System-wide healing health band."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CRITICAL = "critical"


class HealingMetrics(BaseModel):
    """Aggregate metrics over a window of healing attempts."""

    total_attempts: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0
    average_healing_time: float = 0.0  # seconds
    success_rate_by_tactic: dict[str, float] = Field(default_factory=dict)
    most_successful_tactics: list[str] = Field(default_factory=list)
    feeds_currently_healing: int = 0
    feeds_healed: int = 0
    feeds_failed: int = 0

    @property
    def success_rate(self) -> float:
        """Percentage of successful attempts; 0 when there are none."""
        if not self.total_attempts:
            return 0.0
        return self.successful_attempts / self.total_attempts * 100


class SuccessTrendPoint(BaseModel):
    """Success rate for one UTC day."""

    date: str
    success_rate: float
    attempt_count: int


class FailurePattern(BaseModel):
    """Cluster of failed attempts sharing an error category."""

    pattern: str
    frequency: int
    affected_feeds: list[str]
    suggested_action: str


class TacticPerformance(BaseModel):
    """Success rate and mean recovery time (seconds) of a tactic."""

    tactic: str
    success_rate: float
    avg_recovery_time: float


class HealingDashboard(BaseModel):
    """Operator dashboard."""

    metrics: HealingMetrics
    recent_attempts: list[HealingAttemptLog]
    active_feeds_under_healing: list[FeedRecord]
    critical_feeds: list[FeedRecord]
    success_trends: list[SuccessTrendPoint]


class HealingHealthReport(BaseModel):
    """Composite health report with recommendations."""

    timestamp: datetime
    overall_health: OverallHealth
    metrics: HealingMetrics
    recommendations: list[str]
    failure_patterns: list[FailurePattern]
    top_performing_tactics: list[TacticPerformance]
    critical_issues: list[str]


class FeedHealingHistory(BaseModel):
    """Healing history of a single feed."""

    feed: FeedRecord | None
    healing_profile: HealingProfile | None
    recent_attempts: list[HealingAttemptLog]
    success_rate: float
    average_recovery_time: float  # milliseconds
    most_successful_tactic: str | None


class QueueStatus(BaseModel):
    """Discovery queue sizes."""

    pending: int
    processing: int


class EngineStatus(BaseModel):
    """Poll loop state."""

    is_running: bool
    queue: QueueStatus
