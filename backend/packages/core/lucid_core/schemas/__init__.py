"""
Pydantic schemas shared by the resilience engine and its collaborators.
"""

from .discovery import (
    Candidate,
    DiscoveryAttempt,
    DiscoveryDecision,
    DiscoveryJob,
    DiscoveryOutcome,
    JobMetadata,
    JobPriority,
    ValidationResult,
)
from .feed import (
    SOURCE_TYPES,
    FeedHealthPatch,
    FeedNotification,
    FeedRecord,
    FeedSubscription,
    FetchStatus,
    HealingStatus,
)
from .healing import (
    HealingAttemptLog,
    HealingProfile,
    HealingProfilePatch,
    PatternAnalysis,
    TacticStatistics,
)
from .monitoring import (
    EngineStatus,
    FailurePattern,
    FeedHealingHistory,
    HealingDashboard,
    HealingHealthReport,
    HealingMetrics,
    OverallHealth,
    QueueStatus,
    SuccessTrendPoint,
    TacticPerformance,
)

__all__ = [
    # Feed
    "SOURCE_TYPES",
    "FeedRecord",
    "FeedHealthPatch",
    "FeedSubscription",
    "FeedNotification",
    "FetchStatus",
    "HealingStatus",
    # Discovery
    "Candidate",
    "ValidationResult",
    "DiscoveryJob",
    "JobMetadata",
    "JobPriority",
    "DiscoveryAttempt",
    "DiscoveryDecision",
    "DiscoveryOutcome",
    # Healing
    "HealingProfile",
    "HealingProfilePatch",
    "HealingAttemptLog",
    "TacticStatistics",
    "PatternAnalysis",
    # Monitoring
    "OverallHealth",
    "HealingMetrics",
    "SuccessTrendPoint",
    "FailurePattern",
    "TacticPerformance",
    "HealingDashboard",
    "HealingHealthReport",
    "FeedHealingHistory",
    "QueueStatus",
    "EngineStatus",
]
