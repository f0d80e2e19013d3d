"""
Alternative discovery schemas.

Candidates, validation results, discovery jobs and persisted discovery
attempts.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JobPriority(str, Enum):
    """Discovery job priority band."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key; lower is dequeued first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {JobPriority.HIGH: 0, JobPriority.MEDIUM: 1, JobPriority.LOW: 2}


class DiscoveryDecision(str, Enum):
    """Action taken for the best validated candidate."""

    ADOPT = "adopt"
    SUGGEST = "suggest"
    NONE = "none"


class ValidationResult(BaseModel):
    """Result of fetching a candidate and parsing it as a feed."""

    is_valid: bool
    has_items: bool = False
    item_count: int = 0
    title: str | None = None
    description: str | None = None
    error: str | None = None


class Candidate(BaseModel):
    """Proposed replacement for a broken feed."""

    url: str
    title: str | None = None
    description: str | None = None
    source_type: str | None = None
    topics: list[str] = Field(default_factory=list)
    strategy: str
    similarity_score: float | None = None
    confidence: int = 0
    validation: ValidationResult | None = None

    @property
    def is_valid(self) -> bool:
        return self.validation is not None and self.validation.is_valid


class JobMetadata(BaseModel):
    """Context captured when a discovery job is queued."""

    subscriber_count: int = 0
    last_error_type: str | None = None
    reason: str = "feed_failure"


class DiscoveryJob(BaseModel):
    """In-memory discovery job for one broken feed."""

    feed_id: str
    priority: JobPriority
    retry_count: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: JobMetadata = Field(default_factory=JobMetadata)


class DiscoveryAttempt(BaseModel):
    """Persisted link between a broken feed and one candidate."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    original_feed_id: str
    candidate_feed_id: str | None = None
    candidate_url: str
    strategy: str
    confidence: int
    auto_subscribed: bool = False
    accepted: bool | None = None
    user_note: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    validated_at: datetime | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None


class DiscoveryOutcome(BaseModel):
    """What one discovery run found and did."""

    feed_id: str
    decision: DiscoveryDecision = DiscoveryDecision.NONE
    candidates_found: int = 0
    candidates: list[Candidate] = Field(default_factory=list)
    chosen: Candidate | None = None
    alternative_feed_id: str | None = None
    migrated_count: int = 0
    notified_count: int = 0
    attempt_ids: list[str] = Field(default_factory=list)
    chosen_attempt_id: str | None = None

    @property
    def best(self) -> Candidate | None:
        """Best validated candidate, whether or not it was acted on."""
        return self.candidates[0] if self.candidates else None

    @property
    def acted(self) -> bool:
        return self.decision != DiscoveryDecision.NONE
