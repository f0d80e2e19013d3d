"""
Healing schemas.

Per-feed healing profiles, the append-only healing attempt log and the
statistics derived from them by the learning loop.
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealingProfile(BaseModel):
    """Cumulative recovery history for one feed."""

    model_config = ConfigDict(from_attributes=True)

    feed_id: str
    success_count: int = 0
    failure_count: int = 0
    avg_recovery_time_ms: int = 0
    preferred_tactic: str | None = None
    last_successful_tactic: str | None = None
    last_updated: datetime | None = None

    @property
    def total_attempts(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        total = self.total_attempts
        return self.success_count / total if total else 0.0


class HealingProfilePatch(BaseModel):
    """Partial profile update. Unset fields are left alone; ``None`` clears."""

    success_count: int | None = None
    failure_count: int | None = None
    avg_recovery_time_ms: int | None = None
    preferred_tactic: str | None = None
    last_successful_tactic: str | None = None
    last_updated: datetime | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class HealingAttemptLog(BaseModel):
    """One healing attempt for one feed."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    feed_id: str
    tactic: str
    success: bool
    error_message: str | None = None
    response_time_ms: int | None = None
    attempted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    metadata: dict[str, Any] = Field(default_factory=dict)


class TacticStatistics(BaseModel):
    """How one tactic has performed for one feed."""

    tactic: str
    success_rate: float
    avg_duration_ms: int
    total_attempts: int
    last_success: datetime | None = None
    confidence: float


class PatternAnalysis(BaseModel):
    """Preferred tactics for a whole source type."""

    source_type: str
    preferred_tactics: list[str]
    success_rate: float
    sample_size: int
