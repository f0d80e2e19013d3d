"""
Feed catalog schemas.

Views of catalog feeds and subscriptions as the resilience engine sees them.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


SOURCE_TYPES = ("journal", "reddit", "substack", "youtube", "podcast")


class FetchStatus(str, Enum):
    """Outcome of the most recent fetch of a feed."""

    SUCCESS = "success"
    PERMANENT_ERROR = "permanent_error"
    TRANSIENT_ERROR = "transient_error"


class HealingStatus(str, Enum):
    """Where a feed is in the healing lifecycle."""

    HEALTHY = "healthy"
    HEALING = "healing"
    HEALED = "healed"
    DEGRADED = "degraded"
    FAILED = "failed"


class FeedRecord(BaseModel):
    """Catalog feed record."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    url: str
    name: str = ""
    description: str | None = None
    source_type: str = "journal"
    topics: list[str] = Field(default_factory=list)
    domain: str | None = None
    category: str | None = None

    # Health counters
    consecutive_failures: int = 0
    last_fetch_status: FetchStatus | None = None
    last_error_message: str | None = None
    last_fetched_at: datetime | None = None

    # Catalog flags
    is_active: bool = True
    is_approved: bool = True

    # Healing state
    healing_status: HealingStatus = HealingStatus.HEALTHY
    last_healing_at: datetime | None = None
    preferred_recovery_tactic: str | None = None


class FeedHealthPatch(BaseModel):
    """Partial update of a feed's health fields. Only fields that are set are applied."""

    consecutive_failures: int | None = None
    last_fetch_status: FetchStatus | None = None
    last_error_message: str | None = None
    last_fetched_at: datetime | None = None
    healing_status: HealingStatus | None = None
    last_healing_at: datetime | None = None
    preferred_recovery_tactic: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class FeedSubscription(BaseModel):
    """A user's subscription to a catalog feed."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    feed_id: str


class FeedNotification(BaseModel):
    """User-visible notification record about a feed."""

    model_config = ConfigDict(from_attributes=True)

    id: str | None = None
    user_id: str
    feed_id: str
    notification_type: str
    severity: str = "info"
    message: str
    technical_details: dict = Field(default_factory=dict)
    is_read: bool = False
    created_at: datetime | None = None
