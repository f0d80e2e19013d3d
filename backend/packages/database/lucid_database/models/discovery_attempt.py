"""
Discovery attempt model.

Links a broken catalog feed to one candidate replacement found for it.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, generate_uuid


class FeedDiscoveryAttempt(Base, TimestampMixin):
    """
    Persisted discovery attempt.

    Attributes:
        id: Unique attempt identifier (UUID).
        original_feed_id: Broken feed the candidate replaces.
        candidate_feed_id: Catalog entry created for the candidate, if any.
        candidate_url: Candidate feed URL.
        strategy: Discovery strategy that proposed it.
        confidence: Confidence score 0-100.
        auto_subscribed: Whether subscribers were migrated to it.
        accepted: User decision; None until one is recorded.
        user_note: Free-form note about the decision.
        attempt_metadata: Title, description and validation details.
        validated_at: When the candidate was validated.
        processed_at: When the engine acted on the candidate.
    """

    __tablename__ = "feed_discovery_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    original_feed_id: Mapped[str] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )
    candidate_feed_id: Mapped[str | None] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="SET NULL")
    )
    candidate_url: Mapped[str] = mapped_column(String(2000), nullable=False)
    strategy: Mapped[str] = mapped_column(String(50), nullable=False)
    confidence: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    auto_subscribed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    accepted: Mapped[bool | None] = mapped_column(Boolean)
    user_note: Mapped[str | None] = mapped_column(Text)

    attempt_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )
    validated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
