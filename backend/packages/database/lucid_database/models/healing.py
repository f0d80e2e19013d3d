"""
Healing models.

Per-feed healing profiles and the append-only healing attempt log.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, generate_uuid, utcnow


class FeedHealingProfile(Base):
    """
    Cumulative recovery statistics for one feed.

    Attributes:
        feed_id: Catalog feed (primary key).
        success_count: Successful healing attempts.
        failure_count: Failed healing attempts.
        avg_recovery_time_ms: Running mean attempt duration.
        preferred_tactic: Promoted tactic, cleared when it decays.
        last_successful_tactic: Tactic of the latest success.
        last_updated: When the profile last changed.
    """

    __tablename__ = "feed_healing_profiles"

    feed_id: Mapped[str] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="CASCADE"), primary_key=True
    )
    success_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    failure_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    avg_recovery_time_ms: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    preferred_tactic: Mapped[str | None] = mapped_column(String(50))
    last_successful_tactic: Mapped[str | None] = mapped_column(String(50))
    last_updated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class FeedHealthAttempt(Base):
    """One logged healing attempt."""

    __tablename__ = "feed_health_attempts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    feed_id: Mapped[str] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tactic: Mapped[str] = mapped_column(String(50), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text)
    response_time_ms: Mapped[int | None] = mapped_column(Integer)
    attempted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    attempt_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, default=dict, nullable=False
    )
