"""
Feed catalog model definition.

This module defines the FeedCatalog model for catalog feeds and the health
and healing state the resilience engine tracks for them.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class FeedCatalog(Base, TimestampMixin):
    """
    Catalog feed model.

    Catalog feeds are shared by every subscriber. Alternatives found by
    discovery are inserted here too, so a URL appears at most once.

    Attributes:
        id: Unique feed identifier (UUID).
        url: Feed URL (unique, indexed).
        name: Display name.
        description: Feed description.
        source_type: journal, reddit, substack, youtube or podcast.
        topics: Topic tags used for similarity matching.
        domain: Subject domain the feed belongs to.
        category: Catalog category.
        consecutive_failures: Fetch failures since the last success.
        last_fetch_status: success, permanent_error or transient_error.
        last_error_message: Error text of the last failed fetch.
        last_fetched_at: Timestamp of the last fetch attempt.
        is_active: Whether the feed is still fetched.
        is_approved: Whether the feed is visible in the catalog.
        healing_status: Position in the healing lifecycle.
        last_healing_at: Timestamp of the last healing status change.
        preferred_recovery_tactic: Tactic promoted by the learning loop.
    """

    __tablename__ = "feed_catalog"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)

    url: Mapped[str] = mapped_column(String(2000), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    source_type: Mapped[str] = mapped_column(String(20), default="journal", nullable=False)
    topics: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    domain: Mapped[str | None] = mapped_column(String(200))
    category: Mapped[str | None] = mapped_column(String(200))

    # Fetch health
    consecutive_failures: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_fetch_status: Mapped[str | None] = mapped_column(String(20))
    last_error_message: Mapped[str | None] = mapped_column(String(1000))
    last_fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Healing state
    healing_status: Mapped[str] = mapped_column(
        String(20), default="healthy", nullable=False, index=True
    )
    last_healing_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    preferred_recovery_tactic: Mapped[str | None] = mapped_column(String(50))

    subscriptions = relationship(
        "FeedSubscription", back_populates="feed", cascade="all, delete-orphan"
    )
