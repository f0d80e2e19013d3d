"""
Feed notification model definition.
"""

from typing import Any

from sqlalchemy import JSON, Boolean, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, generate_uuid


class FeedNotification(Base, TimestampMixin):
    """
    User-visible notice about a feed switch or a suggested alternative.

    Attributes:
        id: Unique notification identifier (UUID).
        user_id: Recipient.
        feed_id: Feed the notice is about.
        notification_type: switch or suggestion.
        severity: info or warning.
        message: Human-readable text.
        technical_details: Attempt id, candidate URL, confidence and strategy.
        is_read: Whether the user has seen it.
    """

    __tablename__ = "feed_notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    feed_id: Mapped[str] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notification_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    severity: Mapped[str] = mapped_column(String(20), default="info", nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    technical_details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
