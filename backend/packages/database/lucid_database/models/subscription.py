"""
Feed subscription model definition.
"""

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, generate_uuid


class FeedSubscription(Base, TimestampMixin):
    """
    A user's subscription to a catalog feed.

    Attributes:
        id: Unique subscription identifier (UUID).
        user_id: Subscribing user.
        feed_id: Subscribed catalog feed.
    """

    __tablename__ = "feed_subscriptions"
    __table_args__ = (UniqueConstraint("user_id", "feed_id", name="uq_user_feed_subscription"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    feed_id: Mapped[str] = mapped_column(
        ForeignKey("feed_catalog.id", ondelete="CASCADE"), nullable=False, index=True
    )

    feed = relationship("FeedCatalog", back_populates="subscriptions")
