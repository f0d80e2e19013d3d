"""
Database models package.

This module exports all SQLAlchemy models for the Lucid resilience engine.
"""

from .base import Base, TimestampMixin, generate_uuid
from .discovery_attempt import FeedDiscoveryAttempt
from .feed_catalog import FeedCatalog
from .healing import FeedHealingProfile, FeedHealthAttempt
from .notification import FeedNotification
from .subscription import FeedSubscription

__all__ = [
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "FeedCatalog",
    "FeedSubscription",
    "FeedDiscoveryAttempt",
    "FeedHealingProfile",
    "FeedHealthAttempt",
    "FeedNotification",
]
