"""
Resilience engine services.
"""

from .alternative_finder import AlternativeFinder
from .collaborators import (
    DiscoveryStore,
    FeedCatalogStore,
    FeedValidator,
    HealingStore,
    Notifier,
    ResilienceStore,
)
from .discovery_processor import DiscoveryProcessor
from .discovery_queue import DiscoveryQueue
from .feed_validator import HttpFeedValidator
from .healing_monitor import HealingMonitor
from .learning_loop import LearningLoop

__all__ = [
    "AlternativeFinder",
    "DiscoveryProcessor",
    "DiscoveryQueue",
    "HealingMonitor",
    "LearningLoop",
    "HttpFeedValidator",
    "FeedCatalogStore",
    "DiscoveryStore",
    "HealingStore",
    "ResilienceStore",
    "FeedValidator",
    "Notifier",
]
