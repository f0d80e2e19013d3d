"""
Discovery strategies.

Each strategy proposes replacement candidates for a broken feed.
"""

from collections.abc import Awaitable, Callable

from lucid_core.config import ResilienceConfig
from lucid_core.schemas import FeedRecord

from .base import DiscoveryStrategy
from .domain_variant import DomainVariantDiscovery
from .search_engine import SearchEngineDiscovery
from .social_api import SocialApiDiscovery
from .topic_based import TopicBasedDiscovery
from .wayback import WaybackDiscovery

# Prior confidence in each strategy's output
STRATEGY_CONFIDENCE = {
    TopicBasedDiscovery.name: 0.8,
    DomainVariantDiscovery.name: 0.9,
    SocialApiDiscovery.name: 0.7,
    SearchEngineDiscovery.name: 0.6,
    WaybackDiscovery.name: 0.85,
}
DEFAULT_STRATEGY_CONFIDENCE = 0.5


def default_strategies(
    config: ResilienceConfig,
    catalog_provider: Callable[[], Awaitable[list[FeedRecord]]],
) -> list[DiscoveryStrategy]:
    """The standard strategy set, in run order."""
    return [
        TopicBasedDiscovery(config, catalog_provider),
        DomainVariantDiscovery(config),
        SocialApiDiscovery(config),
        SearchEngineDiscovery(config),
        WaybackDiscovery(config),
    ]


__all__ = [
    "DiscoveryStrategy",
    "TopicBasedDiscovery",
    "DomainVariantDiscovery",
    "SocialApiDiscovery",
    "SearchEngineDiscovery",
    "WaybackDiscovery",
    "STRATEGY_CONFIDENCE",
    "DEFAULT_STRATEGY_CONFIDENCE",
    "default_strategies",
]
