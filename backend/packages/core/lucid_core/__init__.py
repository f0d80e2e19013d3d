"""
Lucid Core Package.

This package contains the feed resilience engine: discovery strategies,
candidate scoring, the discovery job queue, the healing learning loop and
the health monitor.
"""

__version__ = "0.1.0"

from .logging_config import init_logging, get_logger

__all__ = ["init_logging", "get_logger"]
