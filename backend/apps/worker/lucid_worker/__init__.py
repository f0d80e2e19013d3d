"""
Lucid worker application.

arq worker hosting the feed resilience engine.
"""

__version__ = "0.1.0"
