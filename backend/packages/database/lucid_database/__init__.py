"""
Lucid database package.

SQLAlchemy models, session management and the SQL implementations of the
resilience engine's store and notifier.
"""

from .session import close_database, get_session_context, get_session_factory, init_database
from .store import SqlNotifier, SqlResilienceStore

__all__ = [
    "init_database",
    "close_database",
    "get_session_factory",
    "get_session_context",
    "SqlResilienceStore",
    "SqlNotifier",
]
