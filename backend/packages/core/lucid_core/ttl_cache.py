"""
Process-local TTL cache.

Holds a single value with the time it was stored. Staleness is checked on
read; nothing refreshes in the background.
"""

import time
from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class TTLCache(Generic[T]):
    """Single-value cache with a time-to-live."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._value: T | None = None
        self._stored_at: float | None = None

    @property
    def is_fresh(self) -> bool:
        if self._stored_at is None:
            return False
        return self._clock() - self._stored_at < self.ttl_seconds

    def get(self) -> T | None:
        """Return the cached value, or None if empty or expired."""
        return self._value if self.is_fresh else None

    def peek(self) -> T | None:
        """Return the cached value even if it has expired."""
        return self._value

    def set(self, value: T) -> T:
        self._value = value
        self._stored_at = self._clock()
        return value

    def invalidate(self) -> None:
        self._stored_at = None
