"""
Lazy Refresh Cache
==================
Dirty-flag cache in front of the interaction/projection refresh.

Every write bumps a generation counter; the cache is CLEAN when the published
value was computed at the current generation. A read while DIRTY runs the
refresh synchronously on the calling thread, under one non-reentrant lock,
and only marks CLEAN up to the generation observed when the refresh started.
A write that lands mid-refresh therefore leaves the cache DIRTY for the next
read.
"""
from __future__ import annotations

from enum import StrEnum
import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheState(StrEnum):
    CLEAN = "Clean"
    DIRTY = "Dirty"


class CacheController(Generic[T]):
    def __init__(self, refresh: Callable[[], T]) -> None:
        self._refresh = refresh
        self._lock = threading.Lock()
        self._generation_lock = threading.Lock()
        self._generation = 0
        self._clean_generation = -1
        self._value: Optional[T] = None
        self.refresh_count = 0

    @property
    def state(self) -> CacheState:
        if self._clean_generation == self._generation:
            return CacheState.CLEAN
        return CacheState.DIRTY

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        """Mark the published value stale."""
        with self._generation_lock:
            self._generation += 1

    def peek(self) -> Optional[T]:
        """Last published value, without refreshing."""
        return self._value

    def read(self) -> T:
        """Published value, refreshing first when DIRTY."""
        if self.state is CacheState.CLEAN:
            return self._value

        with self._lock:
            # Another reader may have refreshed while we waited
            if self.state is CacheState.CLEAN:
                return self._value
            started_at = self._generation
            value = self._refresh()
            self._value = value
            self._clean_generation = started_at
            self.refresh_count += 1
            logger.debug(f"Cache refreshed at generation {started_at} (refresh #{self.refresh_count}).")
            return value
