"""
Fork-Join Worker Pool
=====================
Bounded thread pool used by the lattice, interaction and aggregation stages
once their work exceeds PARALLEL_THRESHOLD units.

Every task receives a contiguous, half-open index range and returns its own
result; nothing is shared between tasks, and results come back in range
order so the caller can merge them deterministically.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
from typing import Callable, Optional, TypeVar

from universalequation.config import PARALLEL_THRESHOLD, WORKER_COUNT

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunk_ranges(n: int, chunks: int) -> list[tuple[int, int]]:
    """
    Split ``range(n)`` into at most ``chunks`` contiguous (start, stop) pairs.

    Sizes differ by at most one; empty ranges are never returned.
    """
    if n <= 0:
        return []
    chunks = max(1, min(chunks, n))
    base, extra = divmod(n, chunks)
    ranges = []
    start = 0
    for k in range(chunks):
        stop = start + base + (1 if k < extra else 0)
        ranges.append((start, stop))
        start = stop
    return ranges


class WorkerPool:
    """
    Lazily started ``ThreadPoolExecutor`` wrapper.

    The executor is only created on the first parallel call, so engines that
    never cross the threshold never spawn threads.
    """

    def __init__(self, max_workers: Optional[int] = None, threshold: int = PARALLEL_THRESHOLD) -> None:
        self.max_workers = max(1, max_workers or WORKER_COUNT)
        self.threshold = threshold
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def should_fork(self, units: int) -> bool:
        return units > self.threshold

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                logger.debug(f"Starting worker pool with {self.max_workers} thread(s).")
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix="universalequation",
                )
            return self._executor

    def map_ranges(
        self,
        func: Callable[[int, int], T],
        n: int,
        min_chunks: int = 1,
        threshold: Optional[int] = None
    ) -> list[T]:
        """
        Run ``func(start, stop)`` over contiguous ranges covering ``range(n)``.

        Below the threshold this is a single inline call. Above it the ranges
        are fanned out to the pool and joined in order. Exceptions raised by a
        task propagate to the caller unchanged.

        Args:
            threshold: Overrides the pool threshold for work whose cost per
                index is far above one unit (e.g. pairwise loops).
        """
        limit = self.threshold if threshold is None else threshold
        if n <= limit:
            return [func(0, n)] if n > 0 else []

        return self.run(func, chunk_ranges(n, max(min_chunks, self.max_workers)))

    def run(self, func: Callable[[int, int], T], ranges: list[tuple[int, int]]) -> list[T]:
        """Submit one task per range to the pool and join in range order."""
        executor = self._get_executor()
        futures = [executor.submit(func, start, stop) for start, stop in ranges]
        return [f.result() for f in futures]

    def shutdown(self) -> None:
        with self._lock:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc) -> None:
        self.shutdown()
