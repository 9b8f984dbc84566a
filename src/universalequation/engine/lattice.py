"""
Lattice Generator
=================
Builds the corner table of the d-dimensional hypercube.

Vertex ``i`` has coordinate ``j`` equal to +1 when bit ``j`` of ``i`` is set
and -1 otherwise, so the table is a pure function of (dimension, cap).

Why is this file needed?
------------------------
1. Publication safety: the table is built into fresh arrays and handed back
   as a read-only :class:`Lattice`. The caller swaps one reference, so a
   half-filled table is never visible.
2. Failure injection: all large allocations go through ``allocator``, which
   lets the retry machinery be exercised without exhausting real memory.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Optional

import numba as nb
import numpy as np

from universalequation.engine.parallel import WorkerPool
from universalequation.model.results import Lattice
from universalequation.utils import freeze

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

Allocator = Callable[..., "npt.NDArray[np.float64]"]


@nb.njit(cache=True, nogil=True)
def fill_corners(out: npt.NDArray[np.float64], start: int) -> None:
    """Write corners ``start .. start + len(out)`` into ``out`` (shape (m, d))."""
    m, d = out.shape
    for r in range(m):
        i = start + r
        for j in range(d):
            if (i >> j) & 1:
                out[r, j] = 1.0
            else:
                out[r, j] = -1.0


def vertex_count(dimension: int, vertex_cap: int) -> int:
    """min(2^d, cap)."""
    return min(1 << dimension, vertex_cap)


class LatticeGenerator:
    """
    Deterministic hypercube corner builder.

    Args:
        allocator: ``allocator(shape, dtype=...)`` returning an uninitialised
            array. Defaults to ``numpy.empty``. A ``MemoryError`` raised here
            propagates unchanged.
        pool: Worker pool for tables above the parallel threshold.
    """

    def __init__(self, allocator: Optional[Allocator] = None, pool: Optional[WorkerPool] = None) -> None:
        self.allocator: Allocator = allocator or np.empty
        self.pool = pool or WorkerPool()

    def build(self, dimension: int, vertex_cap: int) -> Lattice:
        n = vertex_count(dimension, vertex_cap)
        logger.debug(f"Building lattice: d={dimension}, cap={vertex_cap}, n={n}")

        vertices = self.allocator((n, dimension), dtype=np.float64)
        momentum = self.allocator((n, dimension), dtype=np.float64)

        if self.pool.should_fork(n):
            def fill_block(start: int, stop: int) -> tuple[int, npt.NDArray[np.float64]]:
                block = np.empty((stop - start, dimension), dtype=np.float64)
                fill_corners(block, start)
                return start, block

            for start, block in self.pool.map_ranges(fill_block, n):
                vertices[start:start + len(block)] = block
        else:
            fill_corners(vertices, 0)

        momentum.fill(0.0)
        return Lattice(
            dimension=dimension,
            vertex_cap=vertex_cap,
            vertices=freeze(vertices),
            momentum=freeze(momentum),
        )
