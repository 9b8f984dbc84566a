"""Shared fixtures for the engine test suite."""
from __future__ import annotations

import pytest

from universalequation import UniversalEquation
from universalequation.engine.lattice import LatticeGenerator
from universalequation.engine.parallel import WorkerPool


class FailingAllocator:
    """numpy.empty stand-in that raises MemoryError for selected shapes."""

    def __init__(self, min_dimension: int | None = None, max_rows: int | None = None):
        self.min_dimension = min_dimension
        self.max_rows = max_rows
        self.calls: list[tuple[int, int]] = []

    def __call__(self, shape, dtype=None):
        import numpy as np

        rows, dims = shape
        self.calls.append((rows, dims))
        if self.min_dimension is not None and dims >= self.min_dimension:
            raise MemoryError(f"injected failure for d={dims}")
        if self.max_rows is not None and rows > self.max_rows:
            raise MemoryError(f"injected failure for {rows} rows")
        return np.empty(shape, dtype=dtype)


@pytest.fixture
def pool():
    with WorkerPool(max_workers=4) as p:
        yield p


@pytest.fixture
def generator(pool):
    return LatticeGenerator(pool=pool)


@pytest.fixture
def engine():
    with UniversalEquation(max_dimensions=5, mode=1) as eq:
        yield eq


@pytest.fixture
def engine_3d():
    with UniversalEquation(max_dimensions=5, mode=3) as eq:
        yield eq


@pytest.fixture
def failing_allocator():
    """The FailingAllocator class, to be instantiated per test."""
    return FailingAllocator
