"""
Universal Equation
==================
The public engine object. It wires the parameter store, lattice generator,
retry manager, interaction engine, aggregator, projector and cache together.

Why is this file needed?
------------------------
1. One context object: there are no module-level engines. Any number of
   ``UniversalEquation`` instances can coexist, each with its own state.
2. Consistency: everything a read returns comes from one immutable
   :class:`EngineState`, computed from one parameter snapshot and one
   lattice, and published with a single reference swap.
3. Laziness: writes only mark the cache dirty; the next read pays for the
   refresh, on the thread that asked for it.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterable, Optional

from universalequation.config import MAX_DIMENSIONS_LIMIT, DEFAULT_MAX_DIMENSIONS
from universalequation.engine.aggregation import EnergyAggregator, collapse_term
from universalequation.engine.cache import CacheController, CacheState
from universalequation.engine.interactions import InteractionEngine
from universalequation.engine.lattice import LatticeGenerator, vertex_count
from universalequation.engine.parallel import WorkerPool
from universalequation.engine.physics import VertexPhysics
from universalequation.engine.projection import PointTransform, ProjectionMapper
from universalequation.engine.retry import RetryManager, RetryOutcome
from universalequation.model.errors import ConfigurationError
from universalequation.model.io import IOManager
from universalequation.model.navigator import Navigator, NavigatorHandle
from universalequation.model.parameters import ParameterSet, ParameterStore
from universalequation.model.results import EngineState, EnergyResult, InteractionTable

if TYPE_CHECKING:
    import numpy as np
    import numpy.typing as npt

    from universalequation.model.results import Lattice

logger = logging.getLogger(__name__)


class UniversalEquation:
    """
    Dimensional interaction and energy engine over a hypercube lattice.

    Args:
        max_dimensions: Highest dimension of the cycle, in [1, 20].
        mode: Starting dimension; clamped to [1, max_dimensions].
        vertex_cap: Upper bound on the vertex count. Defaults to
            ``2 ** max_dimensions``.
        parameters: Initial parameter snapshot. Defaults to ``ParameterSet()``.
        navigator: Optional camera/navigator, held by weak reference.
        generator: Lattice generator; inject one with a custom allocator to
            exercise the allocation retry path.

    Raises:
        ConfigurationError: For an invalid ``max_dimensions`` or ``vertex_cap``.
        ResourceExhaustion: If no lattice can be allocated at all.
    """

    def __init__(
        self,
        max_dimensions: int = DEFAULT_MAX_DIMENSIONS,
        mode: int = 1,
        vertex_cap: Optional[int] = None,
        parameters: Optional[ParameterSet] = None,
        navigator: Optional[Navigator] = None,
        generator: Optional[LatticeGenerator] = None
    ) -> None:
        if not 1 <= max_dimensions <= MAX_DIMENSIONS_LIMIT:
            logger.error(f"Invalid max_dimensions={max_dimensions}.")
            raise ConfigurationError(
                f"max_dimensions must be in [1, {MAX_DIMENSIONS_LIMIT}], got {max_dimensions}."
            )
        if vertex_cap is None:
            vertex_cap = 1 << max_dimensions
        if vertex_cap < 1:
            logger.error(f"Invalid vertex_cap={vertex_cap}.")
            raise ConfigurationError(f"vertex_cap must be at least 1, got {vertex_cap}.")

        self._max_dimensions = max_dimensions
        self._vertex_cap = vertex_cap
        self._mode = min(max(mode, 1), max_dimensions)
        self._current_dimension = self._mode

        self._pool = WorkerPool()
        self._generator = generator or LatticeGenerator(pool=self._pool)
        self._retry = RetryManager()
        self._interactions = InteractionEngine(max_dimensions, self._pool)
        self._aggregator = EnergyAggregator(max_dimensions, self._interactions, self._pool)
        self._projector = ProjectionMapper()
        self._navigator = NavigatorHandle(navigator)

        self._cache: CacheController[EngineState] = CacheController(self._refresh)
        self._store = ParameterStore(parameters, on_change=lambda _: self._cache.invalidate())
        self._lattice_lock = threading.Lock()
        self._lattice: Lattice = self._build_lattice(self._current_dimension)

        logger.info(
            f"UniversalEquation ready: max_dimensions={max_dimensions}, "
            f"dimension={self._current_dimension}, vertices={len(self._lattice)}"
        )

    # ---- Lattice lifecycle ----

    def _build_lattice(self, dimension: int) -> Lattice:
        outcome = self._retry.build(self._generator, dimension, self._vertex_cap)
        self._apply_outcome(dimension, outcome)
        return outcome.lattice

    def _apply_outcome(self, requested: int, outcome: RetryOutcome) -> None:
        if outcome.dimension != requested:
            logger.warning(f"Dimension {requested} unavailable; running at {outcome.dimension}.")
        # A halved cap is kept; a cap merely clamped to the smaller corner count is not
        if outcome.vertex_cap < vertex_count(outcome.dimension, self._vertex_cap):
            logger.warning(f"Vertex cap reduced from {self._vertex_cap} to {outcome.vertex_cap}.")
            self._vertex_cap = outcome.vertex_cap
        self._current_dimension = outcome.dimension
        self._mode = outcome.dimension

    def _switch_dimension(self, dimension: int) -> None:
        with self._lattice_lock:
            self._lattice = self._build_lattice(dimension)
        self._cache.invalidate()
        logger.info(f"Dimension set to {self._current_dimension} ({len(self._lattice)} vertices).")

    def _refresh(self) -> EngineState:
        parameters = self._store.snapshot()
        lattice = self._lattice
        interactions = self._interactions.build(lattice, parameters)
        projected = self._projector.project(lattice, parameters)
        return EngineState(
            dimension=lattice.dimension,
            parameters=parameters,
            lattice=lattice,
            interactions=interactions,
            projected=projected,
        )

    def _state(self) -> EngineState:
        return self._cache.read()

    # ---- Dimension & mode ----

    @property
    def max_dimensions(self) -> int:
        return self._max_dimensions

    @property
    def current_dimension(self) -> int:
        return self._current_dimension

    @property
    def mode(self) -> int:
        return self._mode

    @property
    def vertex_cap(self) -> int:
        return self._vertex_cap

    @property
    def cache_state(self) -> CacheState:
        return self._cache.state

    @property
    def last_retry(self) -> Optional[RetryOutcome]:
        return self._retry.last_outcome

    def set_current_dimension(self, dimension: int) -> None:
        """Switch to ``dimension``; values outside [1, max_dimensions] are ignored."""
        if not 1 <= dimension <= self._max_dimensions:
            logger.warning(f"Ignoring dimension {dimension}; valid range is [1, {self._max_dimensions}].")
            return
        if dimension == self._current_dimension:
            return
        self._switch_dimension(dimension)

    def set_mode(self, mode: int) -> None:
        """Clamp ``mode`` to [1, max_dimensions] and make it the current dimension."""
        mode = min(max(mode, 1), self._max_dimensions)
        if mode == self._mode and mode == self._current_dimension:
            return
        self._switch_dimension(mode)

    def advance_cycle(self) -> int:
        """Step to the next dimension, wrapping to 1 after max_dimensions."""
        nxt = 1 if self._current_dimension >= self._max_dimensions else self._current_dimension + 1
        if nxt != self._current_dimension:
            self._switch_dimension(nxt)
        logger.debug(f"Cycle advanced to dimension {self._current_dimension}.")
        return self._current_dimension

    # ---- Parameters ----

    @property
    def parameters(self) -> ParameterSet:
        return self._store.snapshot()

    def set_parameters(self, **changes: float) -> ParameterSet:
        """Apply several parameter changes at once (values are clamped)."""
        return self._store.update(**changes)

    def set_parameter(self, name: str, value: float) -> float:
        """Set one parameter and return the stored (clamped) value."""
        return getattr(self._store.update(**{name: value}), name)

    def get_parameter(self, name: str) -> float:
        return self._store.get(name)

    def load_parameters(self, filepath: Optional[str] = None) -> ParameterSet:
        """Replace every parameter with a JSON preset (default preset if no path)."""
        parameters = IOManager.load_parameters(filepath)
        self._store.replace_all(parameters)
        return parameters

    # ---- Reads ----

    def compute(self) -> EnergyResult:
        state = self._state()
        result = self._aggregator.aggregate(state.lattice, state.interactions, state.parameters)
        logger.debug(f"Compute: {result.interpretation()}")
        return result

    def collapse(self) -> float:
        """Current collapse term, the oscillatory signal used by the audio layer."""
        state = self._state()
        return collapse_term(state.dimension, self._max_dimensions, state.parameters)

    def get_interactions(self) -> InteractionTable:
        return self._state().interactions

    def get_projected_vertices(self) -> npt.NDArray[np.float64]:
        return self._state().projected

    def get_vertices(self) -> npt.NDArray[np.float64]:
        return self._state().lattice.vertices

    def get_momentum(self) -> npt.NDArray[np.float64]:
        return self._state().lattice.momentum

    def apply_transform(self, transform: PointTransform, time: float) -> npt.NDArray[np.float64]:
        """Projected vertices mapped through a user ``transform(point, index, time)``."""
        return self._projector.apply_transform(self.get_projected_vertices(), transform, time)

    def compute_interaction(self, vertex_index: int, distance: float) -> float:
        state = self._state()
        return self._interactions.compute_interaction(state.dimension, vertex_index, distance, state.parameters)

    def compute_permeation(self, vertex_index: int) -> float:
        state = self._state()
        return self._interactions.compute_permeation(state.lattice, vertex_index, state.parameters)

    def compute_dark_energy(self, distance: float) -> float:
        return self._interactions.compute_dark_energy(distance, self._store.snapshot())

    # ---- Cycle & export ----

    def sweep_cycle(self) -> list[EnergyResult]:
        """One EnergyResult per dimension 1..max_dimensions; the dimension is restored afterwards."""
        start = self._current_dimension
        results = []
        for dimension in range(1, self._max_dimensions + 1):
            self.set_current_dimension(dimension)
            results.append(self.compute())
        self.set_current_dimension(start)
        return results

    def export_to_csv(self, filepath: str, snapshots: Optional[Iterable[EnergyResult]] = None) -> int:
        """Append ``snapshots`` (default: the current result) to a CSV file."""
        if snapshots is None:
            snapshots = [self.compute()]
        return IOManager.export_to_csv(filepath, snapshots)

    # ---- Navigator ----

    def set_navigator(self, navigator: Optional[Navigator]) -> None:
        self._navigator.attach(navigator)

    def viewport(self) -> Optional[tuple[int, int]]:
        return self._navigator.viewport()

    # ---- Classical vertex physics ----

    def physics(self) -> VertexPhysics:
        """Classical helpers bound to the current lattice and parameters."""
        return VertexPhysics(self._lattice, self._store.snapshot(), self._max_dimensions, self._pool)

    def evolve_momentum(self, dt: float) -> npt.NDArray[np.float64]:
        """
        Advance the momentum table by one gravity step and mark the cache dirty.

        The step runs without holding the lattice lock. If the lattice is
        replaced meanwhile (dimension change or a concurrent step) the stale
        step is dropped and the current momentum is returned unchanged.
        """
        physics = self.physics()
        momentum = physics.evolve_momentum(dt)
        with self._lattice_lock:
            if self._lattice is not physics.lattice:
                logger.warning("Lattice changed during the momentum step; step discarded.")
                return self._lattice.momentum
            self._lattice = self._lattice.with_momentum(momentum)
            lattice = self._lattice
        self._cache.invalidate()
        return lattice.momentum

    # ---- Lifecycle ----

    def close(self) -> None:
        self._pool.shutdown()

    def __enter__(self) -> UniversalEquation:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"UniversalEquation(max_dimensions={self._max_dimensions}, "
            f"dimension={self._current_dimension}, vertex_cap={self._vertex_cap})"
        )
