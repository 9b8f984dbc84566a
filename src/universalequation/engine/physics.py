"""
Classical Vertex Physics
========================
Treats the lattice corners as point particles.

Each vertex carries a pseudo-charge (spin) of +/-0.5 from the parity of its
+1 coordinates, a mass ``|spin| * spin_interaction`` and an n-ball volume
whose radius shrinks with the vertex's mean distance to the rest of the
lattice. Gravity and the Coulomb field are evaluated pairwise with a softened
distance ``sqrt(max(r^2, eps))``.

The results are informational; they never feed back into the energy channels
except through the momentum table (see :meth:`VertexPhysics.evolve_momentum`).
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable, Optional, TypeVar

import numba as nb
import numpy as np
from scipy.special import gamma

from universalequation.config import (
    CHARGE_SCALE, COULOMB_CONSTANT, EPSILON, GRAVITATIONAL_CONSTANT, MOMENTUM_LIMIT,
    PHYSICS_PARALLEL_THRESHOLD, SPIN_MAGNITUDE
)
from universalequation.engine.parallel import WorkerPool
from universalequation.model.errors import OutOfRange
from universalequation.utils import finite_or_default, safe_div, sanitize

if TYPE_CHECKING:
    import numpy.typing as npt

    from universalequation.model.parameters import ParameterSet
    from universalequation.model.results import Lattice

logger = logging.getLogger(__name__)

T = TypeVar("T")


def vertex_spins(vertices: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """+0.5 for an even number of +1 coordinates, -0.5 otherwise."""
    positives = np.count_nonzero(vertices > 0.0, axis=1)
    return np.where(positives % 2 == 0, SPIN_MAGNITUDE, -SPIN_MAGNITUDE)


def ball_volume(dimension: int, radius: float) -> float:
    """Volume of the d-ball: pi^(d/2) r^d / Gamma(d/2 + 1)."""
    return safe_div(math.pi ** (dimension / 2.0) * radius ** dimension, float(gamma(dimension / 2.0 + 1.0)))


# ---- JIT'd pairwise kernels (each over a block of target rows) ----

@nb.njit(cache=True, nogil=True)
def mean_distances(vertices: npt.NDArray[np.float64], start: int, stop: int) -> npt.NDArray[np.float64]:
    """Mean softened distance from vertices ``start .. stop`` to every other vertex."""
    n, d = vertices.shape
    out = np.zeros(stop - start, np.float64)
    if n < 2:
        return out
    for i in range(start, stop):
        total = 0.0
        for j in range(n):
            if i == j:
                continue
            sq = 0.0
            for k in range(d):
                diff = vertices[j, k] - vertices[i, k]
                sq += diff * diff
            total += math.sqrt(max(sq, EPSILON))
        out[i - start] = total / (n - 1)
    return out


@nb.njit(cache=True, nogil=True)
def inverse_square_field(
    vertices: npt.NDArray[np.float64],
    sources: npt.NDArray[np.float64],
    coupling: float,
    target: int
) -> npt.NDArray[np.float64]:
    """sum_j coupling * s_j * (v_j - v_t) / r^3 over j != target."""
    n, d = vertices.shape
    out = np.zeros(d, np.float64)
    for j in range(n):
        if j == target:
            continue
        sq = 0.0
        for k in range(d):
            diff = vertices[j, k] - vertices[target, k]
            sq += diff * diff
        r = math.sqrt(max(sq, EPSILON))
        factor = coupling * sources[j] / (r * r * r)
        for k in range(d):
            delta = factor * (vertices[j, k] - vertices[target, k])
            if math.isfinite(delta):
                out[k] += delta
    return out


@nb.njit(cache=True, nogil=True)
def inverse_square_fields(
    vertices: npt.NDArray[np.float64],
    sources: npt.NDArray[np.float64],
    coupling: float,
    start: int,
    stop: int
) -> npt.NDArray[np.float64]:
    """:func:`inverse_square_field` for every target in ``start .. stop``."""
    out = np.zeros((stop - start, vertices.shape[1]), np.float64)
    for t in range(start, stop):
        out[t - start] = inverse_square_field(vertices, sources, coupling, t)
    return out


@nb.njit(cache=True, nogil=True)
def pair_potential_sum(
    vertices: npt.NDArray[np.float64],
    masses: npt.NDArray[np.float64],
    coupling: float,
    start: int,
    stop: int
) -> float:
    """sum over i in [start, stop), j > i of -coupling * m_i * m_j / r_ij."""
    n, d = vertices.shape
    total = 0.0
    for i in range(start, stop):
        for j in range(i + 1, n):
            sq = 0.0
            for k in range(d):
                diff = vertices[i, k] - vertices[j, k]
                sq += diff * diff
            total += -coupling * masses[i] * masses[j] / math.sqrt(max(sq, EPSILON))
    return total


class VertexPhysics:
    """
    Classical helpers bound to one lattice and one parameter snapshot.

    Args:
        lattice: Vertex and momentum tables.
        parameters: Current parameters (influence, spin_interaction).
        max_dimensions: Normalises the mean distance in the scaling factor.
        pool: Worker pool for the pairwise loops above
            PHYSICS_PARALLEL_THRESHOLD vertices.
    """

    def __init__(
        self,
        lattice: Lattice,
        parameters: ParameterSet,
        max_dimensions: int,
        pool: Optional[WorkerPool] = None
    ) -> None:
        self.lattice = lattice
        self.parameters = parameters
        self.max_dimensions = max_dimensions
        self.pool = pool or WorkerPool()
        self.spins = vertex_spins(lattice.vertices)
        self.masses = np.abs(self.spins) * parameters.spin_interaction
        self._mean_distances: npt.NDArray[np.float64] | None = None

    @property
    def dimension(self) -> int:
        return self.lattice.dimension

    def _validate(self, index: int) -> None:
        n = len(self.lattice)
        if index < 0 or index >= n:
            logger.error(f"Invalid vertex index {index} for a table of {n} vertices.")
            raise OutOfRange(index, n)

    def _per_vertex(self, kernel: Callable[[int, int], T]) -> list[T]:
        return self.pool.map_ranges(kernel, len(self.lattice), threshold=PHYSICS_PARALLEL_THRESHOLD)

    def _distances(self) -> npt.NDArray[np.float64]:
        if self._mean_distances is None:
            vertices = self.lattice.vertices
            parts = self._per_vertex(lambda start, stop: mean_distances(vertices, start, stop))
            self._mean_distances = np.concatenate(parts) if parts else np.zeros(0)
        return self._mean_distances

    def _scalings(self) -> npt.NDArray[np.float64]:
        if len(self.lattice) < 2:
            return np.ones(len(self.lattice))
        return sanitize(1.0 / (1.0 + self._distances() / self.max_dimensions), 1.0, "pythagorean_scaling")

    # ---- Per-vertex quantities ----

    def pythagorean_scaling(self, index: int) -> float:
        self._validate(index)
        return float(self._scalings()[index])

    def vertex_volume(self, index: int) -> float:
        radius = max(self.pythagorean_scaling(index) * self.parameters.influence, EPSILON)
        return finite_or_default(ball_volume(self.dimension, radius), 0.0, "vertex_volume")

    def vertex_mass(self, index: int) -> float:
        self._validate(index)
        return finite_or_default(float(self.masses[index]), 0.0, "vertex_mass")

    def vertex_density(self, index: int) -> float:
        density = safe_div(self.vertex_mass(index), self.vertex_volume(index))
        return finite_or_default(density, 0.0, "vertex_density")

    # ---- System quantities ----

    def center_of_mass(self) -> npt.NDArray[np.float64]:
        total = float(self.masses.sum())
        if total <= 0.0:
            return np.zeros(self.dimension)
        com = (self.masses[:, None] * self.lattice.vertices).sum(axis=0) / total
        return sanitize(com, 0.0, "center_of_mass")

    def total_system_volume(self) -> float:
        if len(self.lattice) == 0:
            return 0.0
        radii = np.maximum(self._scalings() * self.parameters.influence, EPSILON)
        unit = ball_volume(self.dimension, 1.0)
        volumes = sanitize(unit * radii ** self.dimension, 0.0, "vertex_volume")
        return finite_or_default(math.fsum(volumes), 0.0, "total_system_volume")

    def gravitational_potential(self, first: int, second: int) -> float:
        if first == second:
            return 0.0
        self._validate(first)
        self._validate(second)
        diff = self.lattice.vertices[first] - self.lattice.vertices[second]
        distance = math.sqrt(max(float(diff @ diff), EPSILON))
        potential = safe_div(-GRAVITATIONAL_CONSTANT * self.masses[first] * self.masses[second], distance)
        return finite_or_default(potential, 0.0, "gravitational_potential")

    def gravitational_acceleration(self, index: int) -> npt.NDArray[np.float64]:
        self._validate(index)
        acc = inverse_square_field(self.lattice.vertices, self.masses, GRAVITATIONAL_CONSTANT, index)
        return sanitize(acc, 0.0, "gravitational_acceleration")

    def gravitational_accelerations(self) -> npt.NDArray[np.float64]:
        """(n, d) acceleration of every vertex."""
        vertices, masses = self.lattice.vertices, self.masses
        parts = self._per_vertex(
            lambda start, stop: inverse_square_fields(vertices, masses, GRAVITATIONAL_CONSTANT, start, stop)
        )
        if not parts:
            return np.zeros((0, self.dimension))
        return sanitize(np.concatenate(parts), 0.0, "gravitational_acceleration")

    def classical_em_field(self, index: int) -> npt.NDArray[np.float64]:
        self._validate(index)
        charges = self.spins * CHARGE_SCALE
        field = inverse_square_field(self.lattice.vertices, charges, COULOMB_CONSTANT, index)
        return sanitize(field, 0.0, "classical_em_field")

    def system_energy(self) -> float:
        """Pairwise gravitational potential plus kinetic energy."""
        vertices, masses = self.lattice.vertices, self.masses
        parts = self._per_vertex(
            lambda start, stop: pair_potential_sum(vertices, masses, GRAVITATIONAL_CONSTANT, start, stop)
        )
        potential = math.fsum(parts)
        momentum = self.lattice.momentum
        kinetic = 0.5 * float((self.masses * np.einsum("ij,ij->i", momentum, momentum)).sum())
        return finite_or_default(potential + kinetic, 0.0, "system_energy")

    def evolve_momentum(self, dt: float) -> npt.NDArray[np.float64]:
        """
        One explicit Euler step of the momentum table under gravity.

        Returns:
            New (n, d) momentum, each component clamped to [-0.9, 0.9].

        Raises:
            ValueError: If ``dt`` is not a positive finite number.
        """
        if not math.isfinite(dt) or dt <= 0.0:
            logger.error(f"Rejected momentum step with dt={dt}.")
            raise ValueError(f"Time step must be positive and finite, got {dt}.")

        updated = self.lattice.momentum + dt * self.gravitational_accelerations()
        np.clip(updated, -MOMENTUM_LIMIT, MOMENTUM_LIMIT, out=updated)
        return sanitize(updated, 0.0, "momentum")
