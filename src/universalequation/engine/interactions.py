"""
Interaction Engine
==================
Computes the interaction of every lattice vertex with the reference vertex 0.

For vertex ``i`` the *axis* is ``(i mod max_dimensions) + 1``. Strength decays
with the dimension raised to the axis and with distance; permeation, spin,
vector potential, NURBS field values and the wave amplitude are derived per
row as well.

Why is this file needed?
------------------------
1. Throughput: the per-row loop is a numba ``nogil`` kernel, so chunks of a
   large table run truly in parallel on the worker pool.
2. Safety: every column leaves this module finite. Non-finite entries are
   replaced with the column's neutral value and logged.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional

import numba as nb
import numpy as np

from universalequation.config import DARK_ENERGY_DISTANCE_CAP, EPSILON, SPIN_MAGNITUDE
from universalequation.engine import nurbs
from universalequation.engine.parallel import WorkerPool
from universalequation.model.errors import OutOfRange
from universalequation.model.results import InteractionTable
from universalequation.utils import safe_exp, safe_exp_array, sanitize

if TYPE_CHECKING:
    import numpy.typing as npt

    from universalequation.model.parameters import ParameterSet
    from universalequation.model.results import Lattice

logger = logging.getLogger(__name__)

# Axes that receive the 3D influence boost when d == 3
THREE_D_AXES = (2, 4)


def angular_step(max_dimensions: int) -> float:
    """omega = 2*pi / (2*max_dimensions - 1)."""
    return 2.0 * math.pi / (2 * max_dimensions - 1)


# ---- JIT'd scalar rules (callable from Python and from the row kernel) ----

@nb.njit(cache=True, nogil=True)
def axis_of(index: int, max_dimensions: int) -> int:
    return index % max_dimensions + 1


@nb.njit(cache=True, nogil=True)
def interaction_strength(
    index: int,
    distance: float,
    dimension: int,
    max_dimensions: int,
    influence: float,
    weak: float,
    three_d_influence: float
) -> float:
    """influence / (max(eps, d^axis) * (1 + distance)) * modifier."""
    axis = axis_of(index, max_dimensions)
    denom = max(EPSILON, float(dimension) ** axis)
    modifier = weak if (dimension > 3 and axis > 3) else 1.0
    if dimension == 3 and (axis == 2 or axis == 4):
        modifier *= three_d_influence
    scale = denom * (1.0 + distance)
    if abs(scale) < EPSILON:
        return 0.0
    return influence / scale * modifier


@nb.njit(cache=True, nogil=True)
def permeation_rule(
    index: int,
    norm: float,
    dimension: int,
    max_dimensions: int,
    one_d_permeation: float,
    two_d: float,
    three_d_influence: float,
    beta: float
) -> float:
    axis = axis_of(index, max_dimensions)
    if dimension == 1:
        return one_d_permeation
    if dimension == 2 and axis > 2:
        return two_d
    if dimension == 3 and (axis == 2 or axis == 4):
        return three_d_influence
    return 1.0 + beta * norm / max(1, dimension)


@nb.njit(cache=True, nogil=True)
def interaction_rows(
    vertices: npt.NDArray[np.float64],
    indices: npt.NDArray[np.int64],
    max_dimensions: int,
    influence: float,
    weak: float,
    three_d_influence: float,
    one_d_permeation: float,
    two_d: float,
    beta: float,
    asym_collapse: float,
    wave_frequency: float,
    omega: float
):
    """
    Row kernel over ``indices``.

    Returns:
        distance, strength, permeation, vector_potential (m, 3), wave, spin.
    """
    m = indices.size
    d = vertices.shape[1]
    distance = np.empty(m, np.float64)
    strength = np.empty(m, np.float64)
    permeation = np.empty(m, np.float64)
    potential = np.zeros((m, 3), np.float64)
    wave = np.empty(m, np.float64)
    spin = np.empty(m, np.float64)

    for r in range(m):
        i = indices[r]
        sq = 0.0
        norm_sq = 0.0
        positives = 0
        for j in range(d):
            v = vertices[i, j]
            diff = v - vertices[0, j]
            sq += diff * diff
            norm_sq += v * v
            if v > 0.0:
                positives += 1

        # d == 1 keeps the signed difference
        if d == 1:
            dist = vertices[i, 0] - vertices[0, 0]
        else:
            dist = math.sqrt(sq)
        distance[r] = dist

        strength[r] = interaction_strength(
            i, dist, d, max_dimensions, influence, weak, three_d_influence
        )
        permeation[r] = permeation_rule(
            i, math.sqrt(norm_sq), d, max_dimensions, one_d_permeation, two_d, three_d_influence, beta
        )

        s = SPIN_MAGNITUDE if positives % 2 == 0 else -SPIN_MAGNITUDE
        spin[r] = s

        falloff = 1.0 + dist
        if abs(falloff) >= EPSILON:
            for k in range(min(3, d)):
                potential[r, k] = s * vertices[i, k] / falloff

        axis = axis_of(i, max_dimensions)
        sign = 1.0 if s > 0.0 else -1.0
        base_amplitude = (1.0 + asym_collapse * sign) / axis
        wave[r] = base_amplitude * math.cos(wave_frequency * dist + omega * i)

    return distance, strength, permeation, potential, wave, spin


class InteractionEngine:
    """
    Builds :class:`InteractionTable` snapshots for one ``max_dimensions``.

    Args:
        max_dimensions: Fixed at construction, sets the axis period and omega.
        pool: Worker pool used above the parallel threshold.
    """

    def __init__(self, max_dimensions: int, pool: Optional[WorkerPool] = None) -> None:
        self.max_dimensions = max_dimensions
        self.omega = angular_step(max_dimensions)
        self.pool = pool or WorkerPool()

    def axis(self, index: int) -> int:
        return int(axis_of(index, self.max_dimensions))

    def row_indices(self, n: int, dimension: int) -> npt.NDArray[np.int64]:
        """Vertex indices 1..n-1, plus the d == 3 post-pass entries when missing."""
        indices = np.arange(1, n, dtype=np.int64)
        if dimension != 3:
            return indices

        extra = []
        for target_axis in THREE_D_AXES:
            index = target_axis - 1
            if index < n and index not in indices and index not in extra:
                extra.append(index)
        if extra:
            logger.debug(f"d=3 post-pass appends vertex indices {extra}")
            indices = np.concatenate([indices, np.asarray(extra, dtype=np.int64)])
        return indices

    def build(self, lattice: Lattice, parameters: ParameterSet) -> InteractionTable:
        """Compute the full table for ``lattice`` under one parameter snapshot."""
        indices = self.row_indices(len(lattice), lattice.dimension)
        if indices.size == 0:
            return InteractionTable.empty()

        def run_chunk(start: int, stop: int) -> InteractionTable:
            return self._rows(lattice.vertices, indices[start:stop], parameters)

        parts = self.pool.map_ranges(run_chunk, indices.size)
        table = parts[0] if len(parts) == 1 else InteractionTable.concatenate(parts)
        logger.debug(f"Interactions (d={lattice.dimension}): {len(table)} rows")
        return table

    def _rows(
        self,
        vertices: npt.NDArray[np.float64],
        indices: npt.NDArray[np.int64],
        p: ParameterSet
    ) -> InteractionTable:
        distance, strength, permeation, potential, wave, spin = interaction_rows(
            vertices, indices, self.max_dimensions,
            p.influence, p.weak, p.three_d_influence, p.one_d_permeation, p.two_d,
            p.beta, p.asym_collapse, p.wave_frequency, self.omega,
        )
        u = nurbs.distance_parameter(distance)
        return InteractionTable(
            vertex_index=indices,
            distance=sanitize(distance, 0.0, "distance"),
            strength=sanitize(strength, 0.0, "strength"),
            permeation=sanitize(permeation, 1.0, "permeation"),
            vector_potential=sanitize(potential, 0.0, "vector_potential"),
            field_matter=sanitize(nurbs.matter_curve()(u), 0.0, "field_matter"),
            field_energy=sanitize(nurbs.energy_curve()(u), 0.0, "field_energy"),
            wave_amplitude=sanitize(wave, 0.0, "wave_amplitude"),
            spin=sanitize(spin, 0.0, "spin"),
        )

    # ---- Scalar surface ----

    def compute_interaction(self, dimension: int, index: int, distance: float, parameters: ParameterSet) -> float:
        return float(interaction_strength(
            index, distance, dimension, self.max_dimensions,
            parameters.influence, parameters.weak, parameters.three_d_influence,
        ))

    def compute_permeation(self, lattice: Lattice, index: int, parameters: ParameterSet) -> float:
        """
        Permeation of vertex ``index`` on ``lattice``.

        Raises:
            OutOfRange: If ``index`` is not a row of the vertex table.
        """
        n = len(lattice)
        if index < 0 or index >= n:
            logger.error(f"Permeation requested for vertex {index} of {n}.")
            raise OutOfRange(index, n)
        norm = float(np.linalg.norm(lattice.vertices[index]))
        return float(permeation_rule(
            index, norm, lattice.dimension, self.max_dimensions,
            parameters.one_d_permeation, parameters.two_d, parameters.three_d_influence, parameters.beta,
        ))

    def compute_dark_energy(self, distance: float, parameters: ParameterSet) -> float:
        """nurbs_energy_strength * exp(min(distance, 10) / max_dimensions)."""
        return parameters.nurbs_energy_strength * safe_exp(
            min(distance, DARK_ENERGY_DISTANCE_CAP) / self.max_dimensions
        )

    def dark_energy(self, distance: npt.NDArray[np.float64], parameters: ParameterSet) -> npt.NDArray[np.float64]:
        """Vectorised :meth:`compute_dark_energy`."""
        capped = np.minimum(distance, DARK_ENERGY_DISTANCE_CAP) / self.max_dimensions
        return parameters.nurbs_energy_strength * safe_exp_array(capped)
