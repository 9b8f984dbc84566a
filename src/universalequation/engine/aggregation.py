"""
Energy Aggregation
==================
Reduces an interaction table to one :class:`EnergyResult`.

Every row contributes with the weight

    b_i = strength_i * exp(-alpha * distance_i) * permeation_i

to the interaction sum and to six channels (matter, energy, spin, momentum,
field, wave). The channels are then renormalised so their signed sum equals
``renorm_factor``; when that sum cancels to zero the absolute sum is used
instead. A deterministic collapse term, read from a cosine table,
splits the total into the observable and the potential.

Above PARALLEL_THRESHOLD rows the reduction runs as independent partial
accumulators on the worker pool, merged in order at the end.
"""
from __future__ import annotations

from functools import lru_cache
import logging
import math
from typing import TYPE_CHECKING, Optional

import numba as nb
import numpy as np

from universalequation.config import EPSILON, EXP_CLAMP, MIN_PARALLEL_ACCUMULATORS
from universalequation.engine.interactions import InteractionEngine, angular_step
from universalequation.engine.parallel import WorkerPool, chunk_ranges
from universalequation.model.results import EnergyResult
from universalequation.utils import finite_or_default, safe_exp

if TYPE_CHECKING:
    import numpy.typing as npt

    from universalequation.model.parameters import ParameterSet
    from universalequation.model.results import InteractionTable, Lattice

logger = logging.getLogger(__name__)

# Slots of the partial-sum vector
INTERACTION, MATTER, ENERGY, SPIN, MOMENTUM, FIELD, WAVE = range(7)
CHANNEL_SLOTS = (MATTER, ENERGY, SPIN, MOMENTUM, FIELD, WAVE)


@lru_cache(maxsize=None)
def cos_table(max_dimensions: int) -> tuple[float, ...]:
    """cos(omega * i) for i = 0..max_dimensions."""
    omega = angular_step(max_dimensions)
    return tuple(math.cos(omega * i) for i in range(max_dimensions + 1))


def base_observable(dimension: int, max_dimensions: int, p: ParameterSet) -> float:
    table = cos_table(max_dimensions)
    base = p.influence
    if dimension >= 2:
        base += p.two_d * table[dimension % len(table)]
    if dimension == 3:
        base += p.three_d_influence
    return base


def collapse_term(dimension: int, max_dimensions: int, p: ParameterSet) -> float:
    """Deterministic oscillatory collapse; 0 for d == 1."""
    if dimension == 1:
        return 0.0
    table = cos_table(max_dimensions)
    phase = dimension / (2 * max_dimensions)
    osc = abs(table[int(2.0 * math.pi * phase * len(table)) % len(table)])
    value = p.collapse * dimension * safe_exp(-p.beta * (dimension - 1)) * (0.8 * osc + 0.2)
    return max(0.0, value)


@nb.njit(cache=True, nogil=True)
def accumulate_channels(
    strength: npt.NDArray[np.float64],
    distance: npt.NDArray[np.float64],
    permeation: npt.NDArray[np.float64],
    field_matter: npt.NDArray[np.float64],
    field_energy: npt.NDArray[np.float64],
    dark_energy: npt.NDArray[np.float64],
    spin: npt.NDArray[np.float64],
    momentum_norm: npt.NDArray[np.float64],
    potential_norm: npt.NDArray[np.float64],
    wave: npt.NDArray[np.float64],
    start: int,
    stop: int,
    alpha: float,
    matter_strength: float,
    vacuum_energy: float,
    spin_interaction: float,
    carroll_factor: float,
    em_field_strength: float,
    mean_field_approx: float,
    mean_potential: float
) -> npt.NDArray[np.float64]:
    """Partial sums over rows [start, stop), in slot order."""
    out = np.zeros(7, np.float64)
    for r in range(start, stop):
        arg = -alpha * distance[r]
        if arg > EXP_CLAMP:
            arg = EXP_CLAMP
        elif arg < -EXP_CLAMP:
            arg = -EXP_CLAMP
        b = strength[r] * math.exp(arg) * permeation[r]

        out[0] += b * matter_strength
        out[1] += b * matter_strength * field_matter[r]
        out[2] += b * (dark_energy[r] * field_energy[r] + vacuum_energy)
        out[3] += b * spin_interaction * spin[r]
        out[4] += b * carroll_factor * (1.0 + momentum_norm[r])
        mixed = (1.0 - mean_field_approx) * potential_norm[r] + mean_field_approx * mean_potential
        out[5] += b * em_field_strength * mixed
        out[6] += b * wave[r]
    return out


class EnergyAggregator:
    def __init__(
        self,
        max_dimensions: int,
        interactions: Optional[InteractionEngine] = None,
        pool: Optional[WorkerPool] = None
    ) -> None:
        self.max_dimensions = max_dimensions
        self.pool = pool or WorkerPool()
        self.interactions = interactions or InteractionEngine(max_dimensions, self.pool)

    def aggregate(
        self,
        lattice: Lattice,
        table: InteractionTable,
        parameters: ParameterSet,
        parallel: Optional[bool] = None
    ) -> EnergyResult:
        """
        Reduce ``table`` to an :class:`EnergyResult`.

        Args:
            parallel: Force (True) or suppress (False) the pooled reduction.
                ``None`` lets the row count decide.
        """
        p = parameters
        d = lattice.dimension
        n = len(table)

        momentum_norm = np.linalg.norm(lattice.momentum[table.vertex_index], axis=1) if n else np.empty(0)
        potential_norm = np.linalg.norm(table.vector_potential, axis=1) if n else np.empty(0)
        mean_potential = float(potential_norm.mean()) if n else 0.0
        dark_energy = self.interactions.dark_energy(table.distance, p)

        def partial(start: int, stop: int) -> npt.NDArray[np.float64]:
            return accumulate_channels(
                table.strength, table.distance, table.permeation,
                table.field_matter, table.field_energy, dark_energy,
                table.spin, momentum_norm, potential_norm, table.wave_amplitude,
                start, stop,
                p.alpha, p.nurbs_matter_strength, p.vacuum_energy, p.spin_interaction,
                p.carroll_factor, p.em_field_strength, p.mean_field_approx, mean_potential,
            )

        if parallel is None:
            parallel = self.pool.should_fork(n)

        if parallel and n > 0:
            ranges = chunk_ranges(n, max(MIN_PARALLEL_ACCUMULATORS, self.pool.max_workers))
            partials = self.pool.run(partial, ranges)
            logger.debug(f"Aggregated {n} rows with {len(partials)} partial accumulators.")
        else:
            partials = [partial(0, n)]

        totals = np.zeros(7, np.float64)
        for part in partials:
            totals += part

        return self._finish(d, totals, p)

    def _finish(self, dimension: int, totals: npt.NDArray[np.float64], p: ParameterSet) -> EnergyResult:
        labels = ("interaction_sum", "matter", "energy", "spin", "momentum", "field", "wave")
        values = [finite_or_default(float(v), 0.0, label) for v, label in zip(totals, labels)]

        channels = [values[slot] for slot in CHANNEL_SLOTS]
        total_charge = math.fsum(channels)
        if abs(total_charge) <= EPSILON:
            # Signed channels cancel; scale by magnitude instead
            magnitude = math.fsum(abs(c) for c in channels)
            if magnitude > EPSILON:
                logger.warning(
                    f"Channel sum {total_charge:.3e} too close to zero at d={dimension}; "
                    f"renormalising by the absolute sum {magnitude:.6f}."
                )
            total_charge = magnitude
        if abs(total_charge) > EPSILON:
            scale = p.renorm_factor / total_charge
            channels = [c * scale for c in channels]

        base = base_observable(dimension, self.max_dimensions, p)
        collapse = collapse_term(dimension, self.max_dimensions, p)
        interaction_sum = values[INTERACTION]

        matter, energy, spin, momentum, field, wave = channels
        return EnergyResult(
            dimension=dimension,
            observable=finite_or_default(base + interaction_sum + collapse, 0.0, "observable"),
            potential=finite_or_default(max(0.0, base + interaction_sum - collapse), 0.0, "potential"),
            matter=matter,
            energy=energy,
            spin=spin,
            momentum=momentum,
            field=field,
            wave=wave,
        )
