"""
Result Value Objects
====================
Immutable containers produced by the engine and consumed by the rendering and
audio layers.

Classes:
    DimensionInteraction: One row of the interaction table.
    InteractionTable: Columnar, read-only table of all interaction rows.
    EnergyResult: Aggregate multi-channel energy snapshot.
    Lattice: Read-only vertex and momentum tables of one dimension.
    EngineState: Snapshot published by one refresh.
"""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, overload

import numpy as np

from universalequation.utils import freeze

if TYPE_CHECKING:
    import numpy.typing as npt

    from universalequation.model.parameters import ParameterSet


@dataclass(frozen=True)
class DimensionInteraction:
    """Interaction of one vertex with the reference vertex 0."""
    vertex_index: int
    distance: float
    strength: float
    vector_potential: tuple[float, float, float]
    wave_amplitude: float
    permeation: float = 1.0
    field_matter: float = 0.0
    field_energy: float = 0.0
    spin: float = 0.0


# Column name -> (dtype, trailing shape)
_COLUMNS: dict[str, tuple[type, tuple[int, ...]]] = {
    "vertex_index": (np.int64, ()),
    "distance": (np.float64, ()),
    "strength": (np.float64, ()),
    "permeation": (np.float64, ()),
    "vector_potential": (np.float64, (3,)),
    "field_matter": (np.float64, ()),
    "field_energy": (np.float64, ()),
    "wave_amplitude": (np.float64, ()),
    "spin": (np.float64, ()),
}


class InteractionTable(Sequence):
    """
    Read-only columnar interaction table.

    Behaves as ``Sequence[DimensionInteraction]`` for consumers that want
    rows, while the engine itself works on the numpy columns directly.
    """

    COLUMNS = tuple(_COLUMNS)

    def __init__(self, **columns: npt.NDArray) -> None:
        missing = set(_COLUMNS) - set(columns)
        if missing:
            raise ValueError(f"Missing interaction columns: {', '.join(sorted(missing))}")

        n = len(columns["vertex_index"])
        for name, (dtype, tail) in _COLUMNS.items():
            col = np.ascontiguousarray(columns[name], dtype=dtype)
            if col.shape != (n, *tail):
                raise ValueError(f"Column '{name}' has shape {col.shape}, expected {(n, *tail)}.")
            setattr(self, name, freeze(col))

    # Populated in __init__; declared for type checkers
    vertex_index: npt.NDArray[np.int64]
    distance: npt.NDArray[np.float64]
    strength: npt.NDArray[np.float64]
    permeation: npt.NDArray[np.float64]
    vector_potential: npt.NDArray[np.float64]
    field_matter: npt.NDArray[np.float64]
    field_energy: npt.NDArray[np.float64]
    wave_amplitude: npt.NDArray[np.float64]
    spin: npt.NDArray[np.float64]

    @classmethod
    def empty(cls) -> InteractionTable:
        return cls(**{
            name: np.empty((0, *tail), dtype=dtype) for name, (dtype, tail) in _COLUMNS.items()
        })

    @classmethod
    def concatenate(cls, parts: list[InteractionTable]) -> InteractionTable:
        """Join tables in order into one new table."""
        if not parts:
            return cls.empty()
        return cls(**{name: np.concatenate([getattr(p, name) for p in parts]) for name in _COLUMNS})

    def __len__(self) -> int:
        return len(self.vertex_index)

    @overload
    def __getitem__(self, item: int) -> DimensionInteraction: ...
    @overload
    def __getitem__(self, item: slice) -> list[DimensionInteraction]: ...

    def __getitem__(self, item):
        if isinstance(item, slice):
            return [self[i] for i in range(*item.indices(len(self)))]
        row = range(len(self))[item]  # normalises negatives, raises IndexError
        return DimensionInteraction(
            vertex_index=int(self.vertex_index[row]),
            distance=float(self.distance[row]),
            strength=float(self.strength[row]),
            vector_potential=tuple(float(x) for x in self.vector_potential[row]),
            wave_amplitude=float(self.wave_amplitude[row]),
            permeation=float(self.permeation[row]),
            field_matter=float(self.field_matter[row]),
            field_energy=float(self.field_energy[row]),
            spin=float(self.spin[row]),
        )

    def __iter__(self) -> Iterator[DimensionInteraction]:
        for i in range(len(self)):
            yield self[i]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, DimensionInteraction):
            return any(row == item for row in self)
        return False

    def has_vertex(self, vertex_index: int) -> bool:
        return bool(np.any(self.vertex_index == vertex_index))

    def row_of(self, vertex_index: int) -> DimensionInteraction:
        """Return the row for ``vertex_index``."""
        hits = np.flatnonzero(self.vertex_index == vertex_index)
        if hits.size == 0:
            raise KeyError(f"No interaction for vertex {vertex_index}.")
        return self[int(hits[0])]

    def __repr__(self) -> str:
        return f"InteractionTable(rows={len(self)})"


@dataclass(frozen=True)
class EnergyResult:
    """Aggregate energy snapshot for one dimension."""
    dimension: int
    observable: float
    potential: float
    matter: float
    energy: float
    spin: float
    momentum: float
    field: float
    wave: float

    def interpretation(self) -> str:
        return (
            f"D={self.dimension}: Observable: {self.observable:.6f}, Potential: {self.potential:.6f}, "
            f"Matter: {self.matter:.6f}, Energy: {self.energy:.6f}, Spin: {self.spin:.6f}, "
            f"Momentum: {self.momentum:.6f}, Field: {self.field:.6f}, Wave: {self.wave:.6f}"
        )

    def as_row(self) -> list[float | int]:
        """Values in CSV column order."""
        return [
            self.dimension, self.observable, self.potential, self.matter, self.energy,
            self.spin, self.momentum, self.field, self.wave,
        ]

    def channels(self) -> dict[str, float]:
        """The six renormalised channels by name."""
        return {
            "matter": self.matter,
            "energy": self.energy,
            "spin": self.spin,
            "momentum": self.momentum,
            "field": self.field,
            "wave": self.wave,
        }

    def isclose(self, other: EnergyResult, rel_tol: float = 1e-9, abs_tol: float = 1e-12) -> bool:
        """Tolerance-equality across every channel."""
        if self.dimension != other.dimension:
            return False
        a = np.array(self.as_row()[1:], dtype=np.float64)
        b = np.array(other.as_row()[1:], dtype=np.float64)
        return bool(np.allclose(a, b, rtol=rel_tol, atol=abs_tol))


@dataclass(frozen=True)
class Lattice:
    """
    Hypercube corner table of one dimension.

    Both arrays are read-only; a dimension change or momentum step builds a
    new Lattice instead of mutating this one.
    """
    dimension: int
    vertex_cap: int
    vertices: npt.NDArray[np.float64]
    momentum: npt.NDArray[np.float64]

    def __len__(self) -> int:
        return self.vertices.shape[0]

    def with_momentum(self, momentum: npt.NDArray[np.float64]) -> Lattice:
        return Lattice(self.dimension, self.vertex_cap, self.vertices, freeze(momentum))


@dataclass(frozen=True)
class EngineState:
    """Everything a single refresh publishes, swapped as one reference."""
    dimension: int
    parameters: ParameterSet
    lattice: Lattice
    interactions: InteractionTable
    projected: npt.NDArray[np.float64]
