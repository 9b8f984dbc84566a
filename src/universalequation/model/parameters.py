"""
Parameter Set & Store
=====================
Holds the scalar configuration of the engine.

Why is this file needed?
------------------------
1. Validation: every value is clamped to its valid range the moment a
   ParameterSet is created, so no consumer ever sees an out-of-range value.
2. Consistency: the store publishes ONE immutable snapshot through a single
   reference. A refresh reads that reference once and works on a consistent
   view even while a control thread keeps writing.

Classes:
    ParameterSet: Frozen dataclass of the clamped parameters.
    ParameterStore: Lock-free readable holder of the current ParameterSet.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace, asdict
import logging
import threading
from typing import Any, Callable, Dict, Optional

from universalequation.model.errors import ConfigurationError
from universalequation.utils import clamp

logger = logging.getLogger(__name__)


def _param(default: float, low: float, high: float) -> Any:
    """Declare a clamped parameter field; the range lives in the field metadata."""
    return field(default=default, metadata={"range": (low, high)})


@dataclass(frozen=True)
class ParameterSet:
    """
    Immutable snapshot of all engine parameters.

    Values outside their range are clamped, never rejected.
    """
    influence: float = _param(1.0, 0.0, 10.0)
    weak: float = _param(0.5, 0.0, 1.0)
    collapse: float = _param(0.5, 0.0, 5.0)
    two_d: float = _param(0.5, 0.0, 5.0)
    three_d_influence: float = _param(1.5, 0.0, 5.0)
    one_d_permeation: float = _param(2.0, 0.0, 5.0)
    nurbs_matter_strength: float = _param(0.27, 0.0, 1.0)
    nurbs_energy_strength: float = _param(0.68, 0.0, 2.0)
    alpha: float = _param(5.0, 0.1, 10.0)
    beta: float = _param(0.2, 0.0, 1.0)
    carroll_factor: float = _param(0.1, 0.0, 1.0)
    mean_field_approx: float = _param(0.5, 0.0, 1.0)
    asym_collapse: float = _param(0.1, 0.0, 1.0)
    perspective_trans: float = _param(2.0, 0.0, 10.0)
    perspective_focal: float = _param(4.0, 1.0, 20.0)
    spin_interaction: float = _param(0.1, 0.0, 1.0)
    em_field_strength: float = _param(0.5, 0.0, 10.0)
    renorm_factor: float = _param(1.0, 0.1, 10.0)
    vacuum_energy: float = _param(0.1, 0.0, 1.0)
    wave_frequency: float = _param(1.5, 0.1, 10.0)

    def __post_init__(self) -> None:
        for f in fields(self):
            low, high = f.metadata["range"]
            value = float(getattr(self, f.name))
            if value != value:  # NaN never clamps, fall back to the default
                logger.warning(f"Parameter '{f.name}' is NaN, using default {f.default}.")
                value = f.default
            object.__setattr__(self, f.name, clamp(value, low, high))

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def range_of(cls, name: str) -> tuple[float, float]:
        """Return the (low, high) range of a parameter."""
        for f in fields(cls):
            if f.name == name:
                return f.metadata["range"]
        raise ConfigurationError(f"Unknown parameter '{name}'.")

    def with_changes(self, **changes: float) -> ParameterSet:
        """Return a new snapshot with ``changes`` applied (and clamped)."""
        unknown = set(changes) - set(self.names())
        if unknown:
            raise ConfigurationError(f"Unknown parameter(s): {', '.join(sorted(unknown))}.")
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> ParameterSet:
        known = set(ParameterSet.names())
        ignored = set(data) - known
        if ignored:
            logger.warning(f"Ignoring unknown parameter keys: {', '.join(sorted(ignored))}")
        return ParameterSet(**{k: float(v) for k, v in data.items() if k in known})


class ParameterStore:
    """
    Holder of the current :class:`ParameterSet`.

    Reads are a single attribute load and never block. Writers are serialised
    among themselves so that concurrent single-field updates are not lost, then
    publish the new snapshot with one reference swap.
    """

    def __init__(
        self,
        initial: Optional[ParameterSet] = None,
        on_change: Optional[Callable[[ParameterSet], None]] = None
    ) -> None:
        self._snapshot: ParameterSet = initial or ParameterSet()
        self._write_lock = threading.Lock()
        self._on_change = on_change
        self.version: int = 0

    def snapshot(self) -> ParameterSet:
        """Current parameters. Safe to call from any thread."""
        return self._snapshot

    def get(self, name: str) -> float:
        if name not in ParameterSet.names():
            raise ConfigurationError(f"Unknown parameter '{name}'.")
        return getattr(self._snapshot, name)

    def update(self, **changes: float) -> ParameterSet:
        """Apply ``changes`` and publish the new snapshot."""
        with self._write_lock:
            new = self._snapshot.with_changes(**changes)
            self._snapshot = new
            self.version += 1
        logger.debug(f"Parameters updated (v{self.version}): {changes}")
        if self._on_change is not None:
            self._on_change(new)
        return new

    def replace_all(self, parameters: ParameterSet) -> None:
        """Publish a complete snapshot, e.g. one loaded from a preset file."""
        with self._write_lock:
            self._snapshot = parameters
            self.version += 1
        logger.info(f"Parameter set replaced (v{self.version}).")
        if self._on_change is not None:
            self._on_change(parameters)
