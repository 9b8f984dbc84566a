"""
Numeric guards shared by the engine modules.

All helpers follow one rule: a non-finite intermediate is never propagated to
the caller. The strict variant raises :class:`NumericInstability`, the lenient
variants catch it, log it and substitute the operator's safe default.
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

import numpy as np

from universalequation.config import EPSILON, EXP_CLAMP
from universalequation.model.errors import NumericInstability

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp a scalar into [low, high]."""
    return max(low, min(high, value))


def safe_exp(x: float) -> float:
    """exp(x) with the argument clamped to [-709, 709]."""
    return math.exp(clamp(x, -EXP_CLAMP, EXP_CLAMP))


def safe_exp_array(x: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Vectorised :func:`safe_exp`."""
    return np.exp(np.clip(x, -EXP_CLAMP, EXP_CLAMP))


def safe_div(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 when the denominator is near zero or not finite."""
    if not math.isfinite(denominator) or abs(denominator) < EPSILON:
        return 0.0
    return numerator / denominator


def require_finite(value: float, label: str) -> float:
    """
    Return ``value`` unchanged if finite.

    Raises:
        NumericInstability: If ``value`` is NaN or infinite.
    """
    if not math.isfinite(value):
        raise NumericInstability(label, value)
    return value


def finite_or_default(value: float, default: float, label: str) -> float:
    """Return ``value`` if finite, otherwise log and return ``default``."""
    try:
        return require_finite(value, label)
    except NumericInstability as e:
        logger.warning(f"{e}; substituting {default}.")
        return default


def sanitize(
    values: npt.NDArray[np.float64],
    default: float,
    label: str
) -> npt.NDArray[np.float64]:
    """
    Replace every non-finite entry of ``values`` with ``default``.

    Returns the input array itself when it is already clean, a repaired copy
    otherwise.
    """
    bad = ~np.isfinite(values)
    if not bad.any():
        return values
    logger.warning(f"{int(bad.sum())} non-finite value(s) in '{label}'; substituting {default}.")
    repaired = values.copy()
    repaired[bad] = default
    return repaired


def freeze(array: npt.NDArray) -> npt.NDArray:
    """Mark an array read-only and return it."""
    array.setflags(write=False)
    return array
