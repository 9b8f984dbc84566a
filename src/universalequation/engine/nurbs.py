"""
NURBS Field Curves
==================
Rational B-spline profiles that shape the matter and energy field of an
interaction as a function of its (normalised) distance.

A NURBS curve of degree p with control values c_i and weights w_i is the
ratio of two ordinary B-splines over the same knot vector:

    C(u) = sum N_i,p(u) w_i c_i / sum N_i,p(u) w_i

so both numerator and denominator are evaluated with ``scipy.interpolate.BSpline``.
"""
from __future__ import annotations

from functools import lru_cache
import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np
from scipy.interpolate import BSpline

from universalequation.config import EPSILON, FIELD_CURVE_DISTANCE_SCALE

if TYPE_CHECKING:
    import numpy.typing as npt

logger = logging.getLogger(__name__)

DEGREE = 3
# Clamped knot vector for five control values
KNOTS = (0.0, 0.0, 0.0, 0.0, 0.5, 1.0, 1.0, 1.0, 1.0)
WEIGHTS = (1.0, 2.0, 1.0, 2.0, 1.0)

MATTER_PROFILE = (1.0, 0.8, 0.5, 0.2, 0.0)
ENERGY_PROFILE = (0.1, 0.3, 0.6, 0.85, 1.0)


class NurbsCurve:
    """Scalar degree-``degree`` rational B-spline on [0, 1]."""

    def __init__(
        self,
        control_values: Sequence[float],
        weights: Sequence[float],
        knots: Sequence[float] = KNOTS,
        degree: int = DEGREE
    ) -> None:
        c = np.asarray(control_values, dtype=np.float64)
        w = np.asarray(weights, dtype=np.float64)
        t = np.asarray(knots, dtype=np.float64)

        if c.shape != w.shape:
            raise ValueError(f"Got {c.size} control values but {w.size} weights.")
        if t.size != c.size + degree + 1:
            raise ValueError(
                f"Knot vector needs {c.size + degree + 1} entries for {c.size} control values "
                f"of degree {degree}, got {t.size}."
            )
        if np.any(w <= 0.0):
            raise ValueError("NURBS weights must be positive.")

        self.degree = degree
        self._numerator = BSpline(t, c * w, degree)
        self._denominator = BSpline(t, w, degree)

    def __call__(self, u: float | npt.NDArray[np.float64]) -> float | npt.NDArray[np.float64]:
        """Evaluate at ``u`` (clipped to [0, 1]); scalars in, scalar out."""
        u_arr = np.clip(np.asarray(u, dtype=np.float64), 0.0, 1.0)
        num = self._numerator(u_arr)
        den = self._denominator(u_arr)
        out = np.where(np.abs(den) > EPSILON, num / np.where(den == 0.0, 1.0, den), 0.0)
        if out.ndim == 0:
            return float(out)
        return out


def distance_parameter(distance: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Map an interaction distance onto the curve parameter u in [0, 1]."""
    return np.clip(distance / FIELD_CURVE_DISTANCE_SCALE, 0.0, 1.0)


@lru_cache(maxsize=None)
def matter_curve() -> NurbsCurve:
    return NurbsCurve(MATTER_PROFILE, WEIGHTS)


@lru_cache(maxsize=None)
def energy_curve() -> NurbsCurve:
    return NurbsCurve(ENERGY_PROFILE, WEIGHTS)
