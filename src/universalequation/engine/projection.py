"""
Perspective Projection
======================
Maps d-dimensional vertices to 3D points for the renderer.

The last coordinate acts as depth:

    scale_i = focal / max(eps, v_i[d-1] + trans)
    out_i[k] = v_i[k] * scale_i            for k < min(3, d), else 0
"""
from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Callable

import numpy as np

from universalequation.config import EPSILON
from universalequation.utils import freeze, sanitize

if TYPE_CHECKING:
    import numpy.typing as npt

    from universalequation.model.parameters import ParameterSet
    from universalequation.model.results import Lattice

logger = logging.getLogger(__name__)

# transform(point, vertex_index, time) -> point
PointTransform = Callable[["npt.NDArray[np.float64]", int, float], "npt.ArrayLike"]


class ProjectionMapper:

    @staticmethod
    def project(lattice: Lattice, parameters: ParameterSet) -> npt.NDArray[np.float64]:
        """Read-only (n, 3) projected positions of ``lattice``."""
        vertices = lattice.vertices
        n, d = vertices.shape
        out = np.zeros((n, 3), dtype=np.float64)
        if n == 0:
            return freeze(out)

        depth = vertices[:, d - 1] + parameters.perspective_trans
        scale = parameters.perspective_focal / np.maximum(depth, EPSILON)
        k = min(3, d)
        out[:, :k] = vertices[:, :k] * scale[:, None]
        return freeze(sanitize(out, 0.0, "projection"))

    @staticmethod
    def apply_transform(
        points: npt.NDArray[np.float64],
        transform: PointTransform,
        time: float
    ) -> npt.NDArray[np.float64]:
        """
        Map ``transform`` over every projected point.

        A result that is not a finite 3-vector is replaced by the origin.
        """
        out = np.zeros((len(points), 3), dtype=np.float64)
        rejected = 0
        for i, point in enumerate(points):
            moved = np.asarray(transform(point, i, time), dtype=np.float64)
            if moved.shape != (3,) or not np.all(np.isfinite(moved)):
                rejected += 1
                continue
            out[i] = moved
        if rejected:
            logger.warning(f"Custom transform produced {rejected} invalid point(s); reset to origin.")
        return out


def orbit_transform(point: npt.NDArray[np.float64], vertex_index: int, time: float) -> npt.NDArray[np.float64]:
    """Example transform: rotate about +Y by (time + index) and pulse the radius."""
    angle = time + vertex_index
    c, s = math.cos(angle), math.sin(angle)
    x, y, z = point
    rotated = np.array([c * x + s * z, y, -s * x + c * z])
    return rotated * (1.0 + 0.1 * math.sin(time))
