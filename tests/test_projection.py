"""Tests for the perspective projection."""
from __future__ import annotations

import math

import numpy as np
import pytest

from universalequation.engine.lattice import LatticeGenerator
from universalequation.engine.projection import ProjectionMapper, orbit_transform
from universalequation.model.parameters import ParameterSet


@pytest.fixture
def lattice_3d():
    return LatticeGenerator().build(3, 8)


class TestProject:
    def test_depth_from_last_coordinate(self, lattice_3d):
        out = ProjectionMapper.project(lattice_3d, ParameterSet())
        assert out.shape == (8, 3)
        np.testing.assert_allclose(out[0], [-4.0, -4.0, -4.0])  # depth -1 + 2 = 1
        np.testing.assert_allclose(out[7], [4 / 3, 4 / 3, 4 / 3])  # depth 1 + 2 = 3

    def test_low_dimensions_pad_with_zero(self):
        lattice = LatticeGenerator().build(1, 2)
        out = ProjectionMapper.project(lattice, ParameterSet())
        np.testing.assert_allclose(out, [[-4.0, 0.0, 0.0], [4 / 3, 0.0, 0.0]])

    def test_only_three_coordinates_are_kept(self):
        lattice = LatticeGenerator().build(5, 32)
        out = ProjectionMapper.project(lattice, ParameterSet(perspective_trans=3.0, perspective_focal=2.0))
        scale = 2.0 / (lattice.vertices[:, 4] + 3.0)
        np.testing.assert_allclose(out, lattice.vertices[:, :3] * scale[:, None])

    def test_non_positive_depth_is_guarded(self, lattice_3d):
        out = ProjectionMapper.project(lattice_3d, ParameterSet(perspective_trans=0.0))
        assert np.all(np.isfinite(out))

    def test_result_is_read_only(self, lattice_3d):
        out = ProjectionMapper.project(lattice_3d, ParameterSet())
        with pytest.raises(ValueError):
            out[0, 0] = 1.0


class TestTransforms:
    def test_identity(self, lattice_3d):
        points = ProjectionMapper.project(lattice_3d, ParameterSet())
        np.testing.assert_allclose(ProjectionMapper.apply_transform(points, lambda p, i, t: p, 0.0), points)

    def test_invalid_results_go_to_the_origin(self, lattice_3d, caplog):
        points = ProjectionMapper.project(lattice_3d, ParameterSet())

        def broken(point, index, time):
            return point if index % 2 else np.array([np.nan, 0.0, 0.0])

        out = ProjectionMapper.apply_transform(points, broken, 1.0)
        np.testing.assert_array_equal(out[0::2], 0.0)
        np.testing.assert_allclose(out[1::2], points[1::2])
        assert "invalid point" in caplog.text

    def test_orbit_transform(self):
        point = np.array([1.0, 2.0, 0.0])
        np.testing.assert_allclose(orbit_transform(point, 0, 0.0), point)
        turned = orbit_transform(point, 0, math.pi / 2)
        scale = 1.0 + 0.1 * math.sin(math.pi / 2)
        np.testing.assert_allclose(turned, np.array([0.0, 2.0, -1.0]) * scale, atol=1e-12)
