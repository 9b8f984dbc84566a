"""Tests for the public engine object."""
from __future__ import annotations

import gc
import logging

import numpy as np
import pytest

from universalequation import UniversalEquation
from universalequation.engine.cache import CacheState
from universalequation.engine.physics import VertexPhysics
from universalequation.engine.projection import orbit_transform
from universalequation.model.errors import ConfigurationError, OutOfRange
from universalequation.model.parameters import ParameterSet


class FakeNavigator:
    def width(self) -> int:
        return 1920

    def height(self) -> int:
        return 1080

    def mode(self) -> int:
        return 3


class TestConstruction:
    @pytest.mark.parametrize("max_dimensions", [0, 21, -3])
    def test_invalid_max_dimensions(self, max_dimensions):
        with pytest.raises(ConfigurationError):
            UniversalEquation(max_dimensions=max_dimensions)

    def test_invalid_vertex_cap(self):
        with pytest.raises(ConfigurationError):
            UniversalEquation(max_dimensions=4, vertex_cap=0)

    def test_defaults(self):
        with UniversalEquation() as eq:
            assert eq.max_dimensions == 9
            assert eq.current_dimension == 1
            assert eq.vertex_cap == 1 << 9
            assert eq.parameters == ParameterSet()

    def test_mode_is_clamped(self):
        with UniversalEquation(max_dimensions=5, mode=9) as eq:
            assert eq.current_dimension == 5
            assert eq.mode == 5

    def test_independent_instances(self):
        with UniversalEquation(max_dimensions=4, mode=2) as a, UniversalEquation(max_dimensions=4, mode=2) as b:
            a.set_parameter("influence", 3.0)
            assert b.get_parameter("influence") == 1.0
            assert a.compute() != b.compute()


class TestInteractionCounts:
    @pytest.mark.parametrize("cap", [None, 6])
    def test_length_for_every_dimension(self, cap):
        with UniversalEquation(max_dimensions=7, vertex_cap=cap) as eq:
            for d in range(1, 8):
                eq.set_current_dimension(d)
                n = min(1 << d, eq.vertex_cap)
                assert len(eq.get_vertices()) == n
                assert len(eq.get_interactions()) == n - 1

    def test_three_d_example(self, engine_3d):
        table = engine_3d.get_interactions()
        p = engine_3d.parameters
        assert table.has_vertex(1) and table.has_vertex(3)
        for row in table:
            if row.vertex_index % 5 + 1 == 2:
                expected = p.influence / (3 ** 2 * (1.0 + row.distance)) * p.three_d_influence
                assert row.strength == pytest.approx(expected)


class TestDirtyThenRefresh:
    def test_compute_is_idempotent(self, engine_3d):
        assert engine_3d.compute() == engine_3d.compute()

    def test_setter_marks_dirty_and_next_read_reflects_it(self, engine_3d):
        before = engine_3d.get_interactions()
        assert engine_3d.cache_state is CacheState.CLEAN
        engine_3d.set_parameter("influence", 2.0)
        assert engine_3d.cache_state is CacheState.DIRTY
        after = engine_3d.get_interactions()
        np.testing.assert_allclose(after.strength, 2.0 * before.strength)
        assert engine_3d.cache_state is CacheState.CLEAN

    def test_projection_follows_parameters(self, engine_3d):
        engine_3d.set_parameters(perspective_focal=8.0)
        np.testing.assert_allclose(engine_3d.get_projected_vertices()[0], [-8.0, -8.0, -8.0])

    def test_set_parameter_returns_the_clamped_value(self, engine):
        assert engine.set_parameter("alpha", 50.0) == 10.0
        assert engine.get_parameter("alpha") == 10.0

    def test_unknown_parameter(self, engine):
        with pytest.raises(ConfigurationError):
            engine.set_parameter("gravity", 1.0)
        with pytest.raises(ConfigurationError):
            engine.get_parameter("gravity")

    def test_dimension_change_is_visible(self, engine):
        engine.get_interactions()
        engine.set_current_dimension(4)
        assert engine.compute().dimension == 4
        assert engine.get_vertices().shape == (16, 4)
        assert engine.get_projected_vertices().shape == (16, 3)


class TestDimensionControl:
    def test_invalid_dimension_is_ignored(self, engine, caplog):
        caplog.set_level(logging.WARNING, logger="universalequation")
        engine.set_current_dimension(0)
        engine.set_current_dimension(6)
        assert engine.current_dimension == 1
        assert "Ignoring dimension" in caplog.text

    def test_set_mode_clamps(self, engine):
        engine.set_mode(99)
        assert engine.current_dimension == 5
        engine.set_mode(-2)
        assert engine.current_dimension == 1

    def test_advance_cycle_wraps(self, engine):
        engine.set_current_dimension(5)
        assert engine.advance_cycle() == 1

    def test_full_cycle_returns_to_start(self, engine):
        engine.set_current_dimension(3)
        seen = [engine.advance_cycle() for _ in range(engine.max_dimensions)]
        assert seen == [4, 5, 1, 2, 3]
        assert engine.current_dimension == 3

    def test_sweep_cycle(self, engine):
        engine.set_current_dimension(2)
        results = engine.sweep_cycle()
        assert [r.dimension for r in results] == [1, 2, 3, 4, 5]
        assert engine.current_dimension == 2


class TestReads:
    def test_read_only_outputs(self, engine_3d):
        for array in (engine_3d.get_vertices(), engine_3d.get_momentum(), engine_3d.get_projected_vertices()):
            assert not array.flags.writeable

    def test_scalar_surface(self, engine_3d):
        assert engine_3d.compute_interaction(1, 2.0) == pytest.approx(1.0 / 27 * 1.5)
        assert engine_3d.compute_permeation(3) == engine_3d.parameters.three_d_influence
        with pytest.raises(OutOfRange):
            engine_3d.compute_permeation(8)
        assert engine_3d.compute_dark_energy(0.0) == pytest.approx(0.68)

    def test_collapse_signal(self, engine):
        assert engine.collapse() == 0.0
        engine.set_current_dimension(2)
        assert engine.collapse() > 0.0

    def test_apply_transform(self, engine_3d):
        moved = engine_3d.apply_transform(orbit_transform, 0.0)
        assert moved.shape == (8, 3)
        np.testing.assert_allclose(moved[0], engine_3d.get_projected_vertices()[0])

    def test_interpretation(self, engine_3d):
        text = engine_3d.compute().interpretation()
        assert text.startswith("D=3: Observable:")
        assert "Wave:" in text


class TestNavigator:
    def test_viewport(self):
        nav = FakeNavigator()
        with UniversalEquation(max_dimensions=3, navigator=nav) as eq:
            assert eq.viewport() == (1920, 1080)
            del nav
            gc.collect()
            assert eq.viewport() is None

    def test_without_navigator(self, engine):
        assert engine.viewport() is None

    def test_rejects_objects_without_the_capability(self, engine):
        with pytest.raises(TypeError):
            engine.set_navigator(object())


class TestMomentum:
    def test_evolve_momentum(self):
        with UniversalEquation(max_dimensions=5, mode=2) as eq:
            eq.compute()
            momentum = eq.evolve_momentum(1.0)
            assert eq.cache_state is CacheState.DIRTY
            assert np.all(momentum[0] > 0.0)
            assert np.all(momentum[3] < 0.0)
            assert np.all(np.abs(momentum) <= 0.9)
            np.testing.assert_array_equal(eq.get_momentum(), momentum)

    @pytest.mark.parametrize("dt", [0.0, -1.0, float("nan"), float("inf")])
    def test_invalid_time_step(self, engine, dt, caplog):
        with pytest.raises(ValueError):
            engine.evolve_momentum(dt)
        assert "Rejected momentum step" in caplog.text
        assert not engine.get_momentum().any()

    def test_step_is_dropped_when_the_lattice_changes_meanwhile(self, monkeypatch, caplog):
        with UniversalEquation(max_dimensions=5, mode=2) as eq:
            step = VertexPhysics.evolve_momentum

            def switch_then_step(physics, dt):
                eq.set_current_dimension(3)
                return step(physics, dt)

            monkeypatch.setattr(VertexPhysics, "evolve_momentum", switch_then_step)
            momentum = eq.evolve_momentum(1.0)

            assert eq.current_dimension == 3
            assert momentum.shape == (8, 3)
            assert not momentum.any()
            assert "step discarded" in caplog.text
