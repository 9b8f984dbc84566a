"""Tests for the per-vertex interaction table."""
from __future__ import annotations

import math

import numpy as np
import pytest

from universalequation.engine.interactions import InteractionEngine, angular_step
from universalequation.engine.lattice import LatticeGenerator
from universalequation.engine.parallel import WorkerPool
from universalequation.model.errors import OutOfRange
from universalequation.model.parameters import ParameterSet
from universalequation.model.results import DimensionInteraction, InteractionTable


@pytest.fixture
def params():
    return ParameterSet()


def build(d: int, max_dimensions: int = 5, cap: int | None = None, params: ParameterSet | None = None):
    lattice = LatticeGenerator().build(d, cap or 1 << d)
    engine = InteractionEngine(max_dimensions)
    return engine, lattice, engine.build(lattice, params or ParameterSet())


class TestStrength:
    def test_three_d_rows_on_axes_two_and_four_are_boosted(self, params):
        _, _, table = build(3)
        for i in range(1, 8):
            axis = i % 5 + 1
            dist = table.row_of(i).distance
            factor = params.three_d_influence if axis in (2, 4) else 1.0
            expected = params.influence / (3 ** axis * (1.0 + dist)) * factor
            assert table.row_of(i).strength == pytest.approx(expected)

    def test_vertex_one_in_three_d(self):
        _, _, table = build(3)
        row = table.row_of(1)
        assert row.distance == pytest.approx(2.0)
        assert row.strength == pytest.approx(1.0 / (9 * 3) * 1.5)

    def test_weak_attenuation_above_three_dimensions(self, params):
        _, _, table = build(4)
        row = table.row_of(3)  # axis 4 > 3
        expected = params.weak / (4 ** 4 * (1.0 + math.sqrt(8.0)))
        assert row.strength == pytest.approx(expected)
        row = table.row_of(2)  # axis 3
        assert row.strength == pytest.approx(1.0 / (4 ** 3 * (1.0 + 2.0)))

    def test_influence_scales_linearly(self):
        _, _, base = build(4)
        _, _, doubled = build(4, params=ParameterSet(influence=2.0))
        np.testing.assert_allclose(doubled.strength, 2.0 * base.strength)


class TestSpecialCases:
    def test_one_dimension_uses_the_raw_difference(self, params):
        _, _, table = build(1)
        assert len(table) == 1
        row = table[0]
        assert row.vertex_index == 1
        assert row.distance == pytest.approx(2.0)
        assert row.permeation == params.one_d_permeation

    def test_three_d_post_pass_keeps_indices_one_and_three(self):
        engine, _, table = build(3)
        assert len(table) == 7
        assert table.has_vertex(1)
        assert table.has_vertex(3)
        np.testing.assert_array_equal(engine.row_indices(8, 3), np.arange(1, 8))

    def test_post_pass_never_duplicates_rows(self):
        engine = InteractionEngine(5)
        np.testing.assert_array_equal(engine.row_indices(4, 3), [1, 2, 3])
        np.testing.assert_array_equal(engine.row_indices(2, 3), [1])

    def test_single_vertex_gives_an_empty_table(self):
        _, _, table = build(3, cap=1)
        assert len(table) == 0


class TestAuxiliarySignals:
    def test_permeation_rules(self, params):
        _, _, table = build(2)
        assert table.row_of(2).permeation == params.two_d  # axis 3 > 2
        assert table.row_of(1).permeation == pytest.approx(1.0 + params.beta * math.sqrt(2.0) / 2)
        _, _, table = build(3)
        assert table.row_of(3).permeation == params.three_d_influence  # axis 4

    def test_spin_follows_parity(self):
        _, _, table = build(3)
        assert table.row_of(1).spin == -0.5  # one +1 coordinate
        assert table.row_of(3).spin == 0.5   # two
        assert table.row_of(7).spin == -0.5  # three

    def test_vector_potential(self):
        _, _, table = build(3)
        np.testing.assert_allclose(table.row_of(1).vector_potential, [-1 / 6, 1 / 6, 1 / 6])
        _, _, table = build(1)
        assert table[0].vector_potential[1:] == (0.0, 0.0)

    def test_wave_amplitude(self, params):
        _, _, table = build(3)
        omega = angular_step(5)
        base = (1.0 - params.asym_collapse) / 2  # vertex 1 has negative spin, axis 2
        expected = base * math.cos(params.wave_frequency * 2.0 + omega * 1)
        assert table.row_of(1).wave_amplitude == pytest.approx(expected)

    def test_field_values_come_from_the_curves(self):
        _, _, table = build(6)
        assert np.all((table.field_matter >= 0.0) & (table.field_matter <= 1.0))
        assert np.all((table.field_energy >= 0.1 - 1e-12) & (table.field_energy <= 1.0 + 1e-12))

    def test_every_column_is_finite(self):
        _, _, table = build(8, max_dimensions=8)
        for name in InteractionTable.COLUMNS:
            assert np.all(np.isfinite(getattr(table, name))), name


class TestParallelBuild:
    def test_pooled_rows_equal_serial_rows(self):
        lattice = LatticeGenerator().build(11, 1 << 11)
        params = ParameterSet()
        with WorkerPool(max_workers=1, threshold=10 ** 9) as serial_pool, WorkerPool(max_workers=4) as pool:
            serial = InteractionEngine(11, serial_pool).build(lattice, params)
            pooled = InteractionEngine(11, pool).build(lattice, params)
        assert len(pooled) == len(serial) == 2047
        for name in InteractionTable.COLUMNS:
            np.testing.assert_array_equal(getattr(pooled, name), getattr(serial, name))


class TestScalarSurface:
    def test_compute_interaction(self, params):
        engine = InteractionEngine(5)
        assert engine.compute_interaction(3, 1, 2.0, params) == pytest.approx(1.0 / 27 * 1.5)

    def test_compute_permeation_validates_the_index(self, params):
        engine, lattice, _ = build(2)
        assert engine.compute_permeation(lattice, 2, params) == params.two_d
        with pytest.raises(OutOfRange):
            engine.compute_permeation(lattice, -1, params)
        with pytest.raises(OutOfRange):
            engine.compute_permeation(lattice, 4, params)

    def test_dark_energy_caps_the_distance(self, params):
        engine = InteractionEngine(5)
        assert engine.compute_dark_energy(20.0, params) == pytest.approx(0.68 * math.exp(10.0 / 5))
        assert engine.compute_dark_energy(0.0, params) == pytest.approx(0.68)
        np.testing.assert_allclose(
            engine.dark_energy(np.array([0.0, 20.0]), params), [0.68, 0.68 * math.exp(2.0)]
        )


class TestInteractionTableSequence:
    def test_rows_and_slices(self):
        _, _, table = build(3)
        assert isinstance(table[0], DimensionInteraction)
        assert table[-1].vertex_index == 7
        assert [r.vertex_index for r in table[1:3]] == [2, 3]
        assert [r.vertex_index for r in table] == list(range(1, 8))
        assert table[0] in table
        with pytest.raises(IndexError):
            table[7]

    def test_columns_are_read_only(self):
        _, _, table = build(2)
        with pytest.raises(ValueError):
            table.strength[0] = 1.0

    def test_row_of_missing_vertex(self):
        _, _, table = build(2)
        with pytest.raises(KeyError):
            table.row_of(0)
