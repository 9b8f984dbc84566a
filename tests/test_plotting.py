"""Tests for the energy cycle plot."""
from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from universalequation.plotting import plot_energy_cycle  # noqa: E402


@pytest.fixture
def sweep(engine):
    return engine.sweep_cycle()


def test_layout(sweep):
    fig = plot_energy_cycle(sweep)
    top, bottom = fig.axes[:2]
    assert len(top.get_lines()) == 2
    assert len(bottom.get_lines()) == 6
    assert list(top.get_lines()[0].get_xdata()) == [1, 2, 3, 4, 5]
    plt.close(fig)


def test_save(sweep, tmp_path):
    path = tmp_path / "cycle.png"
    fig = plot_energy_cycle(sweep, save_path=str(path))
    assert path.exists() and path.stat().st_size > 0
    plt.close(fig)


def test_empty_input():
    with pytest.raises(ValueError):
        plot_energy_cycle([])
