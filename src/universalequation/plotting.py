"""
Energy cycle plot.

Draws the observable/potential pair and the six renormalised channels of a
dimension sweep, one marker per dimension.
"""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

import matplotlib.pyplot as plt

if TYPE_CHECKING:
    from matplotlib.figure import Figure

    from universalequation.model.results import EnergyResult

logger = logging.getLogger(__name__)

CHANNEL_STYLES = {
    "matter": "tab:brown",
    "energy": "tab:purple",
    "spin": "tab:green",
    "momentum": "tab:orange",
    "field": "tab:cyan",
    "wave": "tab:gray",
}


def plot_energy_cycle(
    results: Sequence[EnergyResult],
    title: str = "Energy over the dimension cycle",
    show: bool = False,
    save_path: Optional[str] = None
) -> Figure:
    """
    Plot a sweep of :class:`EnergyResult` snapshots.

    Returns:
        The matplotlib figure (also shown and/or saved when requested).
    """
    if not results:
        raise ValueError("Nothing to plot: no energy results given.")

    dims = [r.dimension for r in results]

    plt.rcParams["figure.constrained_layout.use"] = True
    fig, (ax_top, ax_bottom) = plt.subplots(2, 1, figsize=(7, 7), sharex=True)

    ax_top.plot(dims, [r.observable for r in results], "r-o", lw=2, label="Observable")
    ax_top.plot(dims, [r.potential for r in results], "b--s", lw=2, label="Potential")
    ax_top.set_ylabel("Value")
    ax_top.set_title(title)

    for name, color in CHANNEL_STYLES.items():
        ax_bottom.plot(dims, [getattr(r, name) for r in results], "-o", color=color, lw=1.5, label=name.capitalize())
    ax_bottom.set_xlabel("Dimension")
    ax_bottom.set_ylabel("Renormalised channel")

    for ax in (ax_top, ax_bottom):
        ax.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
        ax.minorticks_on()
        ax.grid(visible=True, which='minor', axis='both', linestyle=':', color='gray', lw=0.5)
        ax.legend(loc="best", fontsize="small")
    ax_bottom.set_xticks(dims)

    if save_path:
        fig.savefig(save_path, dpi=150)
        logger.info(f"Energy plot saved to: {save_path}")
    if show:
        plt.show()
    return fig
