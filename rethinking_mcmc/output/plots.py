"""
Figures for the chapter.

Thin wrappers: the diagnostic panels are ArviZ's own plots, the simulation
figures are a couple of matplotlib calls. Every function returns the figure
so callers can save or show it.
"""
from pathlib import Path
from typing import List, Optional, Union

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from rethinking_mcmc.config import FIGURES_DIR, N_ISLANDS, MAX_ACF_LAG


def plot_king_markov(positions: np.ndarray, n_islands: int = N_ISLANDS, n_first: int = 100):
    """Left: the first weeks of the tour. Right: weeks spent per island."""
    fig, (ax0, ax1) = plt.subplots(ncols=2, figsize=(8, 4))

    n_first = min(n_first, len(positions))
    ax0.scatter(range(n_first), positions[:n_first], marker="o",
                edgecolor="C0", facecolor="none")
    ax0.set(xlabel="week", ylabel="island")

    ax1.hist(positions, bins=0.5 + np.arange(n_islands + 1), rwidth=0.1)
    ax1.set(xticks=range(1, n_islands + 1), xlabel="island", ylabel="number of weeks")

    fig.tight_layout()
    return fig


def plot_concentration(distances: pd.DataFrame):
    """Density of radial distance from the mode, one curve per dimension."""
    fig, ax = plt.subplots(figsize=(6, 4))
    for dim, group in distances.groupby("dim"):
        az.plot_kde(group["distance"].to_numpy(), ax=ax,
                    plot_kwargs={"label": f"D={dim}"})
    ax.set(xlabel="Radial distance from mode", ylabel="Density")
    ax.legend()
    fig.tight_layout()
    return fig


def plot_trace(idata: az.InferenceData, var_names: Optional[List[str]] = None):
    axes = az.plot_trace(idata, var_names=var_names)
    return np.ravel(axes)[0].figure


def plot_trank(idata: az.InferenceData, var_names: Optional[List[str]] = None):
    """Trace rank plots: overlapping, roughly uniform histograms mean the chains agree."""
    axes = az.plot_rank(idata, var_names=var_names, kind="bars")
    return np.ravel(axes)[0].figure


def plot_autocorr(idata: az.InferenceData, var_names: Optional[List[str]] = None, max_lag: int = MAX_ACF_LAG):
    axes = az.plot_autocorr(idata, var_names=var_names, max_lag=max_lag, combined=False)
    return np.ravel(axes)[0].figure


def plot_pairs(idata: az.InferenceData, var_names: Optional[List[str]] = None):
    """Pairs plot with marginals and divergent transitions marked."""
    has_div = hasattr(idata, "sample_stats") and "diverging" in idata.sample_stats
    axes = az.plot_pair(idata, var_names=var_names, kind="scatter",
                        marginals=True, divergences=has_div)
    return np.ravel(axes)[0].figure


def plot_prior_posterior(table: pd.DataFrame, var_name: str, ax=None):
    """Posterior (solid) against prior (dashed) from experiments.prior_posterior_table."""
    if ax is None:
        _, ax = plt.subplots(figsize=(5, 4))
    ax.plot(table[var_name], table["posterior"], c="C0", label="posterior")
    ax.plot(table[var_name], table["prior"], ls="--", c="k", label="prior")
    ax.set(xlabel=var_name, ylabel="Density", ylim=(0.0, None))
    ax.spines[["top", "right"]].set_visible(False)
    ax.legend()
    return ax.figure


def save_figure(fig, name: str, figures_dir: Union[str, Path] = FIGURES_DIR) -> Path:
    """Save as <figures_dir>/<name>.png and close the figure."""
    figures_dir = Path(figures_dir)
    figures_dir.mkdir(parents=True, exist_ok=True)
    out_path = figures_dir / f"{name}.png"
    fig.savefig(out_path, dpi=120, bbox_inches="tight")
    plt.close(fig)
    return out_path
