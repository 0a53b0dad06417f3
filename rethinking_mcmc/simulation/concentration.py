"""
Concentration of measure.

Draws from a high-dimensional standard normal sit far from the mode, in a
thin shell of radius ~ sqrt(D). A random-walk proposal that does not know
about the shell wastes most of its moves, which is why the chapter moves on
from Metropolis to HMC.
"""
import numpy as np
import pandas as pd
from typing import Optional, Sequence

from rethinking_mcmc.config import CONCENTRATION_DIMS, CONCENTRATION_SAMPLES


def radial_distances(dim: int, n_samples: int = CONCENTRATION_SAMPLES,
                     seed: Optional[int] = None) -> np.ndarray:
    """Distance from the mode for n_samples draws of a dim-dimensional N(0, I)."""
    if dim < 1:
        raise ValueError(f"dim must be >= 1, got {dim}")
    if n_samples < 1:
        raise ValueError(f"n_samples must be >= 1, got {n_samples}")

    rng = np.random.default_rng(seed)
    draws = rng.standard_normal(size=(n_samples, dim))
    return np.sqrt(np.sum(draws ** 2, axis=1))


def concentration_of_measure(
    dims: Sequence[int] = CONCENTRATION_DIMS,
    n_samples: int = CONCENTRATION_SAMPLES,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """Long table of radial distances with one block of rows per dimension."""
    rng = np.random.default_rng(seed)
    frames = []
    for dim in dims:
        child_seed = int(rng.integers(0, 2**31 - 1))
        dist = radial_distances(dim, n_samples, seed=child_seed)
        frames.append(pd.DataFrame({"dim": dim, "distance": dist}))
    return pd.concat(frames, ignore_index=True)


def summarize_concentration(df: pd.DataFrame) -> pd.DataFrame:
    """Per-dimension mean, min and max distance, plus sqrt(D) for reference."""
    summary = df.groupby("dim")["distance"].agg(["mean", "min", "max"])
    summary["sqrt_dim"] = np.sqrt(summary.index.to_numpy(dtype=float))
    return summary
