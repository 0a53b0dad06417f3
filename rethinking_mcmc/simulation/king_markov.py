"""
King Markov's island tour.

A toy Metropolis sampler on a ring of islands. Island i has population
proportional to i; the king flips a coin to pick a neighbour, then moves
with probability proposal / current. Over many weeks the share of time spent
on each island matches its population share.
"""
import numpy as np
import pandas as pd
from typing import Optional

from rethinking_mcmc.config import N_ISLANDS, START_ISLAND


def propose_island(current: int, step: int, n_islands: int = N_ISLANDS) -> int:
    """Step to a neighbouring island, looping around the archipelago."""
    proposal = current + step
    if proposal < 1:
        proposal = n_islands
    elif proposal > n_islands:
        proposal = 1
    return proposal


def king_markov_walk(
    n_steps: int,
    start: int = START_ISLAND,
    n_islands: int = N_ISLANDS,
    seed: Optional[int] = None,
) -> np.ndarray:
    """
    Simulate the king's itinerary.

    Args:
        n_steps: Number of weeks to simulate.
        start: Island the king starts on (1-based).
        n_islands: Size of the archipelago.
        seed: Seed for numpy's default_rng. None for non-deterministic.

    Returns:
        Integer array of length n_steps. Element i is the island occupied
        during week i, recorded before that week's move.
    """
    if n_steps < 0:
        raise ValueError(f"n_steps must be non-negative, got {n_steps}")
    if n_islands < 2:
        raise ValueError(f"Need at least 2 islands, got {n_islands}")
    if not 1 <= start <= n_islands:
        raise ValueError(f"start must be in [1, {n_islands}], got {start}")

    rng = np.random.default_rng(seed)

    # Draw the coin flips and acceptance uniforms up front
    steps = rng.choice((-1, 1), size=n_steps)
    uniforms = rng.uniform(size=n_steps)

    positions = np.zeros(n_steps, dtype=int)
    current = start
    for i in range(n_steps):
        positions[i] = current

        proposal = propose_island(current, int(steps[i]), n_islands)

        # Move?
        prob_move = proposal / current
        if uniforms[i] < prob_move:
            current = proposal

    return positions


def visit_frequencies(positions: np.ndarray, n_islands: int = N_ISLANDS) -> pd.Series:
    """Fraction of weeks spent on each island (index 1..n_islands)."""
    positions = np.asarray(positions, dtype=int)
    counts = np.bincount(positions, minlength=n_islands + 1)[1:n_islands + 1]
    total = counts.sum()
    freqs = counts / total if total > 0 else np.zeros(n_islands)
    return pd.Series(freqs, index=pd.RangeIndex(1, n_islands + 1, name="island"),
                     name="observed")


def expected_frequencies(n_islands: int = N_ISLANDS) -> pd.Series:
    """Stationary distribution: island i visited with probability i / sum(1..n)."""
    islands = np.arange(1, n_islands + 1)
    return pd.Series(islands / islands.sum(),
                     index=pd.RangeIndex(1, n_islands + 1, name="island"),
                     name="expected")


def compare_frequencies(positions: np.ndarray, n_islands: int = N_ISLANDS) -> pd.DataFrame:
    """Observed vs. expected visit shares, one row per island."""
    table = pd.concat(
        [visit_frequencies(positions, n_islands), expected_frequencies(n_islands)],
        axis=1,
    )
    table["abs_error"] = (table["observed"] - table["expected"]).abs()
    return table
