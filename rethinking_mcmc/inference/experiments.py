"""
Prior sensitivity and non-identifiability experiments.

compare_fits stacks summaries of several fits (e.g. the wild m9_2 chain next
to the tamed m9_3 chain). nonidentifiability_report shows that in
y ~ Normal(a1 + a2, sigma) the sum is pinned down by the data while each
part is not: the parts are strongly negatively correlated and their sd is
far larger than the sd of the sum.
"""
from typing import Dict, List, Optional, Sequence, Tuple

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm
from scipy import stats

from rethinking_mcmc.inference.diagnostics import posterior_table, count_divergences


def _stacked(idata: az.InferenceData, var_name: str) -> np.ndarray:
    """All draws of a scalar parameter, chains concatenated."""
    if var_name not in idata.posterior:
        raise ValueError(f"Parameter not in posterior: {var_name}")
    return np.asarray(idata.posterior[var_name].values, dtype=float).reshape(-1)


def compare_fits(fits: Dict[str, az.InferenceData], var_names: Optional[List[str]] = None) -> pd.DataFrame:
    """One summary table for several fits, with a 'model' column and divergence counts."""
    frames = []
    for name, idata in fits.items():
        table = posterior_table(idata, var_names).reset_index().rename(columns={"index": "param"})
        table.insert(0, "model", name)
        table["n_divergent"] = count_divergences(idata)
        frames.append(table)
    if not frames:
        return pd.DataFrame(columns=["model", "param"])
    return pd.concat(frames, ignore_index=True)


def nonidentifiability_report(idata: az.InferenceData, parts: Tuple[str, str] = ("a1", "a2")) -> Dict:
    """Spread of each part, spread of their sum, and their posterior correlation."""
    first, second = parts
    x = _stacked(idata, first)
    y = _stacked(idata, second)
    total = x + y

    corr = float(np.corrcoef(x, y)[0, 1]) if np.std(x) > 0 and np.std(y) > 0 else float("nan")
    return {
        f"{first}_mean": float(np.mean(x)),
        f"{first}_std": float(np.std(x)),
        f"{second}_mean": float(np.mean(y)),
        f"{second}_std": float(np.std(y)),
        "sum_mean": float(np.mean(total)),
        "sum_std": float(np.std(total)),
        "correlation": corr,
        # Ratio > 1 means the sum is better determined than the parts
        "identification_ratio": float(min(np.std(x), np.std(y)) / max(np.std(total), 1e-12)),
    }


def prior_density(model: pm.Model, var_name: str, grid: Sequence[float]) -> np.ndarray:
    """Prior density of a model variable evaluated on a grid of values."""
    if var_name not in model.named_vars:
        raise ValueError(f"Model has no variable {var_name}")
    values = np.asarray(grid, dtype=float)
    return np.exp(pm.logp(model[var_name], values).eval())


def posterior_density(idata: az.InferenceData, var_name: str, grid: Sequence[float]) -> np.ndarray:
    """Gaussian KDE of the posterior draws evaluated on a grid."""
    draws = _stacked(idata, var_name)
    return stats.gaussian_kde(draws)(np.asarray(grid, dtype=float))


def prior_posterior_table(
    model: pm.Model,
    idata: az.InferenceData,
    var_name: str,
    lower: float,
    upper: float,
    n_points: int = 200,
) -> pd.DataFrame:
    """Prior and posterior density side by side on a shared grid."""
    if not upper > lower:
        raise ValueError(f"Empty grid range [{lower}, {upper}]")
    grid = np.linspace(lower, upper, n_points)
    return pd.DataFrame({
        var_name: grid,
        "prior": prior_density(model, var_name, grid),
        "posterior": posterior_density(idata, var_name, grid),
    })
