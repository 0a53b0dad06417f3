"""
Convergence diagnostics for fitted models.

R-hat, bulk ESS and autocorrelation all come from ArviZ; this module only
reshapes them into the summary dicts and warning messages the pipeline prints.
"""
import math
from typing import Dict, List, Optional

import arviz as az
import numpy as np
import pandas as pd

from rethinking_mcmc.config import RHAT_MAX, ESS_MIN, MAX_ACF_LAG
from rethinking_mcmc.inference.fit_cache import draws_to_frame


def posterior_table(idata: az.InferenceData, var_names: Optional[List[str]] = None) -> pd.DataFrame:
    """az.summary table (mean, sd, HDI, MCSE, ESS, R-hat) for the given parameters."""
    return az.summary(idata, var_names=var_names, round_to="none")


def count_divergences(idata: az.InferenceData) -> int:
    """Number of divergent transitions across all chains (0 if not recorded)."""
    if not hasattr(idata, "sample_stats") or "diverging" not in idata.sample_stats:
        return 0
    return int(np.asarray(idata.sample_stats["diverging"].values).sum())


def _finite_or_none(value) -> Optional[float]:
    value = float(value)
    return None if math.isnan(value) else value


def summarize_fit(
    idata: az.InferenceData,
    var_names: Optional[List[str]] = None,
    rhat_max: float = RHAT_MAX,
    ess_min: float = ESS_MIN,
) -> Dict:
    """
    Posterior summary as a flat dict.

    Keys: '<param>_mean' and '<param>_std' per row of az.summary, plus
    rhat_max, ess_min, n_divergent, n_chains, n_draws, converged, method.
    R-hat is undefined for a single chain; it is reported as None and does not
    count against convergence.
    """
    summary = posterior_table(idata, var_names)
    posterior = idata.posterior

    result = {}
    for param, row in summary.iterrows():
        result[f"{param}_mean"] = float(row["mean"])
        result[f"{param}_std"] = float(row["sd"])

    rhat = _finite_or_none(summary["r_hat"].max()) if "r_hat" in summary else None
    ess = _finite_or_none(summary["ess_bulk"].min()) if "ess_bulk" in summary else None
    n_divergent = count_divergences(idata)

    rhat_ok = rhat is None or rhat < rhat_max
    ess_ok = ess is not None and ess > ess_min

    result.update({
        "rhat_max": rhat,
        "ess_min": ess,
        "n_divergent": n_divergent,
        "n_chains": int(posterior.sizes["chain"]),
        "n_draws": int(posterior.sizes["draw"]),
        "converged": bool(rhat_ok and ess_ok and n_divergent == 0),
        "method": "pymc_nuts",
    })
    return result


def convergence_warnings(
    idata: az.InferenceData,
    var_names: Optional[List[str]] = None,
    rhat_max: float = RHAT_MAX,
    ess_min: float = ESS_MIN,
) -> List[str]:
    """Human-readable warnings about divergences, R-hat and ESS."""
    messages = []

    n_div = count_divergences(idata)
    if n_div > 0:
        n_total = idata.posterior.sizes["chain"] * idata.posterior.sizes["draw"]
        messages.append(
            f"{n_div} divergent transition(s) out of {n_total} draws. "
            "Consider stronger priors or a higher target_accept."
        )

    summary = posterior_table(idata, var_names)
    if "r_hat" in summary:
        high = summary[summary["r_hat"] >= rhat_max]
        for param, row in high.iterrows():
            messages.append(f"R-hat for {param} is {row['r_hat']:.3f} (>= {rhat_max}); chains have not mixed.")
    if "ess_bulk" in summary:
        low = summary[summary["ess_bulk"] <= ess_min]
        for param, row in low.iterrows():
            messages.append(f"Bulk ESS for {param} is {row['ess_bulk']:.0f} (<= {ess_min}); draws are highly autocorrelated.")

    return messages


def autocorrelation(idata: az.InferenceData, column: str, max_lag: int = MAX_ACF_LAG) -> pd.DataFrame:
    """
    Per-chain autocorrelation of one parameter element.

    `column` is a draws-table column name, e.g. 'sigma' or 'a[0]'.
    Returns a DataFrame indexed by lag (0..max_lag) with one column per chain.
    """
    draws = draws_to_frame(idata)
    if column not in draws.columns:
        raise ValueError(f"Unknown parameter column: {column}")
    if max_lag < 0:
        raise ValueError(f"max_lag must be non-negative, got {max_lag}")

    acf = {}
    for chain, chain_draws in draws.groupby("chain"):
        values = chain_draws.sort_values("draw")[column].to_numpy(dtype=float)
        acf[chain] = az.autocorr(values)[: max_lag + 1]

    table = pd.DataFrame(acf)
    table.index.name = "lag"
    table.columns.name = "chain"
    return table
