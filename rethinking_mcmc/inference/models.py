"""
Model table: the chapter's regression models.

Each model specifies:
  - name: key used for the fit cache file and the CLI
  - builder: function(data) -> pm.Model, no sampling
  - data_key: which dataset the builder expects
      'rugged'   prepared ruggedness DataFrame (see etl.loader.prepare_rugged)
      'wild'     the two-point [-1, 1] sample
      'nonident' 100 standard normal draws
  - var_names: parameters to report and plot

Models:
  m9_1  rugged terrain, separate intercept/slope per continent
  m9_2  wild chain: flat priors on a two-point sample
  m9_3  tamed chain: weakly informative priors on the same sample
  m9_4  non-identifiable a1 + a2 with flat priors
  m9_5  non-identifiable a1 + a2 with weakly informative priors
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List

import numpy as np
import pandas as pd
import pymc as pm


@dataclass
class ModelSpec:
    """Full specification for one chapter model."""
    name: str
    description: str
    builder: Callable[..., pm.Model]
    data_key: str                       # 'rugged', 'wild', 'nonident'
    var_names: List[str] = field(default_factory=list)
    lesson: str = ""


def build_rugged_model(dd: pd.DataFrame) -> pm.Model:
    """
    log_gdp_std ~ Normal(a[cid] + b[cid] * (rugged_std - mean), sigma)
    a ~ Normal(1, 0.1); b ~ Normal(0, 0.3); sigma ~ Exponential(1)
    """
    for col in ("log_gdp_std", "rugged_std", "cid"):
        if col not in dd.columns:
            raise ValueError(f"Prepared rugged data missing column: {col}")

    cid = dd["cid"].to_numpy(dtype=int)
    rugged_std = dd["rugged_std"].to_numpy(dtype=float)
    rugged_bar = float(rugged_std.mean())
    y = dd["log_gdp_std"].to_numpy(dtype=float)

    with pm.Model() as model:
        a = pm.Normal("a", mu=1, sigma=0.1, shape=2)
        b = pm.Normal("b", mu=0, sigma=0.3, shape=2)
        sigma = pm.Exponential("sigma", lam=1)
        mu = a[cid] + b[cid] * (rugged_std - rugged_bar)
        pm.Normal("log_gdp_std", mu=mu, sigma=sigma, observed=y)
    return model


def build_mean_model(y: np.ndarray, alpha_mu: float, alpha_sigma: float,
                     sigma_rate: float) -> pm.Model:
    """y ~ Normal(alpha, sigma) with configurable priors."""
    with pm.Model() as model:
        alpha = pm.Normal("alpha", mu=alpha_mu, sigma=alpha_sigma)
        sigma = pm.Exponential("sigma", lam=sigma_rate)
        pm.Normal("y", mu=alpha, sigma=sigma, observed=np.asarray(y, dtype=float))
    return model


def build_wild_chain_model(y: np.ndarray) -> pm.Model:
    """Flat priors on two observations: the chain wanders off to huge values."""
    return build_mean_model(y, alpha_mu=0.0, alpha_sigma=1000.0, sigma_rate=0.0001)


def build_tamed_chain_model(y: np.ndarray) -> pm.Model:
    """Same data, weakly informative priors."""
    return build_mean_model(y, alpha_mu=1.0, alpha_sigma=10.0, sigma_rate=1.0)


def build_sum_model(y: np.ndarray, prior_sigma: float) -> pm.Model:
    """y ~ Normal(a1 + a2, sigma). Only the sum a1 + a2 is identified by the data."""
    with pm.Model() as model:
        a1 = pm.Normal("a1", mu=0, sigma=prior_sigma)
        a2 = pm.Normal("a2", mu=0, sigma=prior_sigma)
        sigma = pm.Exponential("sigma", lam=1)
        pm.Normal("y", mu=a1 + a2, sigma=sigma, observed=np.asarray(y, dtype=float))
    return model


def build_nonidentifiable_model(y: np.ndarray) -> pm.Model:
    return build_sum_model(y, prior_sigma=1000.0)


def build_regularized_sum_model(y: np.ndarray) -> pm.Model:
    return build_sum_model(y, prior_sigma=10.0)


MODEL_SPECS: Dict[str, ModelSpec] = {
    "m9_1": ModelSpec(
        name="m9_1",
        description="Rugged terrain vs. log GDP, intercept and slope per continent",
        builder=build_rugged_model,
        data_key="rugged",
        var_names=["a", "b", "sigma"],
        lesson="A well-behaved HMC fit: stationary, well-mixing chains",
    ),
    "m9_2": ModelSpec(
        name="m9_2",
        description="Mean of [-1, 1] with flat priors",
        builder=build_wild_chain_model,
        data_key="wild",
        var_names=["alpha", "sigma"],
        lesson="Flat priors on sparse data give a wild chain and divergent transitions",
    ),
    "m9_3": ModelSpec(
        name="m9_3",
        description="Mean of [-1, 1] with weakly informative priors",
        builder=build_tamed_chain_model,
        data_key="wild",
        var_names=["alpha", "sigma"],
        lesson="A little prior information tames the chain",
    ),
    "m9_4": ModelSpec(
        name="m9_4",
        description="y ~ Normal(a1 + a2, sigma) with flat priors",
        builder=build_nonidentifiable_model,
        data_key="nonident",
        var_names=["a1", "a2", "sigma"],
        lesson="Non-identifiable parameters: huge sd, tiny ESS, high R-hat",
    ),
    "m9_5": ModelSpec(
        name="m9_5",
        description="y ~ Normal(a1 + a2, sigma) with weakly informative priors",
        builder=build_regularized_sum_model,
        data_key="nonident",
        var_names=["a1", "a2", "sigma"],
        lesson="Weak priors make the sampler efficient even though a1, a2 stay unidentified",
    ),
}


def get_model_spec(name: str) -> ModelSpec:
    """Look up a model by name."""
    spec = MODEL_SPECS.get(name)
    if spec is None:
        raise ValueError(f"Unknown model: {name}. Known: {', '.join(MODEL_SPECS)}")
    return spec


def build_model(name: str, data) -> pm.Model:
    """Build the named model from its dataset."""
    return get_model_spec(name).builder(data)
