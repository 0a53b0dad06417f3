"""
NUTS sampling through PyMC, with a file cache in front.

A fit is keyed by model name. If fits/<name>.csv exists the cached draws are
returned and the sampler is never called; pass refit=True to resample.
"""
from pathlib import Path
from typing import Optional, Union

import arviz as az
import pymc as pm

from rethinking_mcmc.config import (
    FITS_DIR, MCMC_SAMPLES, MCMC_TUNE, MCMC_CHAINS, MCMC_CORES, TARGET_ACCEPT,
)
from rethinking_mcmc.inference.fit_cache import fit_path, load_fit, save_fit


def sample_model(
    model: pm.Model,
    draws: int = MCMC_SAMPLES,
    tune: int = MCMC_TUNE,
    chains: int = MCMC_CHAINS,
    cores: int = MCMC_CORES,
    seed: Optional[int] = None,
    target_accept: float = TARGET_ACCEPT,
    progressbar: bool = True,
) -> az.InferenceData:
    """Run NUTS on a PyMC model and return the InferenceData."""
    if draws < 1 or chains < 1:
        raise ValueError(f"draws and chains must be >= 1, got draws={draws}, chains={chains}")

    with model:
        trace = pm.sample(
            draws=draws,
            tune=tune,
            chains=chains,
            cores=cores,
            random_seed=seed,
            target_accept=target_accept,
            return_inferencedata=True,
            progressbar=progressbar,
        )
    return trace


def fit_model(
    model: pm.Model,
    name: str,
    draws: int = MCMC_SAMPLES,
    tune: int = MCMC_TUNE,
    chains: int = MCMC_CHAINS,
    cores: int = MCMC_CORES,
    seed: Optional[int] = None,
    fits_dir: Union[str, Path] = FITS_DIR,
    refit: bool = False,
    verbose: bool = True,
) -> az.InferenceData:
    """
    Fit a model, reusing the cached draws when available.

    Args:
        model: PyMC model to sample.
        name: Cache key; the draws live in <fits_dir>/<name>.csv.
        draws, tune, chains, cores: Passed to pm.sample.
        seed: Sampler random seed.
        fits_dir: Cache directory.
        refit: Ignore any cached draws and resample.
        verbose: Print cache hits and writes.
    """
    if not refit:
        cached = load_fit(name, fits_dir)
        if cached is not None:
            if verbose:
                print(f"    Loaded cached fit: {fit_path(name, fits_dir)}")
            return cached

    if verbose:
        print(f"    Sampling {name}: {chains} chain(s) x {draws} draws (tune={tune})")
    idata = sample_model(model, draws=draws, tune=tune, chains=chains, cores=cores,
                         seed=seed, progressbar=verbose)

    path = save_fit(idata, name, fits_dir)
    if verbose:
        print(f"    Saved fit: {path}")
    return idata
