"""
Terrain ruggedness dataset loader.
Reads the rugged.csv table (Nunn & Puga 2012) and derives the standardized
columns used by the rugged-terrain regression.
"""
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from rethinking_mcmc.config import (
    RUGGED_CSV, RUGGED_URL, RUGGED_SEP, WILD_CHAIN_OBS, NONIDENT_N_OBS,
)

REQUIRED_COLUMNS = ["country", "rgdppc_2000", "rugged", "cont_africa"]


def load_rugged(path: Union[str, Path] = RUGGED_CSV, url: Optional[str] = RUGGED_URL,
                verbose: bool = True) -> pd.DataFrame:
    """
    Load the raw ruggedness table.

    Uses the local copy when it exists. Otherwise reads it from `url` and
    writes the local copy so later runs stay offline.
    """
    path = Path(path)
    if path.exists():
        if verbose:
            print(f"Loading existing dataset: {path}")
        return pd.read_csv(path, sep=RUGGED_SEP)

    if url is None:
        raise FileNotFoundError(f"Dataset not found: {path}")

    if verbose:
        print(f"Dataset not found locally. Downloading from {url}...")
    df = pd.read_csv(url, sep=RUGGED_SEP)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, sep=RUGGED_SEP, index=False)
    if verbose:
        print(f"  Saved local copy: {path}")
    return df


def prepare_rugged(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep countries with GDP data and add the model columns.

    Adds:
        log_gdp       log of real GDP per capita in 2000
        log_gdp_std   log_gdp rescaled so its mean is 1
        rugged_std    ruggedness rescaled to [0, 1] (divided by the max)
        rugged_std_c  rugged_std minus its mean
        cid           0 for African nations, 1 otherwise
    """
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Rugged dataset missing required columns: {missing}")

    dd = df.dropna(subset=["rgdppc_2000"]).copy()
    dd = dd[dd["rgdppc_2000"] > 0].reset_index(drop=True)
    if len(dd) == 0:
        raise ValueError("Rugged dataset has no rows with GDP data")

    dd["log_gdp"] = np.log(dd["rgdppc_2000"])
    dd["log_gdp_std"] = dd["log_gdp"] / dd["log_gdp"].mean()

    max_rugged = dd["rugged"].max()
    dd["rugged_std"] = dd["rugged"] / max_rugged if max_rugged > 0 else 0.0
    dd["rugged_std_c"] = dd["rugged_std"] - dd["rugged_std"].mean()

    dd["cid"] = np.where(dd["cont_africa"] == 1, 0, 1).astype(int)
    return dd


def simulate_wild_chain_data() -> np.ndarray:
    """Two observations, -1 and 1, for the flat-prior example."""
    return np.array(WILD_CHAIN_OBS, dtype=float)


def simulate_nonidentifiable_data(n: int = NONIDENT_N_OBS, seed: Optional[int] = None) -> np.ndarray:
    """Standard normal observations for the a1 + a2 example."""
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    rng = np.random.default_rng(seed)
    return rng.standard_normal(n)
