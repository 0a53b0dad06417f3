"""
Fit cache: posterior draws stored as flat CSV tables.

One row per (chain, draw). Scalar parameters get one column each, vector
parameters one column per element ('a[0]', 'a[1]', ...), matching the row
labels az.summary uses. Per-draw sampler statistics are kept alongside with
a 'stat::' prefix (e.g. 'stat::diverging').

If a fit file already exists it is reused instead of resampling.
"""
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import arviz as az
import numpy as np
import pandas as pd

from rethinking_mcmc.config import FITS_DIR

STAT_PREFIX = "stat::"
INDEX_COLUMNS = ["chain", "draw"]
_ELEMENT_RE = re.compile(r"^(?P<base>.+)\[(?P<idx>\d+(?:,\d+)*)\]$")


def fit_path(name: str, fits_dir: Union[str, Path] = FITS_DIR) -> Path:
    """Cache file for a model name."""
    return Path(fits_dir) / f"{name}.csv"


def _flatten_group(dataset, prefix: str = "") -> Dict[str, np.ndarray]:
    """Flatten every variable of an xarray group to (chain * draw,) columns."""
    columns = {}
    for var_name, da in dataset.data_vars.items():
        values = np.asarray(da.values)
        n_chain, n_draw = values.shape[:2]
        rest = values.shape[2:]
        if not rest:
            columns[f"{prefix}{var_name}"] = values.reshape(n_chain * n_draw)
            continue
        for idx in np.ndindex(*rest):
            label = ",".join(str(i) for i in idx)
            columns[f"{prefix}{var_name}[{label}]"] = values[(slice(None), slice(None)) + idx].reshape(
                n_chain * n_draw
            )
    return columns


def draws_to_frame(idata: az.InferenceData) -> pd.DataFrame:
    """Posterior draws (and per-draw sampler stats) as one tidy table."""
    posterior = idata.posterior
    n_chain = posterior.sizes["chain"]
    n_draw = posterior.sizes["draw"]

    chains, draws = np.meshgrid(np.arange(n_chain), np.arange(n_draw), indexing="ij")
    data = {"chain": chains.reshape(-1), "draw": draws.reshape(-1)}
    data.update(_flatten_group(posterior))

    if hasattr(idata, "sample_stats"):
        stats = idata.sample_stats
        # Only per-draw scalars; tuning arrays and the like are not cached
        scalar_stats = [v for v, da in stats.data_vars.items() if da.ndim == 2]
        data.update(_flatten_group(stats[scalar_stats], prefix=STAT_PREFIX))

    return pd.DataFrame(data)


def _parse_column(column: str) -> Tuple[str, Optional[Tuple[int, ...]]]:
    match = _ELEMENT_RE.match(column)
    if match is None:
        return column, None
    return match.group("base"), tuple(int(i) for i in match.group("idx").split(","))


def _regroup(df: pd.DataFrame, columns: List[str], n_chain: int, n_draw: int) -> Dict[str, np.ndarray]:
    """Inverse of _flatten_group: rebuild (chain, draw, ...) arrays from columns."""
    elements: Dict[str, Dict[Optional[Tuple[int, ...]], str]] = {}
    for col in columns:
        base, idx = _parse_column(col)
        elements.setdefault(base, {})[idx] = col

    arrays = {}
    for base, cols in elements.items():
        if None in cols:
            if len(cols) > 1:
                raise ValueError(f"Column '{base}' is both scalar and indexed in fit file")
            arrays[base] = df[cols[None]].to_numpy().reshape(n_chain, n_draw)
            continue
        shape = tuple(max(idx[d] for idx in cols) + 1 for d in range(len(next(iter(cols)))))
        first = df[next(iter(cols.values()))].to_numpy()
        arr = np.zeros((n_chain, n_draw) + shape, dtype=first.dtype)
        for idx, col in cols.items():
            arr[(slice(None), slice(None)) + idx] = df[col].to_numpy().reshape(n_chain, n_draw)
        arrays[base] = arr
    return arrays


def frame_to_idata(df: pd.DataFrame) -> az.InferenceData:
    """Rebuild an InferenceData from a draws table written by draws_to_frame."""
    missing = [c for c in INDEX_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Fit table missing index columns: {missing}")
    if len(df) == 0:
        raise ValueError("Fit table has no draws")

    df = df.sort_values(INDEX_COLUMNS).reset_index(drop=True)
    draws_per_chain = df.groupby("chain").size()
    if draws_per_chain.nunique() != 1:
        raise ValueError(f"Chains have unequal draw counts: {draws_per_chain.to_dict()}")
    n_chain = len(draws_per_chain)
    n_draw = int(draws_per_chain.iloc[0])

    value_cols = [c for c in df.columns if c not in INDEX_COLUMNS]
    param_cols = [c for c in value_cols if not c.startswith(STAT_PREFIX)]
    stat_cols = [c for c in value_cols if c.startswith(STAT_PREFIX)]
    if not param_cols:
        raise ValueError("Fit table has no parameter columns")

    posterior = _regroup(df, param_cols, n_chain, n_draw)
    stat_df = df[stat_cols].rename(columns=lambda c: c[len(STAT_PREFIX):])
    stats = _regroup(stat_df, list(stat_df.columns), n_chain, n_draw)
    if "diverging" in stats:
        stats["diverging"] = stats["diverging"].astype(bool)

    if stats:
        return az.from_dict(posterior=posterior, sample_stats=stats)
    return az.from_dict(posterior=posterior)


def save_fit(idata: az.InferenceData, name: str, fits_dir: Union[str, Path] = FITS_DIR) -> Path:
    """Write a fit's draws to the cache directory."""
    path = fit_path(name, fits_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    draws_to_frame(idata).to_csv(path, index=False)
    return path


def load_fit(name: str, fits_dir: Union[str, Path] = FITS_DIR) -> Optional[az.InferenceData]:
    """Cached fit for `name`, or None when no file exists."""
    path = fit_path(name, fits_dir)
    if not path.exists():
        return None
    return frame_to_idata(pd.read_csv(path, float_precision="round_trip"))


def clear_fit(name: str, fits_dir: Union[str, Path] = FITS_DIR) -> bool:
    """Delete a cached fit. Returns True if a file was removed."""
    path = fit_path(name, fits_dir)
    if path.exists():
        path.unlink()
        return True
    return False
