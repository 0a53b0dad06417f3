"""
Rethinking MCMC — Chapter 9 pipeline
Runs the chapter end to end:
King Markov → Concentration of measure → Data → Model fits → Diagnostics → Experiments
"""
import json
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import matplotlib

matplotlib.use("Agg")

import numpy as np

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rethinking_mcmc.config import (
    FITS_DIR, FIGURES_DIR, REPORT_JSON, RUGGED_CSV, RANDOM_SEED,
    N_WEEKS, N_ISLANDS, START_ISLAND, CONCENTRATION_DIMS, CONCENTRATION_SAMPLES,
    MCMC_SAMPLES, MCMC_TUNE, MCMC_CHAINS, MCMC_CORES,
)
from rethinking_mcmc.simulation.king_markov import king_markov_walk, compare_frequencies
from rethinking_mcmc.simulation.concentration import concentration_of_measure, summarize_concentration
from rethinking_mcmc.etl.loader import (
    load_rugged, prepare_rugged, simulate_wild_chain_data, simulate_nonidentifiable_data,
)
from rethinking_mcmc.inference.models import MODEL_SPECS, get_model_spec
from rethinking_mcmc.inference.sampling import fit_model
from rethinking_mcmc.inference.diagnostics import summarize_fit, convergence_warnings, autocorrelation
from rethinking_mcmc.inference.experiments import (
    compare_fits, nonidentifiability_report, prior_posterior_table,
)
from rethinking_mcmc.output import plots


def _load_dataset(data_key: str, seed: Optional[int], rugged_path: Path):
    """Load one dataset by key ('rugged', 'wild', 'nonident')."""
    if data_key == "rugged":
        dd = prepare_rugged(load_rugged(rugged_path))
        print(f"  → rugged: {len(dd)} countries with GDP data")
        return dd
    if data_key == "wild":
        y = simulate_wild_chain_data()
        print(f"  → wild chain data: {y.tolist()}")
        return y
    if data_key == "nonident":
        y = simulate_nonidentifiable_data(seed=seed)
        print(f"  → non-identifiable data: {len(y)} draws, mean {y.mean():.3f}")
        return y
    raise ValueError(f"Unknown dataset: {data_key}")


def _load_datasets(model_names: List[str], seed: Optional[int], rugged_path: Path) -> Tuple[Dict, Dict]:
    """
    Load only the datasets the requested models need.

    Returns (datasets, load_errors). A dataset that fails to load is left out
    of `datasets` and its message is kept in `load_errors` under the same key.
    """
    needed = []
    for name in model_names:
        key = get_model_spec(name).data_key
        if key not in needed:
            needed.append(key)

    datasets = {}
    load_errors = {}
    for key in needed:
        try:
            datasets[key] = _load_dataset(key, seed, rugged_path)
        except Exception as e:
            print(f"  LOAD ERROR ({key}): {e}")
            load_errors[key] = str(e)
    return datasets, load_errors


def run_chapter(
    seed: Optional[int] = RANDOM_SEED,
    n_steps: int = N_WEEKS,
    model_names: Optional[List[str]] = None,
    draws: int = MCMC_SAMPLES,
    tune: int = MCMC_TUNE,
    chains: int = MCMC_CHAINS,
    cores: int = MCMC_CORES,
    refit: bool = False,
    make_plots: bool = True,
    fits_dir: Path = FITS_DIR,
    figures_dir: Path = FIGURES_DIR,
    rugged_path: Path = RUGGED_CSV,
    report_path: Path = REPORT_JSON,
) -> Dict:
    """
    Execute the chapter pipeline.

    Args:
        seed: Random seed for the simulations and the sampler. None for non-deterministic.
        n_steps: Weeks in the King Markov tour.
        model_names: Subset of MODEL_SPECS to fit (default: all).
        draws, tune, chains, cores: NUTS settings.
        refit: Resample even when a cached fit exists.
        make_plots: Save figures under figures_dir.
    """
    model_names = model_names or list(MODEL_SPECS)
    report = {"seed": seed, "models": {}, "errors": []}

    print("=" * 60)
    print("RETHINKING MCMC — Chapter 9")
    print(f"  Random seed: {seed}" if seed is not None else "  Random seed: None (non-deterministic)")
    print("=" * 60)

    # ── Phase 1: King Markov ────────────────────────────────────
    print(f"\n▶ Phase 1: King Markov tour ({n_steps:,} weeks)...")
    positions = king_markov_walk(n_steps, start=START_ISLAND, n_islands=N_ISLANDS, seed=seed)
    freq_table = compare_frequencies(positions, N_ISLANDS)
    for island, row in freq_table.iterrows():
        print(f"    island {island:2d}: observed {row['observed']:.3f}  expected {row['expected']:.3f}")
    print(f"  → Max abs error: {freq_table['abs_error'].max():.4f}")
    report["king_markov"] = freq_table.reset_index().to_dict(orient="records")

    # ── Phase 2: Concentration of measure ───────────────────────
    print("\n▶ Phase 2: Concentration of measure...")
    distances = concentration_of_measure(CONCENTRATION_DIMS, CONCENTRATION_SAMPLES, seed=seed)
    conc = summarize_concentration(distances)
    for dim, row in conc.iterrows():
        print(f"    D={dim:5d}: mean distance {row['mean']:7.2f} "
              f"(sqrt D = {row['sqrt_dim']:6.2f}), min {row['min']:.2f}")
    report["concentration"] = conc.reset_index().to_dict(orient="records")

    # ── Phase 3: Data ───────────────────────────────────────────
    print("\n▶ Phase 3: Loading data...")
    datasets, load_errors = _load_datasets(model_names, seed, Path(rugged_path))

    # ── Phase 4: Model fits ─────────────────────────────────────
    print(f"\n▶ Phase 4: Fitting {len(model_names)} model(s)...")
    fits = {}
    for name in model_names:
        spec = get_model_spec(name)
        print(f"\n  [{spec.name}] {spec.description}")
        if spec.data_key in load_errors:
            error = f"dataset '{spec.data_key}' unavailable: {load_errors[spec.data_key]}"
            print(f"    SKIPPED: {error}")
            report["errors"].append({"model": name, "error": error})
            continue
        try:
            model = spec.builder(datasets[spec.data_key])
            idata = fit_model(model, name, draws=draws, tune=tune, chains=chains,
                              cores=cores, seed=seed, fits_dir=fits_dir, refit=refit)
            summary = summarize_fit(idata, spec.var_names)
            warnings = convergence_warnings(idata, spec.var_names)
        except Exception as e:
            print(f"    FIT ERROR: {e}")
            report["errors"].append({"model": name, "error": str(e)})
            continue

        fits[name] = idata
        summary["warnings"] = warnings
        summary["lesson"] = spec.lesson
        report["models"][name] = summary

        print(f"    R-hat max: {summary['rhat_max']}, ESS min: {summary['ess_min']}, "
              f"divergent: {summary['n_divergent']}")
        print(f"    Converged: {summary['converged']}")
        for msg in warnings:
            print(f"    WARNING: {msg}")

    # ── Phase 5: Experiments ────────────────────────────────────
    print("\n▶ Phase 5: Experiments...")
    experiments = {}

    if "m9_2" in fits and "m9_3" in fits:
        print("  Prior sensitivity (wild vs. tamed chain):")
        table = compare_fits({k: fits[k] for k in ("m9_2", "m9_3")}, ["alpha", "sigma"])
        for _, row in table.iterrows():
            print(f"    {row['model']} {row['param']:6s} mean {row['mean']:10.2f} "
                  f"sd {row['sd']:10.2f} divergent {row['n_divergent']}")
        experiments["prior_sensitivity"] = table.to_dict(orient="records")

    for name in ("m9_4", "m9_5"):
        if name in fits:
            rep = nonidentifiability_report(fits[name])
            print(f"  Non-identifiability [{name}]: sd(a1)={rep['a1_std']:.2f}, "
                  f"sd(a2)={rep['a2_std']:.2f}, sd(a1+a2)={rep['sum_std']:.3f}, "
                  f"corr={rep['correlation']:.3f}")
            experiments[f"nonidentifiability_{name}"] = rep

    if "m9_1" in fits:
        acf = autocorrelation(fits["m9_1"], "sigma")
        lag1 = acf.loc[1].mean() if len(acf) > 1 else float("nan")
        print(f"  Autocorrelation [m9_1 sigma]: mean lag-1 = {lag1:.3f}")
        experiments["m9_1_sigma_lag1_acf"] = float(lag1)

    report["experiments"] = experiments

    # ── Phase 6: Figures ────────────────────────────────────────
    if make_plots:
        print("\n▶ Phase 6: Saving figures...")
        saved = [
            plots.save_figure(plots.plot_king_markov(positions, N_ISLANDS), "king_markov", figures_dir),
            plots.save_figure(plots.plot_concentration(distances), "concentration_of_measure", figures_dir),
        ]
        for name, idata in fits.items():
            var_names = get_model_spec(name).var_names
            for kind, fn in (("trace", plots.plot_trace), ("trank", plots.plot_trank),
                             ("autocorr", plots.plot_autocorr), ("pairs", plots.plot_pairs)):
                try:
                    saved.append(plots.save_figure(fn(idata, var_names), f"{name}_{kind}", figures_dir))
                except Exception as e:
                    print(f"    PLOT ERROR ({name} {kind}): {e}")
        if "m9_3" in fits:
            model = get_model_spec("m9_3").builder(datasets["wild"])
            table = prior_posterior_table(model, fits["m9_3"], "alpha", -15, 15)
            saved.append(plots.save_figure(plots.plot_prior_posterior(table, "alpha"),
                                           "m9_3_alpha_prior_posterior", figures_dir))
        print(f"  → Saved {len(saved)} figures to {figures_dir}")
        report["figures"] = [str(p) for p in saved]

    out_path = save_report(report, report_path)

    # ── Summary ─────────────────────────────────────────────────
    print("\n" + "=" * 60)
    print("CHAPTER COMPLETE")
    print("=" * 60)
    print(f"  Models fitted: {len(fits)} / {len(model_names)}")
    if report["errors"]:
        print(f"  Errors: {', '.join(e['model'] + ': ' + e['error'] for e in report['errors'])}")
    print(f"  Report: {out_path}")
    print()

    return report


def save_report(report: Dict, path: Path = REPORT_JSON) -> Path:
    """Save the run report as JSON."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(report, f, indent=2, default=_json_default)
    return path


def _json_default(val):
    if isinstance(val, np.generic):
        return val.item()
    return str(val)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Rethinking MCMC — Chapter 9")
    parser.add_argument("--seed", type=int, default=RANDOM_SEED,
                        help=f"Random seed (default: {RANDOM_SEED}, use -1 for non-deterministic)")
    parser.add_argument("--steps", type=int, default=N_WEEKS, help="Weeks in the King Markov tour")
    parser.add_argument("--models", nargs="+", choices=list(MODEL_SPECS), help="Models to fit (default: all)")
    parser.add_argument("--draws", type=int, default=MCMC_SAMPLES)
    parser.add_argument("--tune", type=int, default=MCMC_TUNE)
    parser.add_argument("--chains", type=int, default=MCMC_CHAINS)
    parser.add_argument("--cores", type=int, default=MCMC_CORES)
    parser.add_argument("--refit", action="store_true", help="Ignore cached fits and resample")
    parser.add_argument("--no-plots", action="store_true", help="Skip saving figures")
    args = parser.parse_args()

    seed = args.seed if args.seed >= 0 else None
    run_chapter(
        seed=seed,
        n_steps=args.steps,
        model_names=args.models,
        draws=args.draws,
        tune=args.tune,
        chains=args.chains,
        cores=args.cores,
        refit=args.refit,
        make_plots=not args.no_plots,
    )
