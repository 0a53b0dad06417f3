"""
Rethinking MCMC — Configuration
Paths, constants, and global settings.
"""
from pathlib import Path

# ── Base paths ──────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"
FITS_DIR = BASE_DIR / "fits"
OUTPUT_DIR = BASE_DIR / "output_data"
FIGURES_DIR = OUTPUT_DIR / "figures"

# ── Data files ──────────────────────────────────────────────────
RUGGED_CSV = DATA_DIR / "rugged.csv"
RUGGED_URL = "https://raw.githubusercontent.com/rmcelreath/rethinking/master/data/rugged.csv"
RUGGED_SEP = ";"
REPORT_JSON = OUTPUT_DIR / "chapter9_report.json"

# ── King Markov archipelago ────────────────────────────────────
N_ISLANDS = 10
START_ISLAND = 10
N_WEEKS = 100_000

# ── Concentration of measure ───────────────────────────────────
CONCENTRATION_DIMS = (1, 10, 100, 1000)
CONCENTRATION_SAMPLES = 1000

# ── MCMC settings ──────────────────────────────────────────────
MCMC_SAMPLES = 1000
MCMC_TUNE = 1000
MCMC_CHAINS = 4
MCMC_CORES = 1               # Safe for all platforms
TARGET_ACCEPT = 0.8
RANDOM_SEED = 42

# ── Convergence thresholds ─────────────────────────────────────
RHAT_MAX = 1.05
ESS_MIN = 100
MAX_ACF_LAG = 30

# ── Toy datasets for the prior experiments ─────────────────────
WILD_CHAIN_OBS = (-1.0, 1.0)
NONIDENT_N_OBS = 100
