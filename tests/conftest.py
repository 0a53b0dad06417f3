import arviz as az
import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def good_idata(rng):
    """Two well-mixed chains for a vector 'a', a vector 'b' and a scalar 'sigma'."""
    n_chain, n_draw = 2, 400
    diverging = np.zeros((n_chain, n_draw), dtype=bool)
    diverging[0, 10] = True
    diverging[1, 20] = True
    return az.from_dict(
        posterior={
            "a": rng.normal([0.88, 1.05], 0.02, size=(n_chain, n_draw, 2)),
            "b": rng.normal([0.13, -0.14], 0.07, size=(n_chain, n_draw, 2)),
            "sigma": np.abs(rng.normal(0.11, 0.006, size=(n_chain, n_draw))),
        },
        sample_stats={
            "diverging": diverging,
            "lp": rng.normal(-250, 1, size=(n_chain, n_draw)),
        },
    )


@pytest.fixture
def stuck_idata(rng):
    """Two chains that disagree and barely move: should trip R-hat and ESS checks."""
    n_draw = 300
    walk = np.cumsum(rng.normal(0, 0.01, size=(2, n_draw)), axis=1)
    alpha = walk + np.array([[0.0], [50.0]])
    return az.from_dict(
        posterior={
            "alpha": alpha,
            "sigma": np.abs(rng.normal(1, 0.1, size=(2, n_draw))),
        },
        sample_stats={"diverging": np.ones((2, n_draw), dtype=bool)},
    )


@pytest.fixture
def nonident_idata(rng):
    """a1 and a2 wander over hundreds of units but their sum stays near zero."""
    shape = (2, 500)
    a1 = rng.normal(0, 50, size=shape)
    a2 = -a1 + rng.normal(0.05, 0.1, size=shape)
    return az.from_dict(posterior={
        "a1": a1,
        "a2": a2,
        "sigma": np.abs(rng.normal(1, 0.07, size=shape)),
    })


@pytest.fixture
def raw_rugged():
    """A few rows shaped like rugged.csv (subset of columns)."""
    return pd.DataFrame({
        "isocode": ["AGO", "ALB", "ARE", "ARG", "BDI", "CHE"],
        "country": ["Angola", "Albania", "UAE", "Argentina", "Burundi", "Switzerland"],
        "rugged": [0.858, 3.427, 0.769, 0.775, 2.392, 4.324],
        "cont_africa": [1, 0, 0, 0, 1, 0],
        "rgdppc_2000": [1794.73, 3703.01, 20604.46, 12173.07, None, 29938.65],
    })
