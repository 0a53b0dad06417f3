"""Tests for the CSV fit cache and the cached fit_model path."""
import numpy as np
import pandas as pd
import pytest

from rethinking_mcmc.inference import sampling
from rethinking_mcmc.inference.fit_cache import (
    STAT_PREFIX,
    clear_fit,
    draws_to_frame,
    fit_path,
    frame_to_idata,
    load_fit,
    save_fit,
)


class TestDrawsTable:

    def test_one_row_per_draw(self, good_idata):
        df = draws_to_frame(good_idata)
        assert len(df) == 2 * 400
        assert {"chain", "draw", "a[0]", "a[1]", "b[0]", "b[1]", "sigma"} <= set(df.columns)
        assert f"{STAT_PREFIX}diverging" in df.columns
        assert df[f"{STAT_PREFIX}diverging"].sum() == 2

    def test_vector_elements_match_posterior(self, good_idata):
        df = draws_to_frame(good_idata)
        chain1 = df[df["chain"] == 1].sort_values("draw")
        np.testing.assert_allclose(chain1["a[1]"], good_idata.posterior["a"].values[1, :, 1])

    def test_missing_index_columns(self):
        with pytest.raises(ValueError, match="index columns"):
            frame_to_idata(pd.DataFrame({"sigma": [1.0]}))

    def test_unequal_chains(self):
        df = pd.DataFrame({"chain": [0, 0, 1], "draw": [0, 1, 0], "sigma": [1.0, 1.1, 0.9]})
        with pytest.raises(ValueError, match="unequal"):
            frame_to_idata(df)

    def test_shuffled_rows_rebuild_in_order(self):
        df = pd.DataFrame({
            "chain": [1, 0, 1, 0],
            "draw": [1, 1, 0, 0],
            "mu": [4.0, 2.0, 3.0, 1.0],
        })
        idata = frame_to_idata(df)
        np.testing.assert_array_equal(idata.posterior["mu"].values, [[1.0, 2.0], [3.0, 4.0]])


class TestFileCache:

    def test_missing_fit_is_none(self, tmp_path):
        assert load_fit("m9_1", tmp_path) is None

    def test_saved_fit_reloads(self, tmp_path, good_idata):
        path = save_fit(good_idata, "m9_1", tmp_path)
        assert path == fit_path("m9_1", tmp_path)
        assert path.exists()

        cached = load_fit("m9_1", tmp_path)
        assert cached.posterior["a"].shape == (2, 400, 2)
        np.testing.assert_allclose(cached.posterior["sigma"].values, good_idata.posterior["sigma"].values)
        assert cached.sample_stats["diverging"].dtype == bool
        assert int(cached.sample_stats["diverging"].sum()) == 2

    def test_clear_fit(self, tmp_path, good_idata):
        save_fit(good_idata, "m9_2", tmp_path)
        assert clear_fit("m9_2", tmp_path)
        assert not clear_fit("m9_2", tmp_path)
        assert load_fit("m9_2", tmp_path) is None


class TestFitModel:

    def test_cache_hit_skips_sampler(self, tmp_path, good_idata, monkeypatch):
        save_fit(good_idata, "m9_1", tmp_path)

        def fail(*args, **kwargs):
            raise AssertionError("sampler should not run on a cache hit")

        monkeypatch.setattr(sampling, "sample_model", fail)
        idata = sampling.fit_model(None, "m9_1", fits_dir=tmp_path, verbose=False)
        assert idata.posterior["a"].shape == (2, 400, 2)

    def test_cache_miss_samples_and_saves(self, tmp_path, good_idata, monkeypatch):
        calls = []

        def fake_sample(model, **kwargs):
            calls.append(kwargs)
            return good_idata

        monkeypatch.setattr(sampling, "sample_model", fake_sample)
        sampling.fit_model("model", "m9_3", draws=50, tune=25, chains=2, seed=7,
                           fits_dir=tmp_path, verbose=False)
        assert len(calls) == 1
        assert calls[0]["draws"] == 50
        assert calls[0]["seed"] == 7
        assert fit_path("m9_3", tmp_path).exists()

    def test_refit_ignores_cache(self, tmp_path, good_idata, nonident_idata, monkeypatch):
        save_fit(good_idata, "m9_4", tmp_path)
        monkeypatch.setattr(sampling, "sample_model", lambda model, **kw: nonident_idata)

        idata = sampling.fit_model("model", "m9_4", fits_dir=tmp_path, refit=True, verbose=False)
        assert "a1" in idata.posterior
        assert "a1" in load_fit("m9_4", tmp_path).posterior

    def test_sample_model_rejects_empty_run(self):
        with pytest.raises(ValueError):
            sampling.sample_model(None, draws=0)


def test_reloaded_floats_are_exact(tmp_path, good_idata):
    save_fit(good_idata, "m9_1", tmp_path)
    cached = load_fit("m9_1", tmp_path)
    np.testing.assert_array_equal(cached.posterior["sigma"].values, good_idata.posterior["sigma"].values)
    np.testing.assert_array_equal(cached.posterior["a"].values, good_idata.posterior["a"].values)


class TestRealSampler:

    def test_nuts_fit_survives_cache(self, tmp_path):
        from rethinking_mcmc.etl.loader import simulate_wild_chain_data
        from rethinking_mcmc.inference.diagnostics import summarize_fit
        from rethinking_mcmc.inference.models import build_model

        model = build_model("m9_3", simulate_wild_chain_data())
        fresh = sampling.fit_model(model, "m9_3", draws=50, tune=50, chains=2, cores=1,
                                   seed=11, fits_dir=tmp_path, verbose=False)
        assert fresh.posterior["alpha"].shape == (2, 50)
        assert "diverging" in fresh.sample_stats

        df = draws_to_frame(fresh)
        assert len(df) == 100
        assert {"alpha", "sigma", f"{STAT_PREFIX}diverging"} <= set(df.columns)

        cached = load_fit("m9_3", tmp_path)
        assert summarize_fit(cached, ["alpha", "sigma"]) == summarize_fit(fresh, ["alpha", "sigma"])
