"""End-to-end pipeline test with the sampler stubbed out."""
import json

import arviz as az
import numpy as np
import pytest

from rethinking_mcmc import run_chapter as chapter


@pytest.fixture
def tamed_idata(rng):
    shape = (2, 300)
    return az.from_dict(
        posterior={
            "alpha": rng.normal(0.0, 1.2, size=shape),
            "sigma": np.abs(rng.normal(1.5, 0.5, size=shape)),
        },
        sample_stats={"diverging": np.zeros(shape, dtype=bool)},
    )


@pytest.fixture
def stub_fits(monkeypatch, stuck_idata, tamed_idata, nonident_idata):
    fits = {"m9_2": stuck_idata, "m9_3": tamed_idata, "m9_4": nonident_idata, "m9_5": nonident_idata}
    calls = []

    def fake_fit_model(model, name, **kwargs):
        calls.append(name)
        if name == "m9_5":
            raise RuntimeError("sampler exploded")
        return fits[name]

    monkeypatch.setattr(chapter, "fit_model", fake_fit_model)
    return calls


def test_pipeline_report(tmp_path, stub_fits):
    report_path = tmp_path / "report.json"
    report = chapter.run_chapter(
        seed=1,
        n_steps=2_000,
        model_names=["m9_2", "m9_3", "m9_4", "m9_5"],
        make_plots=False,
        fits_dir=tmp_path / "fits",
        report_path=report_path,
    )

    assert stub_fits == ["m9_2", "m9_3", "m9_4", "m9_5"]
    assert set(report["models"]) == {"m9_2", "m9_3", "m9_4"}
    assert report["errors"] == [{"model": "m9_5", "error": "sampler exploded"}]

    assert report["models"]["m9_2"]["converged"] is False
    assert report["models"]["m9_2"]["warnings"]
    assert len(report["king_markov"]) == 10

    experiments = report["experiments"]
    assert len(experiments["prior_sensitivity"]) == 4
    assert experiments["nonidentifiability_m9_4"]["correlation"] < -0.99

    saved = json.loads(report_path.read_text())
    assert saved["seed"] == 1
    assert "m9_4" in saved["models"]


def test_pipeline_saves_figures(tmp_path, stub_fits):
    figures_dir = tmp_path / "figures"
    report = chapter.run_chapter(
        seed=2,
        n_steps=500,
        model_names=["m9_3"],
        make_plots=True,
        fits_dir=tmp_path / "fits",
        figures_dir=figures_dir,
        report_path=tmp_path / "report.json",
    )
    names = {p.name for p in figures_dir.iterdir()}
    assert {"king_markov.png", "concentration_of_measure.png", "m9_3_trace.png",
            "m9_3_alpha_prior_posterior.png"} <= names
    assert len(report["figures"]) == len(names)


def test_unreachable_dataset_only_skips_its_models(tmp_path, monkeypatch, nonident_idata):
    fitted = []

    def offline(path, *args, **kwargs):
        raise OSError("<urlopen error [Errno -2] Name or service not known>")

    def fake_fit_model(model, name, **kwargs):
        fitted.append(name)
        return nonident_idata

    monkeypatch.setattr(chapter, "load_rugged", offline)
    monkeypatch.setattr(chapter, "fit_model", fake_fit_model)
    report_path = tmp_path / "report.json"
    report = chapter.run_chapter(
        seed=3,
        n_steps=200,
        model_names=["m9_1", "m9_4"],
        make_plots=False,
        fits_dir=tmp_path / "fits",
        rugged_path=tmp_path / "nope.csv",
        report_path=report_path,
    )

    assert fitted == ["m9_4"]
    assert set(report["models"]) == {"m9_4"}
    assert [e["model"] for e in report["errors"]] == ["m9_1"]
    assert "Name or service not known" in report["errors"][0]["error"]
    assert report_path.exists()


def test_stale_cached_fit_is_reported_not_fatal(tmp_path, monkeypatch, good_idata, nonident_idata):
    # m9_3 gets draws for a, b, sigma: its 'alpha' summary cannot be built
    fits = {"m9_3": good_idata, "m9_4": nonident_idata}
    monkeypatch.setattr(chapter, "fit_model", lambda model, name, **kw: fits[name])

    report = chapter.run_chapter(
        seed=4,
        n_steps=200,
        model_names=["m9_3", "m9_4"],
        make_plots=False,
        fits_dir=tmp_path / "fits",
        report_path=tmp_path / "report.json",
    )

    assert set(report["models"]) == {"m9_4"}
    assert [e["model"] for e in report["errors"]] == ["m9_3"]
    assert "alpha" in report["errors"][0]["error"]
    assert "nonidentifiability_m9_4" in report["experiments"]
