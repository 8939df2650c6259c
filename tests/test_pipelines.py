"""End-to-end pipeline tests with a stub posterior fitter."""

import json

import numpy as np
import pandas as pd
import pytest

from conftest import StubFitter
from trial_bayes import config, pipeline_analysis, pipeline_generate
from trial_bayes.analysis.figures import conditional_effects
from trial_bayes.analysis.trial_models import run_subgroup_analysis
from trial_bayes.pipeline_utils import parse_analyses


@pytest.fixture
def data_dir(tmp_path):
    out = tmp_path / "data"
    pipeline_generate.run(200, 1.7, 42, out)
    return out


class TestGeneratePipeline:
    def test_main_writes_tables_and_manifest(self, tmp_path):
        data = tmp_path / "data"
        code = pipeline_generate.main(["--n-patients", "20", "--seed", "3",
                                       "--data-dir", str(data), "--no-plots"])
        assert code == 0
        trial = pd.read_csv(data / config.TRIAL_DATA_FILE)
        assert len(trial) == 20
        assert len(pd.read_csv(data / config.BIOMARKER_DATA_FILE)) == 60
        manifest = json.loads((data / "manifest.json").read_text())
        assert manifest["row_counts"] == {"trial": 20, "biomarker": 60}

    def test_exploratory_figures(self, tmp_path):
        out = pipeline_generate.run(40, 1.5, 1, tmp_path / "data", tmp_path / "images")
        assert out["paths"]["boxplot"].exists()
        assert out["paths"]["trajectory"].exists()

    def test_zero_patients_writes_empty_tables(self, tmp_path):
        out = pipeline_generate.run(0, 1.5, 1, tmp_path, tmp_path / "images")
        assert out["trial"].empty
        assert "boxplot" not in out["paths"]
        assert (tmp_path / config.TRIAL_DATA_FILE).exists()


class TestAnalysisPipeline:
    def test_all_outputs_written(self, data_dir, tmp_path):
        results = tmp_path / "results"
        fitter = StubFitter()
        out = pipeline_analysis.run(data_dir, results, fitter=fitter)
        for name in config.OUTPUT_FILES.values():
            if name.endswith(".png"):
                continue
            assert (results / name).exists(), name
        assert out["row_counts"] == {"trial": 200, "biomarker": 600}
        # primary + biomarker + six subgroups
        assert len(fitter.calls) == 8
        assert fitter.calls[0]["seed"] == config.PRIMARY_SEED
        assert fitter.calls[1]["seed"] == config.BIOMARKER_SEED

    def test_primary_summary_row(self, data_dir, tmp_path):
        fitter = StubFitter(locs={config.TREATMENT_COEF: 1.7}, scale=0.2)
        pipeline_analysis.run(data_dir, tmp_path, fitter=fitter, analyses=["primary"])
        summary = pd.read_csv(tmp_path / config.OUTPUT_FILES["primary_summary"])
        assert summary.shape == (1, 6)
        row = summary.iloc[0]
        assert row["Parameter"] == "Treatment Effect"
        assert row["Mean"] == pytest.approx(1.7, abs=0.05)
        assert row["Lower_CI"] <= row["Mean"] <= row["Upper_CI"]
        assert row["Prob_Positive"] >= row["Prob_Significant"]
        assert not (tmp_path / config.OUTPUT_FILES["subgroup_summary"]).exists()

    def test_biomarker_effects_at_baseline_and_week_12(self, data_dir, tmp_path):
        locs = {config.TREATMENT_COEF: 0.0, config.INTERACTION_COEF: 3.0}
        pipeline_analysis.run(data_dir, tmp_path, fitter=StubFitter(locs=locs, scale=0.1),
                              analyses=["biomarker"])
        summary = pd.read_csv(tmp_path / config.OUTPUT_FILES["biomarker_summary"])
        assert summary["Timepoint"].tolist() == ["Baseline", "Week 12"]
        assert summary.loc[0, "Mean_Effect"] == pytest.approx(0.0, abs=0.05)
        assert summary.loc[1, "Mean_Effect"] == pytest.approx(6.0, abs=0.1)

    def test_subgroups_cover_partitions(self, data_dir, tmp_path):
        pipeline_analysis.run(data_dir, tmp_path, fitter=StubFitter(), analyses=["subgroup"])
        groups = pd.read_csv(tmp_path / config.OUTPUT_FILES["subgroup_summary"]).set_index("Subgroup")
        assert list(groups.index) == ["all", "male", "female", "young", "middle", "old"]
        assert groups.loc["all", "N"] == 200
        assert groups.loc["male", "N"] + groups.loc["female", "N"] == 200
        assert groups.loc[["young", "middle", "old"], "N"].sum() == 200
        assert (groups["Lower_CI"] <= groups["Upper_CI"]).all()

    def test_missing_inputs_raise(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            pipeline_analysis.run(tmp_path / "nowhere", tmp_path / "results", fitter=StubFitter())


def test_small_subgroups_skipped(reference_tables, tmp_path, caplog):
    trial, _ = reference_tables
    old = trial[trial["age_group"].astype(str) == ">70"].head(5)
    rest = trial[trial["age_group"].astype(str) != ">70"]
    subset = pd.concat([rest, old]).reset_index(drop=True)

    with caplog.at_level("INFO"):
        results = run_subgroup_analysis(subset, StubFitter(), tmp_path)
    assert "old" not in results["Subgroup"].tolist()
    assert (results["N"] >= config.MIN_SUBGROUP_SIZE).all()
    assert "Skipping subgroup old" in caplog.text


def test_tiny_trial_yields_empty_subgroup_table(tmp_path):
    trial = pipeline_generate.run(6, 1.5, 2, tmp_path / "data")["trial"]
    results = run_subgroup_analysis(trial, StubFitter(), tmp_path)
    assert results.empty
    assert list(pd.read_csv(tmp_path / config.OUTPUT_FILES["subgroup_summary"]).columns) == list(results.columns)
    assert not (tmp_path / config.OUTPUT_FILES["subgroup_plot"]).exists()


def test_conditional_effects_band():
    n = 300
    rng = np.random.default_rng(0)
    draws = pd.DataFrame({
        "Intercept": rng.normal(50, 0.1, n),
        config.TREATMENT_COEF: rng.normal(0, 0.1, n),
        config.TIME_COLUMN: rng.normal(1, 0.1, n),
        config.INTERACTION_COEF: rng.normal(3, 0.1, n),
    })
    effects = conditional_effects(draws, np.array([0.0, 2.0]))
    treated = effects[effects["treatment"] == config.TREATMENT].set_index("time")
    assert treated.loc[2.0, "estimate"] == pytest.approx(58.0, abs=0.2)
    assert (effects["lower"] <= effects["upper"]).all()


class TestParseAnalyses:
    def test_all(self):
        assert parse_analyses("all", pipeline_analysis.ANALYSES) == ["primary", "biomarker", "subgroup"]

    def test_subset_keeps_canonical_order(self):
        assert parse_analyses("subgroup,primary", pipeline_analysis.ANALYSES) == ["primary", "subgroup"]

    def test_unknown_name_rejected(self):
        with pytest.raises(ValueError):
            parse_analyses("primary,survival", pipeline_analysis.ANALYSES)
