"""
Treatment-effect models for the simulated trial.

Three analyses, each fitted through a ``BayesianFitter`` and reduced to a
summary table, a NetCDF model artifact and a figure:

1. Primary outcome:  primary_outcome ~ treatment + age + sex
2. Biomarker:        biomarker_value ~ treatment * time_numeric
                                       + (time_numeric | patient_id)
3. Subgroups:        primary_outcome ~ treatment, refitted within each of
                     six patient subsets (skipped below 10 patients)
"""

import logging
from pathlib import Path
from typing import Callable, Dict

import arviz as az
import pandas as pd

from .. import config
from ..data_prep.schema import (
    SUBGROUP_COLUMNS,
    SUMMARY_COLUMNS,
    TIMEPOINT_COLUMNS,
    records_to_frame,
)
from ..models.regression import BayesianFitter, ModelSpec, draws_frame
from . import figures
from .posterior_summary import (
    effect_at_time,
    summarize_effect,
    summarize_subgroup,
    summarize_timepoint,
)

log = logging.getLogger(__name__)


PRIMARY_SPEC = ModelSpec(
    name="primary outcome",
    response="primary_outcome",
    predictors=("treatment", "age", "sex"),
    sampler=config.PRIMARY_SAMPLER,
)

BIOMARKER_SPEC = ModelSpec(
    name="biomarker",
    response="biomarker_value",
    predictors=("treatment", config.TIME_COLUMN),
    interactions=(("treatment", config.TIME_COLUMN),),
    group="patient_id",
    random_slope=config.TIME_COLUMN,
    sampler=config.BIOMARKER_SAMPLER,
)

SUBGROUP_SPEC = ModelSpec(
    name="subgroup",
    response="primary_outcome",
    predictors=("treatment",),
    sampler=config.PRIMARY_SAMPLER,
)

SUBGROUPS: Dict[str, Callable[[pd.DataFrame], pd.Series]] = {
    "all": lambda df: pd.Series(True, index=df.index),
    "male": lambda df: df["sex"].astype(str) == "Male",
    "female": lambda df: df["sex"].astype(str) == "Female",
    "young": lambda df: df["age_group"].astype(str) == config.AGE_GROUPS[0],
    "middle": lambda df: df["age_group"].astype(str) == config.AGE_GROUPS[1],
    "old": lambda df: df["age_group"].astype(str) == config.AGE_GROUPS[2],
}


def _results_path(results_dir: Path, key: str) -> Path:
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)
    return results_dir / config.OUTPUT_FILES[key]


def _save_model(idata: az.InferenceData, path: Path) -> None:
    idata.to_netcdf(str(path))
    log.info(f"  Saved model: {path}")


# =============================================================================
# PRIMARY OUTCOME
# =============================================================================

def fit_primary_outcome_model(trial: pd.DataFrame, fitter: BayesianFitter, results_dir: Path) -> dict:
    """Fit the primary outcome model and write its summary, artifact and plot.

    Returns dict with keys: idata, draws, summary
    """
    log.info("=" * 70)
    log.info("Fitting Bayesian model for primary outcome")
    log.info("=" * 70)

    idata = fitter.fit(PRIMARY_SPEC, trial, config.PRIMARY_PRIORS, config.PRIMARY_SEED)
    draws = draws_frame(idata)
    effect = draws[config.TREATMENT_COEF]

    summary = summarize_effect("Treatment Effect", effect, threshold=config.CLINICAL_THRESHOLD)
    summary_df = records_to_frame([summary], SUMMARY_COLUMNS)

    _save_model(idata, _results_path(results_dir, "primary_model"))
    summary_df.to_csv(_results_path(results_dir, "primary_summary"), index=False)
    figures.plot_treatment_posterior(effect, _results_path(results_dir, "primary_plot"))

    log.info(f"  Treatment effect = {summary.mean:.3f}  95% CrI [{summary.lower_ci:.3f}, {summary.upper_ci:.3f}]")
    log.info(f"  P(effect > 0) = {summary.prob_positive:.4f}")
    log.info(f"  P(effect > {config.CLINICAL_THRESHOLD}) = {summary.prob_significant:.4f}")
    return {"idata": idata, "draws": draws, "summary": summary_df}


# =============================================================================
# BIOMARKER
# =============================================================================

def add_time_index(biomarker: pd.DataFrame) -> pd.DataFrame:
    """Numeric visit index 0, 1, 2 from the ordered timepoint."""
    out = biomarker.copy()
    timepoint = pd.Categorical(out["timepoint"].astype(str), categories=list(config.TIMEPOINTS), ordered=True)
    out[config.TIME_COLUMN] = timepoint.codes.astype(float)
    return out


def fit_biomarker_model(biomarker: pd.DataFrame, fitter: BayesianFitter, results_dir: Path) -> dict:
    """Fit the longitudinal biomarker model.

    Reports the treatment effect at Baseline (t=0) and at Week 12 (t=2).
    """
    log.info("=" * 70)
    log.info("Fitting Bayesian model for biomarker data")
    log.info("=" * 70)

    data = add_time_index(biomarker)
    idata = fitter.fit(BIOMARKER_SPEC, data, config.BIOMARKER_PRIORS, config.BIOMARKER_SEED)
    draws = draws_frame(idata)

    last = len(config.TIMEPOINTS) - 1
    rows = [
        summarize_timepoint(config.TIMEPOINTS[0], effect_at_time(draws, 0)),
        summarize_timepoint(config.TIMEPOINTS[last], effect_at_time(draws, last)),
    ]
    summary_df = records_to_frame(rows, TIMEPOINT_COLUMNS)

    _save_model(idata, _results_path(results_dir, "biomarker_model"))
    summary_df.to_csv(_results_path(results_dir, "biomarker_summary"), index=False)
    figures.plot_conditional_effects(draws, data, _results_path(results_dir, "biomarker_plot"))

    for r in rows:
        log.info(f"  {r.timepoint:<9}: effect = {r.mean_effect:.3f}  95% CrI [{r.lower_ci:.3f}, {r.upper_ci:.3f}]"
                 f"  P(>0) = {r.prob_positive:.4f}")
    return {"idata": idata, "draws": draws, "summary": summary_df}


# =============================================================================
# SUBGROUPS
# =============================================================================

def run_subgroup_analysis(trial: pd.DataFrame, fitter: BayesianFitter, results_dir: Path) -> pd.DataFrame:
    """Refit the treatment model within each subgroup.

    ``P_Value`` is the posterior mass P(effect <= 0).
    """
    log.info("=" * 70)
    log.info("Running subgroup analysis")
    log.info("=" * 70)

    results = []
    for name, select in SUBGROUPS.items():
        subset = trial[select(trial)].reset_index(drop=True)
        if len(subset) < config.MIN_SUBGROUP_SIZE:
            log.info(f"  Skipping subgroup {name} due to insufficient data (n={len(subset)})")
            continue

        idata = fitter.fit(SUBGROUP_SPEC, subset, config.PRIMARY_PRIORS, config.SUBGROUP_SEED)
        effect = draws_frame(idata)[config.TREATMENT_COEF]
        result = summarize_subgroup(name, len(subset), effect)
        results.append(result)
        log.info(f"  {name:<7} n={result.n:<4d} effect = {result.effect_size:.3f}"
                 f"  [{result.lower_ci:.3f}, {result.upper_ci:.3f}]  P(<=0) = {result.p_value:.4f}")

    results_df = records_to_frame(results, SUBGROUP_COLUMNS)
    results_df.to_csv(_results_path(results_dir, "subgroup_summary"), index=False)
    if not results_df.empty:
        figures.plot_subgroup_forest(results_df, _results_path(results_dir, "subgroup_plot"))
    return results_df

