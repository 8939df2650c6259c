#!/usr/bin/env python3
"""
Bayesian analysis pipeline

Reads the trial and biomarker tables, fits the primary outcome, biomarker
and subgroup models and writes their summaries, NetCDF traces and figures.

Outputs (results dir):
- primary_outcome_summary.csv / primary_outcome_model.nc / primary_outcome_posterior.pdf
- biomarker_summary.csv / biomarker_model.nc / biomarker_conditional_effects.pdf
- subgroup_analysis.csv / subgroup_forest_plot.pdf
- manifest.json: run metadata

A failed fit is not retried; the exception ends the run.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict

from . import config
from .analysis.trial_models import (
    fit_biomarker_model,
    fit_primary_outcome_model,
    run_subgroup_analysis,
)
from .data_prep.schema import load_trial_tables
from .models.regression import BayesianFitter, PyMCRegressionFitter
from .pipeline_utils import configure_logging, library_versions, parse_analyses, write_run_manifest

log = logging.getLogger(__name__)

ANALYSES = ("primary", "biomarker", "subgroup")


def run(data_dir: Path, results_dir: Path, fitter: BayesianFitter | None = None,
        analyses: list[str] | None = None) -> Dict[str, Any]:
    """Run the selected analyses in order; returns their results by name."""
    fitter = fitter or PyMCRegressionFitter()
    selected = analyses or list(ANALYSES)
    results_dir = Path(results_dir)
    results_dir.mkdir(parents=True, exist_ok=True)

    trial, biomarker = load_trial_tables(Path(data_dir))
    log.info(f"Loaded {len(trial)} patients and {len(biomarker)} biomarker observations from {data_dir}")

    out: Dict[str, Any] = {}
    if "primary" in selected:
        out["primary"] = fit_primary_outcome_model(trial, fitter, results_dir)
    if "biomarker" in selected:
        out["biomarker"] = fit_biomarker_model(biomarker, fitter, results_dir)
    if "subgroup" in selected:
        out["subgroup"] = run_subgroup_analysis(trial, fitter, results_dir)
    out["row_counts"] = {"trial": len(trial), "biomarker": len(biomarker)}
    return out


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Bayesian treatment-effect analyses")
    parser.add_argument("--data-dir", type=str, default=str(config.DATA_DIR))
    parser.add_argument("--results-dir", type=str, default=str(config.RESULTS_DIR))
    parser.add_argument("--analyses", type=str, default="all",
                        help="Comma list of primary,biomarker,subgroup or 'all'")
    args = parser.parse_args(argv)

    configure_logging()
    analyses = parse_analyses(args.analyses, ANALYSES)

    log.info("Running Bayesian analyses for clinical trial data...")
    out = run(Path(args.data_dir), Path(args.results_dir), analyses=analyses)

    results_dir = Path(args.results_dir)
    write_run_manifest(results_dir, {
        "pipeline": "analysis",
        "cli": vars(args),
        "analyses": analyses,
        "inputs": [str(Path(args.data_dir) / config.TRIAL_DATA_FILE),
                   str(Path(args.data_dir) / config.BIOMARKER_DATA_FILE)],
        "outputs": sorted(p.name for p in results_dir.iterdir() if p.name != "manifest.json"),
        "row_counts": out["row_counts"],
        "versions": library_versions(),
    })
    log.info(f"Analysis complete. Results saved to {results_dir}/")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
