#!/usr/bin/env python3
"""
Synthetic trial data pipeline

Generates the patient table and the longitudinal biomarker table from a
seeded generator and writes them as CSV.

Outputs (data dir):
- trial_data.csv: one row per patient
- biomarker_data.csv: one row per patient and visit
- manifest.json: run metadata (args, outputs, row counts, versions)

Outputs (images dir, unless --no-plots):
- primary_outcome_boxplot.png
- biomarker_trajectory.png
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Any, Dict

import numpy as np

from . import config
from .data_prep.synthetic_trial import (
    compare_arms,
    describe_trial,
    generate_biomarker_data,
    generate_trial_data,
)
from .pipeline_utils import configure_logging, library_versions, write_run_manifest

log = logging.getLogger(__name__)


def run(n_patients: int, treatment_effect: float, seed: int, data_dir: Path,
        images_dir: Path | None = None) -> Dict[str, Any]:
    """Generate, write and summarize one synthetic trial.

    Returns dict with keys: trial, biomarker, paths
    """
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    rng = np.random.default_rng(seed)

    log.info("=" * 70)
    log.info(f"Generating trial data: n={n_patients}, effect={treatment_effect}, seed={seed}")
    log.info("=" * 70)

    trial = generate_trial_data(n_patients=n_patients, treatment_effect=treatment_effect, rng=rng)
    biomarker = generate_biomarker_data(trial, rng=rng)

    trial_path = data_dir / config.TRIAL_DATA_FILE
    biomarker_path = data_dir / config.BIOMARKER_DATA_FILE
    trial.to_csv(trial_path, index=False)
    biomarker.to_csv(biomarker_path, index=False)
    log.info(f"  Saved: {trial_path} ({len(trial)} rows)")
    log.info(f"  Saved: {biomarker_path} ({len(biomarker)} rows)")

    paths = {"trial": trial_path, "biomarker": biomarker_path}

    if len(trial):
        summaries = describe_trial(trial, biomarker)
        log.info("Trial data summary:\n%s", summaries["outcomes"].round(3).to_string())
        log.info("Biomarker data summary:\n%s", summaries["biomarker"].round(3).to_string())
        test = compare_arms(trial)
        log.info(f"  Welch t-test (primary outcome): diff = {test['mean_difference']:.3f}, "
                 f"t = {test['t_stat']:.2f}, p = {test['p_value']:.2e}")

        if images_dir is not None:
            from .analysis import figures

            images_dir = Path(images_dir)
            images_dir.mkdir(parents=True, exist_ok=True)
            paths["boxplot"] = figures.plot_outcome_boxplot(trial, images_dir / config.OUTPUT_FILES["boxplot"])
            paths["trajectory"] = figures.plot_biomarker_trajectory(
                biomarker, images_dir / config.OUTPUT_FILES["trajectory"]
            )

    return {"trial": trial, "biomarker": biomarker, "paths": paths}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Generate synthetic trial and biomarker data")
    parser.add_argument("--n-patients", type=int, default=config.DEFAULT_N_PATIENTS)
    parser.add_argument("--treatment-effect", type=float, default=config.REFERENCE_TREATMENT_EFFECT)
    parser.add_argument("--seed", type=int, default=config.DEFAULT_SEED)
    parser.add_argument("--data-dir", type=str, default=str(config.DATA_DIR))
    parser.add_argument("--images-dir", type=str, default=str(config.IMAGES_DIR))
    parser.add_argument("--no-plots", action="store_true", help="Skip the exploratory figures")
    args = parser.parse_args(argv)

    configure_logging()

    images_dir = None if args.no_plots else Path(args.images_dir)
    out = run(args.n_patients, args.treatment_effect, args.seed, Path(args.data_dir), images_dir)

    write_run_manifest(Path(args.data_dir), {
        "pipeline": "generate",
        "cli": vars(args),
        "outputs": {k: str(v) for k, v in out["paths"].items()},
        "row_counts": {"trial": len(out["trial"]), "biomarker": len(out["biomarker"])},
        "versions": library_versions(),
    })
    log.info("Data preparation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
