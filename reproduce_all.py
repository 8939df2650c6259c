#!/usr/bin/env python3
"""
Reproducibility Suite: Simulated Trial Analysis
================================================

Regenerates the synthetic trial (n=200, effect 1.7, seed 42), runs the three
Bayesian analyses and checks the produced files:

  - patient / biomarker row counts (N and 3N)
  - visits cycle Baseline, Week 6, Week 12 for every patient
  - age groups partition the age range
  - every credible interval has lower <= upper
  - no subgroup row with N < 10

Pipeline failures are not caught; a failed fit ends the run.

Usage:
    python reproduce_all.py
"""

import logging
import sys
import time
from collections import Counter
from datetime import datetime
from pathlib import Path

import pandas as pd

from trial_bayes import config
from trial_bayes import pipeline_analysis, pipeline_generate
from trial_bayes.data_prep.schema import observations_from_frame, patients_from_frame
from trial_bayes.pipeline_utils import configure_logging

ROOT = Path(__file__).resolve().parent
DATA_DIR = ROOT / config.DATA_DIR
RESULTS_DIR = ROOT / config.RESULTS_DIR
IMAGES_DIR = ROOT / config.IMAGES_DIR
LOG_PATH = RESULTS_DIR / "reproducibility_log.txt"

N_PATIENTS = config.DEFAULT_N_PATIENTS

log = logging.getLogger(__name__)


class Validator:
    def __init__(self):
        self.checks = []

    def check(self, name, condition, detail=""):
        status = "PASS" if condition else "FAIL"
        self.checks.append((name, status, detail))
        sym = "✓" if condition else "✗"
        log.info(f"  {sym} {name}: {status}  {detail}")
        return condition

    def summary(self):
        passed = sum(1 for _, s, _ in self.checks if s == "PASS")
        return passed, len(self.checks)


def step1_generate(v):
    log.info("=" * 70)
    log.info("STEP 1: Synthetic trial data")
    log.info("=" * 70)
    out = pipeline_generate.run(
        N_PATIENTS, config.REFERENCE_TREATMENT_EFFECT, config.DEFAULT_SEED, DATA_DIR, IMAGES_DIR
    )
    trial, biomarker = out["trial"], out["biomarker"]

    arms = trial["treatment"].astype(str).value_counts()
    v.check("Patient rows = N", len(trial) == N_PATIENTS, f"{len(trial)}")
    v.check("Biomarker rows = 3N", len(biomarker) == 3 * N_PATIENTS, f"{len(biomarker)}")
    v.check("Arms 100/100",
            arms.get(config.TREATMENT, 0) == N_PATIENTS // 2 and arms.get(config.CONTROL, 0) == N_PATIENTS // 2,
            arms.to_dict())

    visits = observations_from_frame(biomarker)
    per_patient = Counter(o.patient_id for o in visits)
    v.check("3 visits per patient", set(per_patient.values()) == {3})
    expected = list(config.TIMEPOINTS) * N_PATIENTS
    v.check("Visit order cycles Baseline, Week 6, Week 12", [o.timepoint for o in visits] == expected)

    patients = patients_from_frame(trial)
    v.check("Age groups match cut points",
            all(p.age_group == g for p, g in zip(patients, trial["age_group"].astype(str))))

    again = pipeline_generate.run(
        N_PATIENTS, config.REFERENCE_TREATMENT_EFFECT, config.DEFAULT_SEED, ROOT / "data_rerun"
    )
    same = (
        (ROOT / "data_rerun" / config.TRIAL_DATA_FILE).read_bytes()
        == (DATA_DIR / config.TRIAL_DATA_FILE).read_bytes()
        and (ROOT / "data_rerun" / config.BIOMARKER_DATA_FILE).read_bytes()
        == (DATA_DIR / config.BIOMARKER_DATA_FILE).read_bytes()
    )
    v.check("Seeded rerun is byte-identical", same and len(again["trial"]) == N_PATIENTS)


def step2_analysis(v):
    log.info("")
    log.info("=" * 70)
    log.info("STEP 2: Bayesian analyses")
    log.info("=" * 70)
    pipeline_analysis.run(DATA_DIR, RESULTS_DIR)

    for key in ("primary_summary", "biomarker_summary", "subgroup_summary"):
        df = pd.read_csv(RESULTS_DIR / config.OUTPUT_FILES[key])
        v.check(f"{key}: lower <= upper", bool((df["Lower_CI"] <= df["Upper_CI"]).all()), f"{len(df)} rows")

    subgroups = pd.read_csv(RESULTS_DIR / config.OUTPUT_FILES["subgroup_summary"])
    v.check("No subgroup below minimum size", bool((subgroups["N"] >= config.MIN_SUBGROUP_SIZE).all()))
    v.check("All six subgroups evaluated", len(subgroups) == 6, ", ".join(subgroups["Subgroup"]))

    for key in ("primary_model", "biomarker_model", "primary_plot", "biomarker_plot", "subgroup_plot"):
        path = RESULTS_DIR / config.OUTPUT_FILES[key]
        v.check(f"{path.name} written", path.exists())


def main():
    configure_logging(LOG_PATH)
    start = time.time()
    log.info("=" * 70)
    log.info("REPRODUCIBILITY SUITE: SIMULATED TRIAL ANALYSIS")
    log.info(f"Timestamp: {datetime.now().isoformat()}")
    log.info(f"Data:    {DATA_DIR}")
    log.info(f"Results: {RESULTS_DIR}")
    log.info(f"Log:     {LOG_PATH}")
    log.info("=" * 70)

    v = Validator()
    step1_generate(v)
    step2_analysis(v)

    elapsed = time.time() - start
    passed, total = v.summary()

    log.info("")
    log.info("=" * 70)
    log.info("REPRODUCIBILITY SUMMARY")
    log.info("=" * 70)
    log.info(f"Validation: {passed}/{total} checks passed")
    log.info(f"Elapsed:    {elapsed:.1f}s")

    if passed == total:
        log.info("\n★ ALL CHECKS PASSED")
        sys.exit(0)
    else:
        log.info("\n⚠ SOME CHECKS FAILED, review above")
        sys.exit(1)


if __name__ == "__main__":
    main()
