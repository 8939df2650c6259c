"""
Synthetic Trial Data Generator

Patient-level table for a two-arm trial plus a longitudinal biomarker table
with three visits per patient.

Patient model:
  primary   = baseline_risk + effect_arm + 0.05 (age - 65) + 0.5 [Female] + e1
  secondary = 0.6 primary + e2

Biomarker model (visit index t = 0, 1, 2):
  value = 50 + b0_i + 5 t + 3 t [Treatment] + b1_i t + e3

Every draw comes from the caller's ``numpy.random.Generator``; nothing here
touches global random state.
"""

import logging
from typing import Dict

import numpy as np
import pandas as pd
from scipy import stats

from .. import config
from .schema import (
    BIOMARKER_COLUMNS,
    assign_age_group,
    validate_biomarker_table,
    validate_patient_table,
)

log = logging.getLogger(__name__)

AGE_MEAN, AGE_SD = 65.0, 10.0
RISK_MEAN, RISK_SD = 5.0, 1.0
EFFECT_NOISE_SD = 0.5
AGE_SLOPE = 0.05
FEMALE_SHIFT = 0.5
OUTCOME_NOISE_SD = 1.0
SECONDARY_SLOPE = 0.6
SECONDARY_NOISE_SD = 0.8

BIOMARKER_BASE = 50.0
INTERCEPT_SD = 5.0
SLOPE_SD = 1.0
TIME_EFFECT = 5.0
TREATMENT_SLOPE = 3.0
BIOMARKER_NOISE_SD = 2.0


def generate_trial_data(
    n_patients: int = config.DEFAULT_N_PATIENTS,
    treatment_effect: float = config.DEFAULT_TREATMENT_EFFECT,
    *,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """
    Generate synthetic patient-level trial data.

    Parameters
    ----------
    n_patients : int
        Number of patients. The first ``n_patients // 2`` are treated; an
        odd count leaves the extra patient in the Control arm.
    treatment_effect : float
        Mean shift of the primary outcome in the treated arm.
    rng : numpy.random.Generator
        Source of all randomness.

    Returns
    -------
    pandas.DataFrame
        Validated patient table (see ``schema.PATIENT_COLUMNS``).
    """
    if n_patients < 0:
        raise ValueError(f"n_patients must be >= 0, got {n_patients}")

    n_treated = n_patients // 2
    n_control = n_patients - n_treated
    treatment = np.array([config.TREATMENT] * n_treated + [config.CONTROL] * n_control, dtype=object)
    treated = treatment == config.TREATMENT

    age = rng.normal(AGE_MEAN, AGE_SD, n_patients).round().astype(int)
    sex = rng.choice(np.array(config.SEXES, dtype=object), size=n_patients, p=list(config.SEX_PROBS))
    baseline_risk = rng.normal(RISK_MEAN, RISK_SD, n_patients)

    # Arm-specific effects, placed by arm mask rather than position
    effect = np.empty(n_patients, dtype=float)
    effect[treated] = treatment_effect + rng.normal(0, EFFECT_NOISE_SD, n_treated)
    effect[~treated] = rng.normal(0, EFFECT_NOISE_SD, n_control)

    primary_outcome = (
        baseline_risk
        + effect
        + AGE_SLOPE * (age - AGE_MEAN)
        + FEMALE_SHIFT * (sex == "Female")
        + rng.normal(0, OUTCOME_NOISE_SD, n_patients)
    )
    secondary_outcome = SECONDARY_SLOPE * primary_outcome + rng.normal(0, SECONDARY_NOISE_SD, n_patients)

    trial = pd.DataFrame({
        "patient_id": np.arange(1, n_patients + 1, dtype=np.int64),
        "treatment": treatment,
        "age": age.astype(np.int64),
        "sex": sex,
        "baseline_risk": baseline_risk,
        "primary_outcome": primary_outcome.astype(float),
        "secondary_outcome": secondary_outcome.astype(float),
    })
    trial["age_group"] = assign_age_group(trial["age"])
    return validate_patient_table(trial)


def generate_biomarker_data(
    trial_data: pd.DataFrame,
    *,
    rng: np.random.Generator,
    n_timepoints: int = len(config.TIMEPOINTS),
) -> pd.DataFrame:
    """
    Generate longitudinal biomarker data for the patients in ``trial_data``.

    Each patient gets one random intercept and one random slope, reused at
    every visit, and fresh measurement noise per visit. Rows are ordered by
    patient, then visit.
    """
    if not 0 <= n_timepoints <= len(config.TIMEPOINTS):
        raise ValueError(f"n_timepoints must be between 0 and {len(config.TIMEPOINTS)}, got {n_timepoints}")

    n_patients = len(trial_data)
    intercepts = rng.normal(0, INTERCEPT_SD, n_patients)
    slopes = rng.normal(0, SLOPE_SD, n_patients)
    noise = rng.normal(0, BIOMARKER_NOISE_SD, (n_patients, n_timepoints))

    t = np.arange(n_timepoints, dtype=float)
    arms = trial_data["treatment"].astype(str).to_numpy()
    treated = (arms == config.TREATMENT).astype(float)

    values = (
        BIOMARKER_BASE
        + intercepts[:, None]
        + TIME_EFFECT * t[None, :]
        + TREATMENT_SLOPE * treated[:, None] * t[None, :]
        + slopes[:, None] * t[None, :]
        + noise
    )

    biomarker = pd.DataFrame({
        "patient_id": np.repeat(trial_data["patient_id"].to_numpy(dtype=np.int64), n_timepoints),
        "treatment": np.repeat(arms, n_timepoints),
        "timepoint": np.tile(np.array(config.TIMEPOINTS[:n_timepoints], dtype=object), n_patients),
        "biomarker_value": values.reshape(-1),
    }, columns=BIOMARKER_COLUMNS)
    return validate_biomarker_table(biomarker, patients=trial_data)


# =============================================================================
# DESCRIPTIVE SUMMARIES
# =============================================================================

def describe_trial(trial: pd.DataFrame, biomarker: pd.DataFrame) -> Dict[str, pd.DataFrame]:
    """Arm-level outcome stats and arm x visit biomarker stats."""
    outcomes = (
        trial.groupby("treatment", observed=True)[["primary_outcome", "secondary_outcome"]]
        .agg(["mean", "std"])
    )
    trajectory = (
        biomarker.groupby(["treatment", "timepoint"], observed=True)["biomarker_value"]
        .agg(["mean", "std"])
    )
    return {"outcomes": outcomes, "biomarker": trajectory}


def compare_arms(trial: pd.DataFrame) -> Dict[str, float]:
    """Welch t-test of the primary outcome, Treatment vs Control."""
    arms = trial["treatment"].astype(str)
    treated = trial.loc[arms == config.TREATMENT, "primary_outcome"].to_numpy()
    control = trial.loc[arms == config.CONTROL, "primary_outcome"].to_numpy()
    if len(treated) < 2 or len(control) < 2:
        return {"mean_difference": np.nan, "t_stat": np.nan, "p_value": np.nan}
    t_stat, p_val = stats.ttest_ind(treated, control, equal_var=False)
    return {
        "mean_difference": float(treated.mean() - control.mean()),
        "t_stat": float(t_stat),
        "p_value": float(p_val),
    }
