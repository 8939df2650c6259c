"""
Run configuration for the simulated trial analyses.

Labels, thresholds, priors, sampler settings and default file locations.
Command-line flags in the pipeline modules override only the directories,
the generator parameters and which analyses run.
"""

from pathlib import Path

import numpy as np

from .models.regression import PriorConfig, SamplerConfig

# ============================================================================
# LABELS
# ============================================================================

TREATMENT = "Treatment"
CONTROL = "Control"
# Generation order: treated block first
ARMS = (TREATMENT, CONTROL)
# Factor order used for modelling (reference level first)
ARM_LEVELS = (CONTROL, TREATMENT)

SEXES = ("Male", "Female")
SEX_PROBS = (0.55, 0.45)

TIMEPOINTS = ("Baseline", "Week 6", "Week 12")

AGE_GROUPS = ("<60", "60-70", ">70")
AGE_BINS = (-np.inf, 60, 70, np.inf)

# ============================================================================
# GENERATOR DEFAULTS
# ============================================================================

DEFAULT_N_PATIENTS = 200
DEFAULT_TREATMENT_EFFECT = 1.5
REFERENCE_TREATMENT_EFFECT = 1.7
DEFAULT_SEED = 42

# ============================================================================
# ANALYSIS
# ============================================================================

CREDIBLE_MASS = 0.95
CLINICAL_THRESHOLD = 1.0
MIN_SUBGROUP_SIZE = 10

TREATMENT_COEF = f"treatment{TREATMENT}"
TIME_COLUMN = "time_numeric"
INTERACTION_COEF = f"{TREATMENT_COEF}:{TIME_COLUMN}"

PRIMARY_SEED = 123
BIOMARKER_SEED = 456
SUBGROUP_SEED = PRIMARY_SEED

PRIMARY_PRIORS = PriorConfig(
    intercept_mu=5.0,
    intercept_sigma=5.0,
    coef_sigma=2.5,
    sigma_scale=1.0,
)
BIOMARKER_PRIORS = PriorConfig(
    intercept_mu=50.0,
    intercept_sigma=25.0,
    coef_sigma=10.0,
    sigma_scale=5.0,
    group_sd_scale=10.0,
    lkj_eta=1.0,
)

PRIMARY_SAMPLER = SamplerConfig(draws=1000, tune=1000, chains=4, target_accept=0.9)
BIOMARKER_SAMPLER = SamplerConfig(draws=500, tune=500, chains=2, target_accept=0.9)

# ============================================================================
# FILES
# ============================================================================

DATA_DIR = Path("data")
RESULTS_DIR = Path("results")
IMAGES_DIR = Path("images")

TRIAL_DATA_FILE = "trial_data.csv"
BIOMARKER_DATA_FILE = "biomarker_data.csv"

OUTPUT_FILES = {
    "primary_summary": "primary_outcome_summary.csv",
    "primary_model": "primary_outcome_model.nc",
    "primary_plot": "primary_outcome_posterior.pdf",
    "biomarker_summary": "biomarker_summary.csv",
    "biomarker_model": "biomarker_model.nc",
    "biomarker_plot": "biomarker_conditional_effects.pdf",
    "subgroup_summary": "subgroup_analysis.csv",
    "subgroup_plot": "subgroup_forest_plot.pdf",
    "boxplot": "primary_outcome_boxplot.png",
    "trajectory": "biomarker_trajectory.png",
}
