"""
Figures for the trial analyses.

Posterior density, biomarker conditional effects and the subgroup forest
plot go to the results directory as PDF; the two exploratory plots of the
raw data go to the images directory as PNG.
"""

import logging
from pathlib import Path

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .. import config

log = logging.getLogger(__name__)

ARM_COLORS = {config.CONTROL: "C0", config.TREATMENT: "C1"}


def plot_treatment_posterior(samples, out_path: Path, parameter: str = config.TREATMENT_COEF) -> Path:
    """KDE of the treatment coefficient with its 95% interval."""
    arr = np.asarray(samples, dtype=float).reshape(1, -1)
    fig, ax = plt.subplots(figsize=(8, 6))
    az.plot_posterior(
        {parameter: arr},
        kind="kde",
        point_estimate="mean",
        hdi_prob=config.CREDIBLE_MASS,
        ref_val=0.0,
        ax=ax,
    )
    fig.suptitle("Posterior Distribution of Treatment Effect")
    ax.set_title("Primary Outcome | 95% Credible Interval")
    fig.tight_layout()
    fig.savefig(out_path, bbox_inches="tight")
    plt.close(fig)
    log.info(f"  Saved: {out_path}")
    return Path(out_path)


def conditional_effects(draws: pd.DataFrame, times: np.ndarray) -> pd.DataFrame:
    """Posterior mean and 95% band of the population-level expected
    biomarker per arm over ``times``."""
    b0 = draws["Intercept"].to_numpy()[:, None]
    b_arm = draws[config.TREATMENT_COEF].to_numpy()[:, None]
    b_time = draws[config.TIME_COLUMN].to_numpy()[:, None]
    b_int = draws[config.INTERACTION_COEF].to_numpy()[:, None]
    t = np.asarray(times, dtype=float)[None, :]

    tail = (1.0 - config.CREDIBLE_MASS) / 2.0
    rows = []
    for arm, is_treated in ((config.CONTROL, 0.0), (config.TREATMENT, 1.0)):
        mu = b0 + b_arm * is_treated + b_time * t + b_int * is_treated * t
        lo, hi = np.quantile(mu, [tail, 1.0 - tail], axis=0)
        rows.append(pd.DataFrame({
            "treatment": arm,
            "time": t.ravel(),
            "estimate": mu.mean(axis=0),
            "lower": lo,
            "upper": hi,
        }))
    return pd.concat(rows, ignore_index=True)


def plot_conditional_effects(draws: pd.DataFrame, biomarker: pd.DataFrame, out_path: Path) -> Path:
    n_times = len(config.TIMEPOINTS)
    grid = np.linspace(0, n_times - 1, 50)
    effects = conditional_effects(draws, grid)

    fig, ax = plt.subplots(figsize=(10, 6))
    obs_time = biomarker[config.TIME_COLUMN].to_numpy(dtype=float)
    obs_arm = biomarker["treatment"].astype(str).to_numpy()
    for arm, color in ARM_COLORS.items():
        sel = obs_arm == arm
        ax.scatter(obs_time[sel], biomarker["biomarker_value"].to_numpy()[sel],
                   color=color, alpha=0.3, s=12)
        band = effects[effects["treatment"] == arm]
        ax.plot(band["time"], band["estimate"], color=color, lw=2, label=arm)
        ax.fill_between(band["time"], band["lower"], band["upper"], color=color, alpha=0.2)

    ax.set_xticks(range(n_times))
    ax.set_xticklabels(config.TIMEPOINTS)
    ax.set_xlabel(config.TIME_COLUMN)
    ax.set_ylabel("biomarker_value")
    ax.set_title("Conditional effects: treatment x time")
    ax.legend(title="treatment")
    fig.tight_layout()
    fig.savefig(out_path, bbox_inches="tight")
    plt.close(fig)
    log.info(f"  Saved: {out_path}")
    return Path(out_path)


def plot_subgroup_forest(results: pd.DataFrame, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(8, 6))
    y = np.arange(len(results))
    est = results["Effect_Size"].to_numpy(dtype=float)
    xerr = np.vstack([est - results["Lower_CI"].to_numpy(dtype=float),
                      results["Upper_CI"].to_numpy(dtype=float) - est])
    ax.errorbar(est, y, xerr=xerr, fmt="o", color="k", markersize=7, capsize=4)
    ax.axvline(0.0, ls="--", color="grey")
    ax.set_yticks(y)
    ax.set_yticklabels(results["Subgroup"].tolist())
    ax.set_xlabel("Effect Size")
    ax.set_ylabel("Subgroup")
    ax.set_title("Treatment Effect by Subgroup")
    sns.despine(ax=ax)
    fig.tight_layout()
    fig.savefig(out_path, bbox_inches="tight")
    plt.close(fig)
    log.info(f"  Saved: {out_path}")
    return Path(out_path)


# =============================================================================
# EXPLORATORY (RAW DATA)
# =============================================================================

def plot_outcome_boxplot(trial: pd.DataFrame, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.boxplot(x="treatment", y="primary_outcome", data=trial, ax=ax)
    ax.set_title("Primary Outcome by Treatment")
    fig.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)
    log.info(f"  Saved: {out_path}")
    return Path(out_path)


def plot_biomarker_trajectory(biomarker: pd.DataFrame, out_path: Path) -> Path:
    fig, ax = plt.subplots(figsize=(10, 6))
    sns.lineplot(
        x="timepoint", y="biomarker_value", hue="treatment", data=biomarker,
        marker="o", err_style="bars", errorbar=("ci", 95), ax=ax,
    )
    ax.set_title("Biomarker Trajectory")
    fig.tight_layout()
    fig.savefig(out_path, dpi=300)
    plt.close(fig)
    log.info(f"  Saved: {out_path}")
    return Path(out_path)
