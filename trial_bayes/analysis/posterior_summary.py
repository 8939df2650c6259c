"""
Reduce posterior draws to the numbers reported in the summary tables.
"""

from typing import Tuple

import numpy as np
import pandas as pd

from .. import config
from ..data_prep.schema import PosteriorSummary, SubgroupResult, TimepointEffect


def _as_samples(samples) -> np.ndarray:
    arr = np.asarray(samples, dtype=float).reshape(-1)
    if arr.size == 0:
        raise ValueError("posterior summary requires at least one draw")
    return arr


def credible_interval(samples, mass: float = config.CREDIBLE_MASS) -> Tuple[float, float]:
    """Equal-tailed interval (2.5/97.5 percentiles for mass=0.95)."""
    arr = _as_samples(samples)
    tail = (1.0 - mass) / 2.0
    lo, hi = np.quantile(arr, [tail, 1.0 - tail])
    return float(lo), float(hi)


def prob_greater(samples, threshold: float = 0.0) -> float:
    return float(np.mean(_as_samples(samples) > threshold))


def tail_probability(samples) -> float:
    """One-sided posterior mass at or below zero, P(effect <= 0)."""
    return float(np.mean(_as_samples(samples) <= 0.0))


def effect_at_time(draws: pd.DataFrame, time_index: int,
                   main: str = config.TREATMENT_COEF,
                   interaction: str = config.INTERACTION_COEF) -> np.ndarray:
    """Treatment effect at a visit: b_treat + t * b_interaction."""
    return draws[main].to_numpy() + time_index * draws[interaction].to_numpy()


def summarize_effect(parameter: str, samples,
                     threshold: float = config.CLINICAL_THRESHOLD) -> PosteriorSummary:
    arr = _as_samples(samples)
    lo, hi = credible_interval(arr)
    return PosteriorSummary(
        parameter=parameter,
        mean=float(arr.mean()),
        lower_ci=lo,
        upper_ci=hi,
        prob_positive=prob_greater(arr, 0.0),
        prob_significant=prob_greater(arr, threshold),
    )


def summarize_timepoint(timepoint: str, samples) -> TimepointEffect:
    arr = _as_samples(samples)
    lo, hi = credible_interval(arr)
    return TimepointEffect(
        timepoint=timepoint,
        mean_effect=float(arr.mean()),
        lower_ci=lo,
        upper_ci=hi,
        prob_positive=prob_greater(arr, 0.0),
    )


def summarize_subgroup(subgroup: str, n: int, samples) -> SubgroupResult:
    arr = _as_samples(samples)
    lo, hi = credible_interval(arr)
    return SubgroupResult(
        subgroup=subgroup,
        n=int(n),
        effect_size=float(arr.mean()),
        lower_ci=lo,
        upper_ci=hi,
        p_value=tail_probability(arr),
    )
