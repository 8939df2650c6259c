"""Tests for reducing posterior draws to summary numbers."""

import numpy as np
import pandas as pd
import pytest

from trial_bayes import config
from trial_bayes.analysis.posterior_summary import (
    credible_interval,
    effect_at_time,
    prob_greater,
    summarize_effect,
    summarize_subgroup,
    summarize_timepoint,
    tail_probability,
)


def test_credible_interval_is_equal_tailed():
    samples = np.arange(1001) / 1000.0
    lo, hi = credible_interval(samples)
    assert lo == pytest.approx(0.025)
    assert hi == pytest.approx(0.975)


def test_prob_greater_is_strict():
    samples = [0.0, 0.5, 1.0, 1.5]
    assert prob_greater(samples, 0.0) == 0.75
    assert prob_greater(samples, 1.0) == 0.25


def test_tail_probability_counts_zero():
    assert tail_probability([-1.0, 0.0, 1.0, 2.0]) == 0.5


def test_effect_at_time_combines_main_and_interaction():
    draws = pd.DataFrame({
        config.TREATMENT_COEF: [1.0, 2.0],
        config.INTERACTION_COEF: [0.5, 1.5],
    })
    np.testing.assert_allclose(effect_at_time(draws, 0), [1.0, 2.0])
    np.testing.assert_allclose(effect_at_time(draws, 2), [2.0, 5.0])


def test_empty_draws_rejected():
    with pytest.raises(ValueError):
        summarize_effect("Treatment Effect", [])
    with pytest.raises(ValueError):
        credible_interval(np.array([]))


def test_summaries_from_normal_draws():
    draws = np.random.default_rng(0).normal(1.5, 0.25, 8000)
    effect = summarize_effect("Treatment Effect", draws)
    assert effect.mean == pytest.approx(1.5, abs=0.02)
    assert effect.lower_ci < effect.mean < effect.upper_ci
    assert effect.prob_positive == 1.0
    assert 0.95 < effect.prob_significant < 1.0

    visit = summarize_timepoint("Week 12", draws)
    assert visit.as_row()["Timepoint"] == "Week 12"

    group = summarize_subgroup("old", 42, -draws)
    assert group.n == 42
    assert group.p_value == 1.0
