"""Shared fixtures: seeded trial tables and a stub posterior fitter."""

import matplotlib

matplotlib.use("Agg")

import arviz as az  # noqa: E402
import numpy as np  # noqa: E402
import pytest  # noqa: E402

from trial_bayes.data_prep.synthetic_trial import (  # noqa: E402
    generate_biomarker_data,
    generate_trial_data,
)
from trial_bayes.models.regression import build_design_matrix  # noqa: E402


class StubFitter:
    """Deterministic stand-in for the PyMC fitter.

    Every coefficient gets Normal(loc, scale) draws from a generator seeded
    with the fit's seed; ``locs`` overrides the centre per coefficient.
    """

    def __init__(self, locs=None, scale=0.3, n_draws=400):
        self.locs = dict(locs or {})
        self.scale = scale
        self.n_draws = n_draws
        self.calls = []

    def fit(self, spec, data, priors, seed):
        names = list(build_design_matrix(spec, data).columns)
        self.calls.append({"spec": spec, "n": len(data), "seed": seed, "coefs": names})
        rng = np.random.default_rng(seed)
        shape = (1, self.n_draws)
        beta = np.stack(
            [rng.normal(self.locs.get(name, 1.0), self.scale, shape) for name in names], axis=-1
        )
        return az.from_dict(
            posterior={
                "Intercept": rng.normal(priors.intercept_mu, 0.1, shape),
                "beta": beta,
                "sigma": np.abs(rng.normal(1.0, 0.05, shape)),
            },
            coords={"coef": names},
            dims={"beta": ["coef"]},
        )


@pytest.fixture
def stub_fitter():
    return StubFitter()


@pytest.fixture(scope="session")
def reference_tables():
    rng = np.random.default_rng(42)
    trial = generate_trial_data(n_patients=200, treatment_effect=1.7, rng=rng)
    biomarker = generate_biomarker_data(trial, rng=rng)
    return trial, biomarker
