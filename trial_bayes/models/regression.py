"""
Bayesian linear regression on trial tables
==========================================

The summary code never talks to a sampler directly. It asks a
``BayesianFitter`` for an ``arviz.InferenceData`` and reads the posterior
back through :func:`draws_frame`. The default fitter builds a Gaussian
linear (mixed) model in PyMC and samples it with NUTS.

Coefficient naming follows treatment coding against the first category
level, e.g. ``treatmentTreatment``, ``sexMale`` and
``treatmentTreatment:time_numeric`` for an interaction.

Posterior layout returned by every fitter:

    Intercept  (chain, draw)
    beta       (chain, draw, coef)
    sigma      (chain, draw)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import arviz as az
import numpy as np
import pandas as pd
import pymc as pm

log = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION OBJECTS
# =============================================================================

@dataclass(frozen=True)
class PriorConfig:
    intercept_mu: float = 0.0
    intercept_sigma: float = 10.0
    coef_sigma: float = 2.5
    sigma_scale: float = 1.0
    # Only used when the model declares a grouping factor
    group_sd_scale: float = 5.0
    lkj_eta: float = 1.0


@dataclass(frozen=True)
class SamplerConfig:
    draws: int = 1000
    tune: int = 1000
    chains: int = 4
    target_accept: float = 0.9


@dataclass(frozen=True)
class ModelSpec:
    """Formula-like model description.

    ``response ~ predictors + interactions + (1 + random_slope | group)``
    """

    name: str
    response: str
    predictors: Tuple[str, ...]
    interactions: Tuple[Tuple[str, str], ...] = ()
    group: Optional[str] = None
    random_slope: Optional[str] = None
    sampler: SamplerConfig = field(default_factory=SamplerConfig)

    def formula(self) -> str:
        terms = list(self.predictors) + [f"{a}:{b}" for a, b in self.interactions]
        rhs = " + ".join(terms) if terms else "1"
        if self.group is not None:
            re_terms = f"1 + {self.random_slope}" if self.random_slope else "1"
            rhs += f" + ({re_terms} | {self.group})"
        return f"{self.response} ~ {rhs}"


class BayesianFitter(Protocol):
    def fit(self, spec: ModelSpec, data: pd.DataFrame, priors: PriorConfig,
            seed: int) -> az.InferenceData:
        ...


# =============================================================================
# DESIGN MATRIX
# =============================================================================

def _is_categorical(s: pd.Series) -> bool:
    return isinstance(s.dtype, pd.CategoricalDtype) or not pd.api.types.is_numeric_dtype(s)


def _encode_column(data: pd.DataFrame, col: str) -> pd.DataFrame:
    """Numeric passthrough or treatment-coded dummies for one column."""
    s = data[col]
    if not _is_categorical(s):
        return pd.DataFrame({col: pd.to_numeric(s).astype(float)}, index=data.index)
    if isinstance(s.dtype, pd.CategoricalDtype):
        levels = [str(c) for c in s.cat.categories]
    else:
        levels = sorted(str(v) for v in s.dropna().unique())
    values = s.astype(str)
    # Reference level is dropped
    return pd.DataFrame(
        {f"{col}{lvl}": (values == lvl).astype(float) for lvl in levels[1:]},
        index=data.index,
    )


def build_design_matrix(spec: ModelSpec, data: pd.DataFrame) -> pd.DataFrame:
    """Fixed-effects design matrix (without the intercept column)."""
    needed = [spec.response, *spec.predictors]
    needed += [c for pair in spec.interactions for c in pair]
    if spec.group is not None:
        needed.append(spec.group)
    if spec.random_slope is not None:
        needed.append(spec.random_slope)
    missing = sorted({c for c in needed if c not in data.columns})
    if missing:
        raise ValueError(f"{spec.name}: data is missing columns {missing}")
    if data.empty:
        raise ValueError(f"{spec.name}: cannot fit a model to an empty table")

    blocks: List[pd.DataFrame] = [_encode_column(data, c) for c in spec.predictors]
    for a, b in spec.interactions:
        left = _encode_column(data, a)
        right = _encode_column(data, b)
        inter = {
            f"{lc}:{rc}": left[lc] * right[rc]
            for lc in left.columns for rc in right.columns
        }
        blocks.append(pd.DataFrame(inter, index=data.index))
    X = pd.concat(blocks, axis=1) if blocks else pd.DataFrame(index=data.index)
    return X.loc[:, ~X.columns.duplicated()]


# =============================================================================
# PYMC FITTER
# =============================================================================

class PyMCRegressionFitter:
    """Gaussian linear model, optionally with correlated random intercept/slope."""

    def build_model(self, spec: ModelSpec, data: pd.DataFrame, priors: PriorConfig) -> pm.Model:
        X = build_design_matrix(spec, data)
        y = pd.to_numeric(data[spec.response]).to_numpy(dtype=float)
        coords: Dict[str, list] = {"coef": list(X.columns), "obs": np.arange(len(y))}

        group_idx = None
        if spec.group is not None:
            group_idx, group_levels = pd.factorize(data[spec.group], sort=True)
            coords["group"] = [str(g) for g in group_levels]
            coords["effect"] = ["Intercept", spec.random_slope] if spec.random_slope else ["Intercept"]

        with pm.Model(coords=coords) as model:
            X_data = pm.Data("X", X.to_numpy(dtype=float), dims=("obs", "coef"))

            intercept = pm.Normal("Intercept", mu=priors.intercept_mu, sigma=priors.intercept_sigma)
            beta = pm.Normal("beta", mu=0.0, sigma=priors.coef_sigma, dims="coef")
            sigma = pm.Exponential("sigma", lam=1.0 / priors.sigma_scale)

            mu = intercept + pm.math.dot(X_data, beta)

            if group_idx is not None:
                n_effects = len(coords["effect"])
                if n_effects > 1:
                    chol, _, _ = pm.LKJCholeskyCov(
                        "group_chol",
                        n=n_effects,
                        eta=priors.lkj_eta,
                        sd_dist=pm.HalfNormal.dist(sigma=priors.group_sd_scale, shape=n_effects),
                        compute_corr=True,
                    )
                    z = pm.Normal("group_z", mu=0.0, sigma=1.0, dims=("group", "effect"))
                    group_effects = pm.Deterministic(
                        "group_effects", pm.math.dot(z, chol.T), dims=("group", "effect")
                    )
                    slope = pd.to_numeric(data[spec.random_slope]).to_numpy(dtype=float)
                    mu = mu + group_effects[group_idx, 0] + group_effects[group_idx, 1] * slope
                else:
                    group_sd = pm.HalfNormal("group_sd", sigma=priors.group_sd_scale)
                    z = pm.Normal("group_z", mu=0.0, sigma=1.0, dims="group")
                    mu = mu + (z * group_sd)[group_idx]

            pm.Normal(spec.response, mu=mu, sigma=sigma, observed=y, dims="obs")

        return model

    def fit(self, spec: ModelSpec, data: pd.DataFrame, priors: PriorConfig,
            seed: int) -> az.InferenceData:
        log.info(f"Fitting {spec.name}: {spec.formula()}  (n={len(data)})")
        model = self.build_model(spec, data, priors)
        sc = spec.sampler
        log.info(f"  Sampling: {sc.draws} draws x {sc.chains} chains (tune={sc.tune}, seed={seed})")
        with model:
            idata = pm.sample(
                draws=sc.draws,
                tune=sc.tune,
                chains=sc.chains,
                cores=1,
                target_accept=sc.target_accept,
                random_seed=seed,
                progressbar=False,
                return_inferencedata=True,
            )
        log_convergence(idata, spec.name)
        return idata


def log_convergence(idata: az.InferenceData, label: str, rhat_max: float = 1.01) -> None:
    """Warn about poorly mixed parameters; never raises."""
    summary = az.summary(idata, var_names=["Intercept", "beta", "sigma"], kind="diagnostics")
    bad = summary[summary["r_hat"] > rhat_max]
    if not bad.empty:
        log.warning(f"  {label}: {len(bad)} parameter(s) with R-hat > {rhat_max}: {list(bad.index)}")
    else:
        log.info(f"  {label}: all R-hat <= {rhat_max}, min ESS(bulk) = {summary['ess_bulk'].min():.0f}")


# =============================================================================
# POSTERIOR ACCESS
# =============================================================================

def draws_frame(idata: az.InferenceData) -> pd.DataFrame:
    """Flatten (chain, draw) posterior draws into one column per coefficient."""
    post = idata.posterior
    frame: Dict[str, np.ndarray] = {"Intercept": np.asarray(post["Intercept"].values).reshape(-1)}
    beta = np.asarray(post["beta"].values)
    names = [str(c) for c in post["beta"].coords["coef"].values]
    flat = beta.reshape(-1, len(names))
    for j, name in enumerate(names):
        frame[name] = flat[:, j]
    if "sigma" in post:
        frame["sigma"] = np.asarray(post["sigma"].values).reshape(-1)
    return pd.DataFrame(frame)
