from .regression import (
    BayesianFitter,
    ModelSpec,
    PriorConfig,
    PyMCRegressionFitter,
    SamplerConfig,
    build_design_matrix,
    draws_frame,
)

__all__ = [
    "BayesianFitter",
    "ModelSpec",
    "PriorConfig",
    "PyMCRegressionFitter",
    "SamplerConfig",
    "build_design_matrix",
    "draws_frame",
]
