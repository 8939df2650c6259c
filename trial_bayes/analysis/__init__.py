from .trial_models import fit_primary_outcome_model, fit_biomarker_model, run_subgroup_analysis

__all__ = [
    "fit_primary_outcome_model",
    "fit_biomarker_model",
    "run_subgroup_analysis",
]
