from .synthetic_trial import generate_trial_data, generate_biomarker_data, describe_trial, compare_arms
from .schema import load_trial_tables, validate_patient_table, validate_biomarker_table

__all__ = [
    "generate_trial_data",
    "generate_biomarker_data",
    "describe_trial",
    "compare_arms",
    "load_trial_tables",
    "validate_patient_table",
    "validate_biomarker_table",
]
