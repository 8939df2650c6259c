"""
Typed records and table schemas for the trial data.

The pipelines pass pandas DataFrames around; every table is pushed through
``validate_patient_table`` / ``validate_biomarker_table`` when it is created
or read back from disk, so schema drift fails loudly instead of surfacing as
a KeyError deep inside a model fit.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd

from .. import config

PATIENT_COLUMNS = [
    "patient_id", "treatment", "age", "sex",
    "baseline_risk", "primary_outcome", "secondary_outcome", "age_group",
]
BIOMARKER_COLUMNS = ["patient_id", "treatment", "timepoint", "biomarker_value"]


# -----------------------------------------------------------------------------
# Records
# -----------------------------------------------------------------------------

def age_group_for(age: int) -> str:
    if age <= config.AGE_BINS[1]:
        return config.AGE_GROUPS[0]
    if age <= config.AGE_BINS[2]:
        return config.AGE_GROUPS[1]
    return config.AGE_GROUPS[2]


@dataclass(frozen=True)
class PatientRecord:
    patient_id: int
    treatment: str
    age: int
    sex: str
    baseline_risk: float
    primary_outcome: float
    secondary_outcome: float

    def __post_init__(self):
        if self.treatment not in config.ARMS:
            raise ValueError(f"patient {self.patient_id}: unknown arm {self.treatment!r}")
        if self.sex not in config.SEXES:
            raise ValueError(f"patient {self.patient_id}: unknown sex {self.sex!r}")

    @property
    def age_group(self) -> str:
        return age_group_for(self.age)

    def as_row(self) -> dict:
        row = asdict(self)
        row["age_group"] = self.age_group
        return row


@dataclass(frozen=True)
class BiomarkerObservation:
    patient_id: int
    treatment: str
    timepoint: str
    biomarker_value: float

    def __post_init__(self):
        if self.treatment not in config.ARMS:
            raise ValueError(f"patient {self.patient_id}: unknown arm {self.treatment!r}")
        if self.timepoint not in config.TIMEPOINTS:
            raise ValueError(f"patient {self.patient_id}: unknown timepoint {self.timepoint!r}")

    @property
    def time_index(self) -> int:
        return config.TIMEPOINTS.index(self.timepoint)

    def as_row(self) -> dict:
        return asdict(self)


def _check_interval(label: str, lower: float, upper: float) -> None:
    if lower > upper:
        raise ValueError(f"{label}: credible interval lower bound {lower} exceeds upper bound {upper}")


@dataclass(frozen=True)
class PosteriorSummary:
    parameter: str
    mean: float
    lower_ci: float
    upper_ci: float
    prob_positive: float
    prob_significant: float

    def __post_init__(self):
        _check_interval(self.parameter, self.lower_ci, self.upper_ci)

    def as_row(self) -> dict:
        return {
            "Parameter": self.parameter,
            "Mean": self.mean,
            "Lower_CI": self.lower_ci,
            "Upper_CI": self.upper_ci,
            "Prob_Positive": self.prob_positive,
            "Prob_Significant": self.prob_significant,
        }


@dataclass(frozen=True)
class TimepointEffect:
    timepoint: str
    mean_effect: float
    lower_ci: float
    upper_ci: float
    prob_positive: float

    def __post_init__(self):
        _check_interval(self.timepoint, self.lower_ci, self.upper_ci)

    def as_row(self) -> dict:
        return {
            "Timepoint": self.timepoint,
            "Mean_Effect": self.mean_effect,
            "Lower_CI": self.lower_ci,
            "Upper_CI": self.upper_ci,
            "Prob_Positive": self.prob_positive,
        }


@dataclass(frozen=True)
class SubgroupResult:
    """Treatment effect within one subgroup.

    ``p_value`` is the posterior tail mass P(effect <= 0), not a
    frequentist p-value.
    """

    subgroup: str
    n: int
    effect_size: float
    lower_ci: float
    upper_ci: float
    p_value: float

    def __post_init__(self):
        _check_interval(self.subgroup, self.lower_ci, self.upper_ci)

    def as_row(self) -> dict:
        return {
            "Subgroup": self.subgroup,
            "N": self.n,
            "Effect_Size": self.effect_size,
            "Lower_CI": self.lower_ci,
            "Upper_CI": self.upper_ci,
            "P_Value": self.p_value,
        }


SUMMARY_COLUMNS = ["Parameter", "Mean", "Lower_CI", "Upper_CI", "Prob_Positive", "Prob_Significant"]
TIMEPOINT_COLUMNS = ["Timepoint", "Mean_Effect", "Lower_CI", "Upper_CI", "Prob_Positive"]
SUBGROUP_COLUMNS = ["Subgroup", "N", "Effect_Size", "Lower_CI", "Upper_CI", "P_Value"]


def records_to_frame(records: Iterable, columns: List[str]) -> pd.DataFrame:
    """Rows of ``as_row()`` dicts; keeps ``columns`` even when empty."""
    return pd.DataFrame([r.as_row() for r in records], columns=columns)


# -----------------------------------------------------------------------------
# Table validation
# -----------------------------------------------------------------------------

def _require_columns(df: pd.DataFrame, columns: List[str], table: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{table}: missing columns {missing}")


def _require_labels(s: pd.Series, allowed: Iterable[str], table: str) -> None:
    bad = sorted(set(s.dropna().astype(str)) - set(allowed))
    if bad or s.isna().any():
        raise ValueError(f"{table}: column '{s.name}' has invalid values {bad or ['<missing>']}")


def assign_age_group(age: pd.Series) -> pd.Categorical:
    return pd.cut(age, bins=list(config.AGE_BINS), labels=list(config.AGE_GROUPS), right=True)


def validate_patient_table(df: pd.DataFrame) -> pd.DataFrame:
    """Return a normalized copy of the patient table or raise ValueError.

    ``age_group`` is (re)derived from ``age``; a stored column that
    disagrees with the cut points is rejected.
    """
    _require_columns(df, PATIENT_COLUMNS[:-1], "patient table")
    out = df.copy()

    out["patient_id"] = pd.to_numeric(out["patient_id"], errors="raise").astype("int64")
    if out["patient_id"].duplicated().any():
        dups = out.loc[out["patient_id"].duplicated(), "patient_id"].tolist()
        raise ValueError(f"patient table: duplicate patient_id values {dups[:10]}")

    num_age = pd.to_numeric(out["age"], errors="raise")
    if not np.all(np.equal(np.mod(num_age, 1), 0)):
        raise ValueError("patient table: age must be integer-valued")
    out["age"] = num_age.astype("int64")
    for col in ("baseline_risk", "primary_outcome", "secondary_outcome"):
        out[col] = pd.to_numeric(out[col], errors="raise").astype(float)

    _require_labels(out["treatment"], config.ARMS, "patient table")
    _require_labels(out["sex"], config.SEXES, "patient table")
    out["treatment"] = pd.Categorical(out["treatment"].astype(str), categories=list(config.ARM_LEVELS))
    out["sex"] = pd.Categorical(out["sex"].astype(str), categories=sorted(config.SEXES))

    derived = assign_age_group(out["age"])
    if "age_group" in df.columns:
        stored = df["age_group"].astype(str).to_numpy()
        if len(stored) and not np.array_equal(stored, np.asarray(derived.astype(str))):
            raise ValueError("patient table: stored age_group disagrees with age cut points")
    out["age_group"] = derived

    return out[PATIENT_COLUMNS].reset_index(drop=True)


def validate_biomarker_table(df: pd.DataFrame, patients: Optional[pd.DataFrame] = None) -> pd.DataFrame:
    """Return a normalized copy of the biomarker table or raise ValueError.

    With ``patients`` given, also checks referential integrity, one row per
    patient and timepoint, and that each row's arm matches the patient's.
    """
    _require_columns(df, BIOMARKER_COLUMNS, "biomarker table")
    out = df.copy()
    out["patient_id"] = pd.to_numeric(out["patient_id"], errors="raise").astype("int64")
    out["biomarker_value"] = pd.to_numeric(out["biomarker_value"], errors="raise").astype(float)
    _require_labels(out["treatment"], config.ARMS, "biomarker table")
    _require_labels(out["timepoint"], config.TIMEPOINTS, "biomarker table")
    out["treatment"] = pd.Categorical(out["treatment"].astype(str), categories=list(config.ARM_LEVELS))
    out["timepoint"] = pd.Categorical(
        out["timepoint"].astype(str), categories=list(config.TIMEPOINTS), ordered=True
    )

    if out.duplicated(subset=["patient_id", "timepoint"]).any():
        raise ValueError("biomarker table: more than one observation per patient and timepoint")

    if patients is not None:
        arm_by_patient = patients.set_index("patient_id")["treatment"].astype(str)
        orphans = sorted(set(out["patient_id"]) - set(arm_by_patient.index))
        if orphans:
            raise ValueError(f"biomarker table: unknown patient_id values {orphans[:10]}")
        expected = out["patient_id"].map(arm_by_patient)
        mismatch = out.loc[expected != out["treatment"].astype(str), "patient_id"].unique()
        if len(mismatch):
            raise ValueError(f"biomarker table: treatment arm disagrees with patient table for {list(mismatch[:10])}")

    return out[BIOMARKER_COLUMNS].reset_index(drop=True)


def patients_from_frame(df: pd.DataFrame) -> List[PatientRecord]:
    names = [f.name for f in fields(PatientRecord)]
    return [
        PatientRecord(
            patient_id=int(r.patient_id),
            treatment=str(r.treatment),
            age=int(r.age),
            sex=str(r.sex),
            baseline_risk=float(r.baseline_risk),
            primary_outcome=float(r.primary_outcome),
            secondary_outcome=float(r.secondary_outcome),
        )
        for r in df[names].itertuples(index=False)
    ]


def observations_from_frame(df: pd.DataFrame) -> List[BiomarkerObservation]:
    return [
        BiomarkerObservation(
            patient_id=int(r.patient_id),
            treatment=str(r.treatment),
            timepoint=str(r.timepoint),
            biomarker_value=float(r.biomarker_value),
        )
        for r in df[BIOMARKER_COLUMNS].itertuples(index=False)
    ]


def load_trial_tables(data_dir: Path) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Read and validate both tables. Missing files raise FileNotFoundError."""
    data_dir = Path(data_dir)
    trial_path = data_dir / config.TRIAL_DATA_FILE
    biomarker_path = data_dir / config.BIOMARKER_DATA_FILE
    for p in (trial_path, biomarker_path):
        if not p.exists():
            raise FileNotFoundError(f"Input table not found: {p}")
    trial = validate_patient_table(pd.read_csv(trial_path))
    biomarker = validate_biomarker_table(pd.read_csv(biomarker_path), patients=trial)
    return trial, biomarker
