"""Tests for table validation and typed records."""

import numpy as np
import pytest

from trial_bayes import config
from trial_bayes.data_prep.schema import (
    PatientRecord,
    PosteriorSummary,
    SubgroupResult,
    age_group_for,
    load_trial_tables,
    validate_biomarker_table,
    validate_patient_table,
)
from trial_bayes.pipeline_generate import run as generate


class TestPatientTable:
    def test_missing_column_rejected(self, reference_tables):
        trial, _ = reference_tables
        with pytest.raises(ValueError, match="missing columns"):
            validate_patient_table(trial.drop(columns=["sex"]))

    def test_unknown_arm_rejected(self, reference_tables):
        trial, _ = reference_tables
        bad = trial.copy()
        bad["treatment"] = bad["treatment"].astype(str)
        bad.loc[0, "treatment"] = "Placebo"
        with pytest.raises(ValueError, match="treatment"):
            validate_patient_table(bad)

    def test_duplicate_ids_rejected(self, reference_tables):
        trial, _ = reference_tables
        bad = trial.copy()
        bad.loc[1, "patient_id"] = bad.loc[0, "patient_id"]
        with pytest.raises(ValueError, match="duplicate"):
            validate_patient_table(bad)

    def test_fractional_age_rejected(self, reference_tables):
        trial, _ = reference_tables
        bad = trial.copy()
        bad["age"] = bad["age"].astype(float)
        bad.loc[0, "age"] = 55.5
        with pytest.raises(ValueError, match="integer"):
            validate_patient_table(bad)

    def test_stored_age_group_must_match_age(self, reference_tables):
        trial, _ = reference_tables
        bad = trial.copy()
        bad["age_group"] = bad["age_group"].astype(str)
        bad.loc[0, "age_group"] = ">70" if bad.loc[0, "age"] <= 70 else "<60"
        with pytest.raises(ValueError, match="age_group"):
            validate_patient_table(bad)

    def test_age_group_derived_when_absent(self, reference_tables):
        trial, _ = reference_tables
        out = validate_patient_table(trial.drop(columns=["age_group"]))
        assert out["age_group"].astype(str).tolist() == trial["age_group"].astype(str).tolist()

    @pytest.mark.parametrize("age, group", [(59, "<60"), (60, "<60"), (61, "60-70"), (70, "60-70"), (71, ">70")])
    def test_age_group_boundaries(self, age, group):
        assert age_group_for(age) == group


class TestBiomarkerTable:
    def test_orphan_patient_rejected(self, reference_tables):
        trial, biomarker = reference_tables
        bad = biomarker.copy()
        bad.loc[0, "patient_id"] = 9999
        with pytest.raises(ValueError, match="unknown patient_id"):
            validate_biomarker_table(bad, patients=trial)

    def test_arm_mismatch_rejected(self, reference_tables):
        trial, biomarker = reference_tables
        bad = biomarker.copy()
        bad["treatment"] = bad["treatment"].astype(str)
        bad.loc[0, "treatment"] = config.CONTROL if bad.loc[0, "treatment"] == config.TREATMENT else config.TREATMENT
        with pytest.raises(ValueError, match="arm"):
            validate_biomarker_table(bad, patients=trial)

    def test_duplicate_visit_rejected(self, reference_tables):
        _, biomarker = reference_tables
        bad = biomarker.copy()
        bad["timepoint"] = bad["timepoint"].astype(str)
        bad.loc[1, "timepoint"] = bad.loc[0, "timepoint"]
        with pytest.raises(ValueError, match="more than one"):
            validate_biomarker_table(bad)

    def test_unknown_timepoint_rejected(self, reference_tables):
        _, biomarker = reference_tables
        bad = biomarker.copy()
        bad["timepoint"] = bad["timepoint"].astype(str)
        bad.loc[0, "timepoint"] = "Week 24"
        with pytest.raises(ValueError, match="timepoint"):
            validate_biomarker_table(bad)

    def test_timepoint_is_ordered(self, reference_tables):
        _, biomarker = reference_tables
        out = validate_biomarker_table(biomarker)
        assert out["timepoint"].cat.ordered
        assert list(out["timepoint"].cat.categories) == list(config.TIMEPOINTS)


class TestRecords:
    def test_patient_record_rejects_unknown_sex(self):
        with pytest.raises(ValueError):
            PatientRecord(1, "Treatment", 50, "Other", 0.5, 1.0, 10.0)

    def test_patient_record_row_includes_age_group(self):
        row = PatientRecord(1, "Control", 65, "Female", 0.5, 1.0, 10.0).as_row()
        assert row["age_group"] == "60-70"

    def test_inverted_interval_rejected(self):
        with pytest.raises(ValueError, match="credible interval"):
            PosteriorSummary("Treatment Effect", 1.0, 2.0, 0.5, 0.9, 0.5)
        with pytest.raises(ValueError):
            SubgroupResult("all", 200, 1.0, 1.5, 0.5, 0.01)

    def test_subgroup_row_uses_csv_headers(self):
        row = SubgroupResult("male", 110, 1.2, 0.4, 2.0, 0.003).as_row()
        assert list(row) == ["Subgroup", "N", "Effect_Size", "Lower_CI", "Upper_CI", "P_Value"]


class TestLoadTrialTables:
    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_trial_tables(tmp_path)

    def test_written_tables_load_back(self, tmp_path):
        out = generate(30, 1.5, 11, tmp_path)
        trial, biomarker = load_trial_tables(tmp_path)
        assert len(trial) == 30 and len(biomarker) == 90
        np.testing.assert_allclose(trial["primary_outcome"], out["trial"]["primary_outcome"])
        assert trial["age_group"].astype(str).tolist() == out["trial"]["age_group"].astype(str).tolist()
