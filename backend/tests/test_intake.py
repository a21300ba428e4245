"""
Tests for intake section completion, validation and persistence.
"""

import math
from datetime import date

import pytest

from case_engine.core.deps import SessionContext
from case_engine.core.errors import AccessDenied, NotFound, ValidationError
from case_engine.models.enums import IntakeDocument, UserRole
from case_engine.services.intake import (
    Completion,
    completion,
    derive_maternal_fields,
    get_document,
    intake_completeness,
    is_complete,
    is_present,
    parse_date_flexible,
    save_section,
    section_progress,
    section_status,
    submit_readiness,
    validate,
)

FA = IntakeDocument.FUND_APPLICATION
IS = IntakeDocument.INTERIM_SUMMARY


class TestPresence:
    @pytest.mark.parametrize("value", [False, True, 0, 0.0, "x", [], {}])
    def test_present(self, value):
        assert is_present(value)

    @pytest.mark.parametrize("value", [None, "", "   ", float("nan")])
    def test_absent(self, value):
        assert not is_present(value)


class TestCompletion:
    def test_half_filled(self):
        assert completion({"a": "x", "b": ""}, ["a", "b"]) == Completion(1, 2, 50)

    def test_no_required_fields(self):
        assert completion({"a": "x"}, []) == Completion(0, 0, 0)

    def test_missing_section(self):
        assert completion(None, ["a"]) == Completion(0, 1, 0)

    def test_rounds_half_up(self):
        # 1/8 = 12.5% and 5/8 = 62.5%
        fields = [f"f{i}" for i in range(8)]
        assert completion({"f0": 1}, fields).pct == 13
        assert completion({f"f{i}": 1 for i in range(5)}, fields).pct == 63

    def test_false_counts_as_filled(self):
        assert completion({"is_inborn": False}, ["is_inborn"]).pct == 100

    def test_nan_is_not_filled(self):
        assert completion({"weight": math.nan}, ["weight"]).filled == 0

    def test_is_complete(self):
        assert is_complete({"a": 1, "b": "y"}, ["a", "b"])
        assert not is_complete({"a": 1}, ["a", "b"])
        assert not is_complete(None, [])


class TestContentSections:
    def test_antenatal_risk_factors(self):
        assert section_progress(IS, "antenatal_risk_factors", {"risk_factors": []}).pct == 0
        assert section_progress(IS, "antenatal_risk_factors", {"risk_factors": ["PIH"]}).pct == 100
        assert section_progress(IS, "antenatal_risk_factors", {"risk_notes": "GDM"}).pct == 100

    def test_diagnosis(self):
        assert section_progress(IS, "diagnosis", {"other_diagnosis": "  "}).filled == 0
        assert section_progress(IS, "diagnosis", {"diagnoses": ["RDS"]}).filled == 1

    def test_treatment_given(self):
        assert section_progress(IS, "treatment_given", {"phototherapy_required": False}).pct == 0
        assert section_progress(IS, "treatment_given", {"antibiotics_required": True}).pct == 100
        assert section_progress(IS, "treatment_given", {"treatment_notes": "CPAP"}).pct == 100

    def test_section_status(self):
        assert section_status(Completion(0, 3, 0)) == "not_started"
        assert section_status(Completion(1, 3, 33)) == "in_progress"
        assert section_status(Completion(3, 3, 100)) == "complete"
        assert section_status(Completion(0, 0, 0)) == "not_started"


class TestValidate:
    def test_reports_missing_fields(self):
        result = validate(FA, "hospital_approval", {"approved_by_name": "Dr. Rao"})
        assert not result.is_valid
        assert result.missing_fields == ["approval_date"]
        assert result.errors == {"approval_date": "approval_date is required"}

    def test_valid_section(self):
        result = validate(FA, "declarations", {"declarations_accepted": False})
        assert result.is_valid
        assert result.errors == {}

    def test_unknown_section_is_valid(self):
        assert validate(FA, "no_such_section", {}).is_valid

    def test_section_without_required_fields_is_valid(self):
        assert validate(IS, "diagnosis", {}).is_valid


class TestMaternalFields:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("1995-06-15", date(1995, 6, 15)),
            ("1995-06-15T10:30:00Z", date(1995, 6, 15)),
            ("15-06-1995", date(1995, 6, 15)),
            ("", None),
            ("not a date", None),
            ("31-02-1995", None),
        ],
    )
    def test_parse_date_flexible(self, raw, expected):
        assert parse_date_flexible(raw) == expected

    def test_derive(self):
        derived = derive_maternal_fields("1995-06-15", "15-06-2018", date(2024, 6, 14))
        assert derived == {"mother_age": 28, "years_married": 5, "marital_status": "Married"}

    def test_nothing_to_derive(self):
        assert derive_maternal_fields(None, "", date(2024, 1, 1)) == {}


class TestPersistence:
    def test_save_and_read_back(self, db, spoc_ctx, draft_case):
        save_section(
            db,
            spoc_ctx,
            draft_case.id,
            FA,
            "declarations",
            {"declarations_accepted": True, "declared_by_user": "spoc"},
        )
        document = get_document(db, spoc_ctx, draft_case.id, FA)
        assert document["declarations"]["status"] == "complete"
        assert document["declarations"]["data"]["declarations_accepted"] is True
        assert document["parents_family"]["status"] == "not_started"

    def test_save_rejects_missing_required_fields(self, db, spoc_ctx, draft_case):
        with pytest.raises(ValidationError) as exc_info:
            save_section(db, spoc_ctx, draft_case.id, FA, "hospital_approval", {"approval_date": ""})
        assert exc_info.value.errors == {
            "approved_by_name": "approved_by_name is required",
            "approval_date": "approval_date is required",
        }

    def test_save_rejects_unknown_fields(self, db, spoc_ctx, draft_case):
        with pytest.raises(ValidationError) as exc_info:
            save_section(
                db, spoc_ctx, draft_case.id, FA, "declarations",
                {"declarations_accepted": True, "signature_blob": "x"},
            )
        assert "signature_blob" in exc_info.value.errors

    def test_unknown_section(self, db, spoc_ctx, draft_case):
        with pytest.raises(NotFound):
            save_section(db, spoc_ctx, draft_case.id, FA, "bank_details", {})

    def test_other_hospital_cannot_edit(self, db, other_hospital, draft_case):
        outsider = SessionContext(
            user_id=draft_case.created_by_user_id,
            active_role=UserRole.HOSPITAL_DOCTOR,
            roles=frozenset({UserRole.HOSPITAL_DOCTOR}),
            hospital_id=other_hospital.id,
        )
        with pytest.raises(AccessDenied):
            save_section(db, outsider, draft_case.id, FA, "declarations", {"declarations_accepted": True})

    def test_interim_maternal_details_prefilled(self, db, spoc_ctx, draft_case):
        save_section(
            db,
            spoc_ctx,
            draft_case.id,
            FA,
            "parents_family",
            {
                "father_dob": "1990-02-01",
                "father_education": "Graduate",
                "mother_dob": "1994-03-12",
                "mother_education": "HSC",
                "marriage_date": "2019-05-20",
                "dependents": "2",
            },
        )
        document = get_document(db, spoc_ctx, draft_case.id, IS, today=date(2024, 6, 1))
        maternal = document["maternal_details"]["data"]
        assert maternal["mother_age"] == 30
        assert maternal["years_married"] == 5
        assert maternal["marital_status"] == "Married"

    def test_prefilled_values_do_not_count_as_saved(self, db, spoc_ctx, draft_case):
        save_section(
            db,
            spoc_ctx,
            draft_case.id,
            FA,
            "parents_family",
            {
                "father_dob": "1990-02-01",
                "father_education": "Graduate",
                "mother_dob": "1994-03-12",
                "mother_education": "HSC",
                "marriage_date": "2019-05-20",
                "dependents": "1",
            },
        )
        document = get_document(db, spoc_ctx, draft_case.id, IS, today=date(2024, 6, 1))
        maternal = document["maternal_details"]
        assert maternal["data"]["mother_age"] == 30
        assert maternal["status"] == "not_started"
        assert maternal["progress"].filled == 0

        completeness = intake_completeness(db, draft_case.id)
        assert completeness["interim_summary"]["sections"]["maternal_details"] is False
        missing = submit_readiness(db, draft_case.id)["missing_sections"]
        assert "Interim Summary → Maternal Details" in missing


class TestCompleteness:
    def test_empty_case(self, db, draft_case):
        result = intake_completeness(db, draft_case.id)
        assert result["overall_percent"] == 0
        assert result["all_required_fields_complete"] is False

        readiness = submit_readiness(db, draft_case.id)
        assert readiness["can_submit"] is False
        assert "Fund Application → Parents & Family" in readiness["missing_sections"]
        assert len(readiness["missing_sections"]) == 16

    def test_partial(self, db, spoc_ctx, draft_case):
        save_section(db, spoc_ctx, draft_case.id, FA, "declarations", {"declarations_accepted": True})
        result = intake_completeness(db, draft_case.id)
        # 1 of 7 sections is 14%, interim summary 0%
        assert result["fund_application"]["percent"] == 14
        assert result["overall_percent"] == 7

    def test_all_sections_filled(self, db, complete_intake):
        draft_case = complete_intake
        result = intake_completeness(db, draft_case.id)
        assert result["overall_percent"] == 100
        assert submit_readiness(db, draft_case.id)["can_submit"] is True
