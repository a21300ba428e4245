"""
Structured intake documents: the Fund Application and the Interim Summary.

Every section is a typed model registered in SECTION_SPECS under
(document, section_key) together with its label and the fields it requires.
Sections without required fields (Other Support, and the risk factor,
diagnosis and treatment sections of the Interim Summary) instead count as
filled when they hold any content, per their `content_rule`.
"""

import logging
import math
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from case_engine.core.deps import SessionContext
from case_engine.core.errors import AccessDenied, NotFound, ValidationError
from case_engine.models.enums import IntakeDocument
from case_engine.models.models import Case, IntakeSectionRecord

logger = logging.getLogger(__name__)


# ── Section models ────────────────────────────────────────────────────────────
class IntakeSection(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ParentsFamilySection(IntakeSection):
    father_dob: str | None = None
    father_education: str | None = None
    mother_dob: str | None = None
    mother_education: str | None = None
    marriage_date: str | None = None
    dependents: str | None = None


class OccupationIncomeSection(IntakeSection):
    father_occupation: str | None = None
    father_employer: str | None = None
    father_monthly_income: float | None = None
    mother_occupation: str | None = None
    mother_employer: str | None = None
    mother_monthly_income: float | None = None
    income_proof_type: str | None = None


class BirthDetailsSection(IntakeSection):
    is_inborn: bool | None = None
    conception_type: str | None = None
    gestational_age_weeks: float | None = None
    delivery_type: str | None = None
    gravida: int | None = None
    parity: int | None = None


class NicuFinancialSection(IntakeSection):
    nicu_admission_date: str | None = None
    estimated_nicu_days: int | None = None
    nfi_requested_amount: float | None = None
    estimate_billed: float | None = None
    estimate_after_discount: float | None = None


class OtherSupportSection(IntakeSection):
    other_support_types: list[str] | None = None
    other_support_notes: str | None = None


class DeclarationsSection(IntakeSection):
    declarations_accepted: bool | None = None
    declaration_timestamp: str | None = None
    declared_by_user: str | None = None


class HospitalApprovalSection(IntakeSection):
    approved_by_name: str | None = None
    approval_date: str | None = None
    approval_remarks: str | None = None


class BirthSummarySection(IntakeSection):
    apgar_score: float | None = None
    time_of_birth: str | None = None
    place_of_birth: str | None = None
    gestational_age_weeks: float | None = None


class MaternalDetailsSection(IntakeSection):
    marital_status: str | None = None
    years_married: int | None = None
    mother_age: int | None = None
    gravida: int | None = None
    parity: int | None = None
    abortions: int | None = None
    live_children_before: int | None = None


class AntenatalRiskFactorsSection(IntakeSection):
    risk_factors: list[str] | None = None
    risk_notes: str | None = None


class DiagnosisSection(IntakeSection):
    diagnoses: list[str] | None = None
    other_diagnosis: str | None = None


class TreatmentGivenSection(IntakeSection):
    respiratory_support_required: bool | None = None
    phototherapy_required: bool | None = None
    antibiotics_required: bool | None = None
    nutritional_support_required: bool | None = None
    treatment_notes: str | None = None


class CurrentStatusSection(IntakeSection):
    day_of_life: int | None = None
    current_weight: float | None = None
    corrected_gestational_age: float | None = None


class FeedingRespirationSection(IntakeSection):
    feeding_mode: str | None = None
    respiration_status: str | None = None


class DischargePlanInvestigationsSection(IntakeSection):
    discharge_date: str | None = None
    investigations_planned: str | None = None
    investigations_done: bool | None = None


class RemarksSignatureSection(IntakeSection):
    remarks: str | None = None
    doctor_name: str | None = None
    signed_at: str | None = None


# ── Presence and completion ───────────────────────────────────────────────────
def is_present(value) -> bool:
    """The one presence predicate every completion and validation check uses."""
    if isinstance(value, bool):
        return True
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, str):
        return value.strip() != ""
    return value is not None


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class Completion:
    filled: int
    total: int
    pct: int


def completion(section: Mapping | None, required_fields: list[str]) -> Completion:
    total = len(required_fields)
    if total == 0:
        return Completion(filled=0, total=0, pct=0)
    section = section or {}
    filled = sum(1 for name in required_fields if is_present(section.get(name)))
    return Completion(filled=filled, total=total, pct=_round_half_up(filled / total * 100))


def is_complete(section: Mapping | None, required_fields: list[str]) -> bool:
    if section is None:
        return False
    return all(is_present(section.get(name)) for name in required_fields)


def _has_items(value) -> bool:
    return isinstance(value, (list, tuple)) and len(value) > 0


def _other_support_has_content(data: Mapping) -> bool:
    return _has_items(data.get("other_support_types")) or is_present(
        data.get("other_support_notes")
    )


def _antenatal_has_content(data: Mapping) -> bool:
    return _has_items(data.get("risk_factors")) or is_present(data.get("risk_notes"))


def _diagnosis_has_content(data: Mapping) -> bool:
    return _has_items(data.get("diagnoses")) or is_present(data.get("other_diagnosis"))


def _treatment_has_content(data: Mapping) -> bool:
    flags = (
        "respiratory_support_required",
        "phototherapy_required",
        "antibiotics_required",
        "nutritional_support_required",
    )
    return any(data.get(flag) is True for flag in flags) or is_present(
        data.get("treatment_notes")
    )


ContentRule = Callable[[Mapping], bool]


@dataclass(frozen=True)
class SectionSpec:
    label: str
    model: type[IntakeSection]
    required_fields: tuple[str, ...] = ()
    content_rule: ContentRule | None = None


FUND_APPLICATION_SECTIONS: dict[str, SectionSpec] = {
    "parents_family": SectionSpec(
        "Parents & Family",
        ParentsFamilySection,
        (
            "father_dob",
            "father_education",
            "mother_dob",
            "mother_education",
            "marriage_date",
            "dependents",
        ),
    ),
    "occupation_income": SectionSpec(
        "Occupation & Income",
        OccupationIncomeSection,
        (
            "father_occupation",
            "father_monthly_income",
            "mother_occupation",
            "mother_monthly_income",
            "income_proof_type",
        ),
    ),
    "birth_details": SectionSpec(
        "Birth Details",
        BirthDetailsSection,
        ("is_inborn", "conception_type", "gestational_age_weeks", "delivery_type", "gravida"),
    ),
    "nicu_financial": SectionSpec(
        "NICU & Financial",
        NicuFinancialSection,
        (
            "nicu_admission_date",
            "estimated_nicu_days",
            "nfi_requested_amount",
            "estimate_billed",
            "estimate_after_discount",
        ),
    ),
    "other_support": SectionSpec(
        "Other Support", OtherSupportSection, content_rule=_other_support_has_content
    ),
    "declarations": SectionSpec(
        "Declarations", DeclarationsSection, ("declarations_accepted",)
    ),
    "hospital_approval": SectionSpec(
        "Hospital Approval",
        HospitalApprovalSection,
        ("approved_by_name", "approval_date"),
    ),
}

INTERIM_SUMMARY_SECTIONS: dict[str, SectionSpec] = {
    "birth_summary": SectionSpec(
        "Birth Summary",
        BirthSummarySection,
        ("apgar_score", "time_of_birth", "place_of_birth", "gestational_age_weeks"),
    ),
    "maternal_details": SectionSpec(
        "Maternal Details",
        MaternalDetailsSection,
        (
            "marital_status",
            "years_married",
            "mother_age",
            "gravida",
            "parity",
            "abortions",
            "live_children_before",
        ),
    ),
    "antenatal_risk_factors": SectionSpec(
        "Antenatal Risk Factors",
        AntenatalRiskFactorsSection,
        content_rule=_antenatal_has_content,
    ),
    "diagnosis": SectionSpec(
        "Diagnosis", DiagnosisSection, content_rule=_diagnosis_has_content
    ),
    "treatment_given": SectionSpec(
        "Treatment Given", TreatmentGivenSection, content_rule=_treatment_has_content
    ),
    "current_status": SectionSpec(
        "Current Status",
        CurrentStatusSection,
        ("day_of_life", "current_weight", "corrected_gestational_age"),
    ),
    "feeding_respiration": SectionSpec(
        "Feeding & Respiration",
        FeedingRespirationSection,
        ("feeding_mode", "respiration_status"),
    ),
    "discharge_plan_investigations": SectionSpec(
        "Discharge Plan & Investigations",
        DischargePlanInvestigationsSection,
        ("discharge_date", "investigations_planned"),
    ),
    "remarks_signature": SectionSpec(
        "Remarks & Signature",
        RemarksSignatureSection,
        ("doctor_name", "signed_at"),
    ),
}

SECTION_SPECS: dict[IntakeDocument, dict[str, SectionSpec]] = {
    IntakeDocument.FUND_APPLICATION: FUND_APPLICATION_SECTIONS,
    IntakeDocument.INTERIM_SUMMARY: INTERIM_SUMMARY_SECTIONS,
}

DOCUMENT_LABELS = {
    IntakeDocument.FUND_APPLICATION: "Fund Application",
    IntakeDocument.INTERIM_SUMMARY: "Interim Summary",
}


def get_section_spec(document: IntakeDocument, section_key: str) -> SectionSpec | None:
    return SECTION_SPECS[document].get(section_key)


def section_label(document: IntakeDocument, section_key: str) -> str:
    spec = get_section_spec(document, section_key)
    return spec.label if spec else section_key


def section_progress(
    document: IntakeDocument, section_key: str, data: Mapping | None
) -> Completion:
    spec = get_section_spec(document, section_key)
    if spec is None:
        return Completion(filled=0, total=0, pct=0)
    if spec.content_rule is not None:
        filled = 1 if data is not None and spec.content_rule(data) else 0
        return Completion(filled=filled, total=1, pct=filled * 100)
    return completion(data, list(spec.required_fields))


def section_status(progress: Completion) -> str:
    if progress.total > 0 and progress.filled == progress.total:
        return "complete"
    if progress.filled > 0:
        return "in_progress"
    return "not_started"


def is_section_complete(document: IntakeDocument, section_key: str, data: Mapping | None) -> bool:
    spec = get_section_spec(document, section_key)
    if spec is None or data is None:
        return False
    if spec.content_rule is not None:
        return spec.content_rule(data)
    return is_complete(data, list(spec.required_fields))


@dataclass
class ValidationResult:
    is_valid: bool
    missing_fields: list[str]
    errors: dict[str, str]


def validate(document: IntakeDocument, section_key: str, data: Mapping | None) -> ValidationResult:
    """
    Check a section's required fields. Unknown sections and sections with no
    required fields are valid.
    """
    spec = get_section_spec(document, section_key)
    if spec is None:
        return ValidationResult(is_valid=True, missing_fields=[], errors={})

    data = data or {}
    missing = [name for name in spec.required_fields if not is_present(data.get(name))]
    return ValidationResult(
        is_valid=not missing,
        missing_fields=missing,
        errors={name: f"{name} is required" for name in missing},
    )


# ── Derived maternal fields ───────────────────────────────────────────────────
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_ISO_DATETIME = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T")
_DISPLAY_DATE = re.compile(r"^(\d{2})-(\d{2})-(\d{4})$")


def parse_date_flexible(value: str | None) -> date | None:
    """Parse YYYY-MM-DD, an ISO datetime, or DD-MM-YYYY; None if unparseable."""
    if not value or not value.strip():
        return None
    text = value.strip()

    for pattern, order in ((_ISO_DATE, "ymd"), (_ISO_DATETIME, "ymd"), (_DISPLAY_DATE, "dmy")):
        match = pattern.match(text)
        if match:
            parts = [int(g) for g in match.groups()]
            year, month, day = parts if order == "ymd" else parts[::-1]
            try:
                return date(year, month, day)
            except ValueError:
                return None

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def diff_full_years(start: date, end: date) -> int:
    years = end.year - start.year
    if (end.month, end.day) < (start.month, start.day):
        years -= 1
    return max(0, years)


def derive_maternal_fields(
    mother_dob: str | None, marriage_date: str | None, as_of: date
) -> dict:
    derived = {}
    dob = parse_date_flexible(mother_dob)
    married_on = parse_date_flexible(marriage_date)
    if dob:
        derived["mother_age"] = diff_full_years(dob, as_of)
    if married_on:
        derived["years_married"] = diff_full_years(married_on, as_of)
        derived["marital_status"] = "Married"
    return derived


# ── Persistence ───────────────────────────────────────────────────────────────
def _get_case_or_404(db: Session, case_id: UUID) -> Case:
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFound("Case not found.")
    return case


def check_case_access(case: Case, ctx: SessionContext) -> None:
    if ctx.is_hospital_scoped and case.hospital_id != ctx.hospital_id:
        raise AccessDenied("Access denied.")


def load_document(db: Session, case_id: UUID, document: IntakeDocument) -> dict[str, dict]:
    rows = (
        db.query(IntakeSectionRecord)
        .filter(
            IntakeSectionRecord.case_id == case_id,
            IntakeSectionRecord.document == document,
        )
        .all()
    )
    return {row.section_key: dict(row.data or {}) for row in rows}


def prefill_maternal_details(
    interim: dict[str, dict], fund_application: dict[str, dict], as_of: date
) -> dict[str, dict]:
    """Fill empty maternal fields from the fund application's parent dates."""
    parents = fund_application.get("parents_family") or {}
    derived = derive_maternal_fields(
        parents.get("mother_dob"), parents.get("marriage_date"), as_of
    )
    if not derived:
        return interim
    maternal = dict(interim.get("maternal_details") or {})
    for name, value in derived.items():
        if not is_present(maternal.get(name)):
            maternal[name] = value
    return {**interim, "maternal_details": maternal}


def get_document(
    db: Session,
    ctx: SessionContext,
    case_id: UUID,
    document: IntakeDocument,
    today: date | None = None,
) -> dict:
    """
    Sections with their saved progress. Prefilled maternal values appear in
    `data` only; progress and status reflect what has been saved, matching
    intake_completeness and submit_readiness.
    """
    check_case_access(_get_case_or_404(db, case_id), ctx)
    saved = load_document(db, case_id, document)
    shown = saved
    if document == IntakeDocument.INTERIM_SUMMARY:
        fund_application = load_document(db, case_id, IntakeDocument.FUND_APPLICATION)
        shown = prefill_maternal_details(saved, fund_application, today or date.today())

    result = {}
    for section_key, spec in SECTION_SPECS[document].items():
        progress = section_progress(document, section_key, saved.get(section_key))
        result[section_key] = {
            "label": spec.label,
            "data": shown.get(section_key) or {},
            "progress": progress,
            "status": section_status(progress),
        }
    return result


def save_section(
    db: Session,
    ctx: SessionContext,
    case_id: UUID,
    document: IntakeDocument,
    section_key: str,
    data: Mapping,
) -> IntakeSectionRecord:
    check_case_access(_get_case_or_404(db, case_id), ctx)
    spec = get_section_spec(document, section_key)
    if spec is None:
        raise NotFound(f"Unknown {DOCUMENT_LABELS[document]} section: {section_key}")

    try:
        parsed = spec.model.model_validate(dict(data))
    except PydanticValidationError as exc:
        errors = {
            ".".join(str(p) for p in err["loc"]) or section_key: err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(f"{spec.label} has invalid fields.", errors=errors) from exc

    clean = parsed.model_dump(exclude_none=True)
    result = validate(document, section_key, clean)
    if not result.is_valid:
        raise ValidationError(f"{spec.label} is missing required fields.", errors=result.errors)

    record = (
        db.query(IntakeSectionRecord)
        .filter(
            IntakeSectionRecord.case_id == case_id,
            IntakeSectionRecord.document == document,
            IntakeSectionRecord.section_key == section_key,
        )
        .first()
    )
    if record is None:
        record = IntakeSectionRecord(case_id=case_id, document=document, section_key=section_key)
        db.add(record)
    record.data = clean
    record.updated_by_user_id = ctx.user_id
    db.flush()
    logger.info("Saved %s section %s for case %s", document.value, section_key, case_id)
    return record


# ── Completeness and submit readiness ─────────────────────────────────────────
def document_completeness(document: IntakeDocument, sections: dict[str, dict]) -> dict:
    specs = SECTION_SPECS[document]
    flags = {
        key: is_section_complete(document, key, sections.get(key)) for key in specs
    }
    percent = _round_half_up(sum(flags.values()) / len(flags) * 100)
    return {"sections": flags, "percent": percent, "is_complete": all(flags.values())}


def intake_completeness(db: Session, case_id: UUID) -> dict:
    fund = document_completeness(
        IntakeDocument.FUND_APPLICATION,
        load_document(db, case_id, IntakeDocument.FUND_APPLICATION),
    )
    interim = document_completeness(
        IntakeDocument.INTERIM_SUMMARY,
        load_document(db, case_id, IntakeDocument.INTERIM_SUMMARY),
    )
    return {
        "fund_application": fund,
        "interim_summary": interim,
        "overall_percent": _round_half_up((fund["percent"] + interim["percent"]) / 2),
        "all_required_fields_complete": fund["is_complete"] and interim["is_complete"],
    }


def submit_readiness(db: Session, case_id: UUID) -> dict:
    completeness = intake_completeness(db, case_id)
    missing_sections = []
    for document, key in (
        (IntakeDocument.FUND_APPLICATION, "fund_application"),
        (IntakeDocument.INTERIM_SUMMARY, "interim_summary"),
    ):
        for section_key, done in completeness[key]["sections"].items():
            if not done:
                missing_sections.append(
                    f"{DOCUMENT_LABELS[document]} → {section_label(document, section_key)}"
                )
    return {
        "can_submit": completeness["all_required_fields_complete"],
        "fund_application_complete": completeness["fund_application"]["is_complete"],
        "interim_summary_complete": completeness["interim_summary"]["is_complete"],
        "missing_sections": missing_sections,
    }
