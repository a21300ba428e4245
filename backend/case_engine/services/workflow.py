"""
Case lifecycle: creation and the status state machine.
Enforces allowed transitions and prerequisite checks.
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from case_engine.core.deps import SessionContext
from case_engine.core.errors import AccessDenied, MappingMissing, NotFound, TransitionError
from case_engine.models.enums import CaseStatus, CommitteeOutcome, ProcessType, UserRole
from case_engine.models.models import Case, ClinicalDetails, Hospital, utcnow
from case_engine.services.audit import log_audit
from case_engine.services.intake import check_case_access, submit_readiness
from case_engine.services.process_type import resolve_process_type

logger = logging.getLogger(__name__)


# ── Allowed transitions map ───────────────────────────────────────────────────
# Each key maps to a set of statuses it can transition TO.
ALLOWED_TRANSITIONS: dict[CaseStatus, set[CaseStatus]] = {
    CaseStatus.DRAFT: {CaseStatus.SUBMITTED},
    CaseStatus.SUBMITTED: {
        CaseStatus.UNDER_VERIFICATION,
        CaseStatus.RETURNED,
    },
    CaseStatus.UNDER_VERIFICATION: {
        CaseStatus.UNDER_REVIEW,
        CaseStatus.RETURNED,
    },
    CaseStatus.UNDER_REVIEW: {
        CaseStatus.APPROVED,
        CaseStatus.REJECTED,
        CaseStatus.RETURNED,
    },
    CaseStatus.RETURNED: {CaseStatus.SUBMITTED},
    CaseStatus.APPROVED: {CaseStatus.CLOSED},
    CaseStatus.REJECTED: set(),
    CaseStatus.CLOSED: set(),
}

COMMITTEE_OUTCOME_STATUS: dict[CommitteeOutcome, CaseStatus] = {
    CommitteeOutcome.APPROVED: CaseStatus.APPROVED,
    CommitteeOutcome.REJECTED: CaseStatus.REJECTED,
    CommitteeOutcome.NEED_MORE_INFO: CaseStatus.RETURNED,
}

CASE_REF_PREFIX = "NFI"

COMMITTEE_ROLES = {UserRole.COMMITTEE_MEMBER, UserRole.ADMIN}


def _check_prerequisites(
    db: Session, case: Case, new_status: CaseStatus
) -> list[str]:
    """Return list of blocker messages if prerequisites are not met."""
    blockers = []

    if new_status == CaseStatus.SUBMITTED:
        readiness = submit_readiness(db, case.id)
        if not readiness["can_submit"]:
            blockers.append(
                "Intake documents are incomplete: "
                + ", ".join(readiness["missing_sections"])
            )

    return blockers


def transition_case(
    db: Session,
    ctx: SessionContext,
    case: Case,
    new_status: CaseStatus,
) -> Case:
    """
    Attempt to transition a case to new_status.
    Raises TransitionError if the transition is not allowed.
    Writes an audit log on success.
    """
    check_case_access(case, ctx)
    try:
        old_status = CaseStatus(case.case_status)
    except ValueError:
        raise TransitionError(
            f"Case status {case.case_status!r} is not part of the workflow and cannot change."
        )

    allowed = ALLOWED_TRANSITIONS.get(old_status, set())
    if new_status not in allowed:
        raise TransitionError(
            f"Cannot transition from {old_status.value} to {new_status.value}. "
            f"Allowed transitions: {sorted(s.value for s in allowed)}"
        )

    blockers = _check_prerequisites(db, case, new_status)
    if blockers:
        raise TransitionError(
            f"Cannot transition to {new_status.value}. Blockers: {'; '.join(blockers)}"
        )

    case.case_status = new_status.value
    case.last_action_at = utcnow()
    if new_status == CaseStatus.CLOSED and case.closure_date is None:
        case.closure_date = date.today()

    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="STATUS_CHANGED",
        entity_type="case",
        entity_id=case.id,
        metadata={
            "old_status": old_status.value,
            "new_status": new_status.value,
        },
    )
    db.flush()
    logger.info(
        "Case %s moved from %s to %s", case.case_ref, old_status.value, new_status.value
    )
    return case


def apply_committee_outcome(
    db: Session,
    ctx: SessionContext,
    case: Case,
    outcome: CommitteeOutcome,
    comments: str | None = None,
) -> Case:
    """Pending and Deferred leave the case under review."""
    if ctx.active_role not in COMMITTEE_ROLES:
        raise AccessDenied("Only committee members can record a committee decision.")
    check_case_access(case, ctx)
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="COMMITTEE_DECISION",
        entity_type="case",
        entity_id=case.id,
        metadata={"outcome": outcome.value, "comments": comments or ""},
    )
    new_status = COMMITTEE_OUTCOME_STATUS.get(outcome)
    if new_status is None:
        db.flush()
        return case
    return transition_case(db, ctx, case, new_status)


def _next_case_ref(db: Session, process_type: ProcessType, year: int) -> str:
    refs = (
        db.query(Case.case_ref)
        .filter(Case.case_ref.like(f"{CASE_REF_PREFIX}/%/{year}/%"))
        .all()
    )
    numbers = [int(ref.rsplit("/", 1)[-1]) for (ref,) in refs if ref.rsplit("/", 1)[-1].isdigit()]
    next_num = max(numbers, default=0) + 1
    return f"{CASE_REF_PREFIX}/{process_type.value}/{year}/{next_num:04d}"


def timing_warnings(
    process_type: ProcessType, admission_date: date | None, today: date
) -> list[str]:
    warnings = []
    if process_type == ProcessType.BCRC and admission_date is not None:
        days = (today - admission_date).days
        if days > 30:
            warnings.append(
                f"BCRC case is {days} days after admission. "
                "Final documents expected within 72 hours of discharge."
            )
        elif days > 2:
            warnings.append(
                f"BCRC case is {days} days after admission. "
                "Please ensure timely documentation."
            )
    return warnings


def create_case(
    db: Session,
    ctx: SessionContext,
    hospital_id: UUID,
    intake_date: date,
    admission_date: date | None = None,
    beneficiary_name: str | None = None,
    diagnosis: str | None = None,
    summary: str | None = None,
    today: date | None = None,
) -> tuple[Case, list[str]]:
    """
    Open a new Draft case. The process type always comes from the hospital's
    active mapping; without one nothing is written.
    """
    today = today or date.today()
    if ctx.is_hospital_scoped and ctx.hospital_id != hospital_id:
        raise AccessDenied("Hospital users can only create cases for their own hospital.")
    if db.query(Hospital).filter(Hospital.id == hospital_id).first() is None:
        raise NotFound("Hospital not found.")

    process_type = resolve_process_type(db, hospital_id)
    if process_type is None:
        raise MappingMissing(
            "No active process type mapping for this hospital. "
            "Contact an administrator to configure one."
        )

    case = Case(
        case_ref=_next_case_ref(db, process_type, today.year),
        process_type=process_type,
        hospital_id=hospital_id,
        case_status=CaseStatus.DRAFT.value,
        beneficiary_name=beneficiary_name,
        intake_date=intake_date,
        created_by_user_id=ctx.user_id,
    )
    db.add(case)
    db.flush()

    db.add(
        ClinicalDetails(
            case_id=case.id,
            admission_date=admission_date,
            diagnosis=diagnosis,
            summary=summary,
        )
    )
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="CASE_CREATED",
        entity_type="case",
        entity_id=case.id,
        metadata={"case_ref": case.case_ref, "process_type": process_type.value},
    )
    db.flush()
    logger.info("Created case %s (%s)", case.case_ref, process_type.value)
    return case, timing_warnings(process_type, admission_date, today)


def get_case(db: Session, ctx: SessionContext, case_id: UUID) -> Case:
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFound("Case not found.")
    check_case_access(case, ctx)
    return case


def update_clinical_dates(
    db: Session,
    ctx: SessionContext,
    case_id: UUID,
    admission_date: date | None = None,
    discharge_date: date | None = None,
) -> ClinicalDetails:
    """
    Set admission/discharge dates. An existing follow-up schedule keeps its
    due dates; only cases without milestones pick up the new anchor.
    """
    case = get_case(db, ctx, case_id)
    clinical = case.clinical_details
    if clinical is None:
        clinical = ClinicalDetails(case_id=case.id)
        db.add(clinical)
    changes = {}
    if admission_date is not None:
        clinical.admission_date = admission_date
        changes["admission_date"] = admission_date.isoformat()
    if discharge_date is not None:
        clinical.discharge_date = discharge_date
        changes["discharge_date"] = discharge_date.isoformat()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="CLINICAL_DATES_UPDATED",
        entity_type="case",
        entity_id=case.id,
        metadata=changes,
    )
    db.flush()
    return clinical
