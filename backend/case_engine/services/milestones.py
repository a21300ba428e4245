"""
Post-approval follow-up schedule.

Each case gets one milestone per entry in MILESTONE_MONTHS, due that many
calendar months after the case's anchor date (discharge, falling back to
admission). Due dates are fixed at creation and never recomputed; a
milestone is retired by setting its follow-up date.
"""

import calendar
import logging
from datetime import date
from uuid import UUID

from sqlalchemy import insert as generic_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from case_engine.core.deps import SessionContext
from case_engine.core.errors import AccessDenied, NotFound, PreconditionFailed, StoreFailure
from case_engine.models.enums import CaseStatus, MilestoneStatus
from case_engine.models.models import Case, ClinicalDetails, FollowupMilestone, new_uuid, utcnow

logger = logging.getLogger(__name__)

MILESTONE_MONTHS: tuple[int, ...] = (3, 6, 9, 12, 18, 24)

MONITORED_STATUSES = {CaseStatus.APPROVED.value, CaseStatus.CLOSED.value}


def add_months(anchor: date, months: int) -> date:
    """Same day-of-month `months` later, clamped to the target month's last day."""
    month_index = anchor.month - 1 + months
    year = anchor.year + month_index // 12
    month = month_index % 12 + 1
    day = min(anchor.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def resolve_anchor_date(clinical: ClinicalDetails | None) -> date | None:
    if clinical is None:
        return None
    return clinical.discharge_date or clinical.admission_date


def milestone_display_status(milestone: FollowupMilestone, today: date | None = None) -> MilestoneStatus:
    today = today or date.today()
    if milestone.followup_date is not None or milestone.status == MilestoneStatus.COMPLETED:
        return MilestoneStatus.COMPLETED
    if milestone.due_date <= today:
        return MilestoneStatus.DUE
    return MilestoneStatus.UPCOMING


def milestone_progress(milestones: list[FollowupMilestone], today: date | None = None) -> dict:
    today = today or date.today()
    ordered = sorted(milestones, key=lambda m: m.milestone_months)
    completed = [
        m for m in ordered if milestone_display_status(m, today) == MilestoneStatus.COMPLETED
    ]
    next_due = next(
        (m for m in ordered if milestone_display_status(m, today) != MilestoneStatus.COMPLETED),
        None,
    )
    return {
        "completed": len(completed),
        "total": len(ordered),
        "next_due": next_due,
    }


def list_followup_milestones(db: Session, case_id: UUID) -> list[FollowupMilestone]:
    return (
        db.query(FollowupMilestone)
        .filter(FollowupMilestone.case_id == case_id)
        .order_by(FollowupMilestone.milestone_months)
        .all()
    )


def _insert_ignoring_conflicts(db: Session, rows: list[dict]) -> None:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        insert = None

    if insert is not None:
        stmt = (
            insert(FollowupMilestone)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["case_id", "milestone_months"])
        )
        db.execute(stmt)
        return

    # No native upsert: a racing writer makes the whole batch conflict.
    try:
        with db.begin_nested():
            db.execute(generic_insert(FollowupMilestone).values(rows))
    except IntegrityError:
        logger.info("Milestones already created concurrently; keeping existing rows")


def ensure_followup_milestones(
    db: Session, case_id: UUID, anchor_date: date | None
) -> list[FollowupMilestone]:
    """
    Return the case's milestones, creating the full set if none exist.

    Idempotent: existing rows are returned unchanged. Creation is one
    insert-or-ignore statement keyed on (case_id, milestone_months), so
    concurrent first-time callers converge on a single set.
    """
    if db.query(Case.id).filter(Case.id == case_id).first() is None:
        raise NotFound("Case not found.")
    if anchor_date is None:
        raise PreconditionFailed(
            "Please set admission or discharge date first before initializing milestones."
        )

    existing = list_followup_milestones(db, case_id)
    if existing:
        return existing

    now = utcnow()
    rows = [
        {
            "id": new_uuid(),
            "case_id": case_id,
            "milestone_months": months,
            "due_date": add_months(anchor_date, months),
            "followup_date": None,
            "status": MilestoneStatus.UPCOMING,
            "created_at": now,
            "updated_at": now,
        }
        for months in MILESTONE_MONTHS
    ]
    try:
        _insert_ignoring_conflicts(db, rows)
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to create follow-up milestones for case %s", case_id)
        raise StoreFailure("Failed to initialize milestones.") from exc

    # The insert bypassed the identity map; re-read what the store holds.
    db.expire_all()
    milestones = list_followup_milestones(db, case_id)
    logger.info(
        "Follow-up milestones ready for case %s (anchor %s, %d rows)",
        case_id,
        anchor_date.isoformat(),
        len(milestones),
    )
    return milestones


def get_clinical_details(db: Session, case_id: UUID) -> ClinicalDetails | None:
    return db.query(ClinicalDetails).filter(ClinicalDetails.case_id == case_id).first()


def _check_monitoring_access(case: Case, ctx: SessionContext) -> None:
    if not ctx.can_edit_monitoring:
        raise AccessDenied(
            "Monitoring is only available to BENI volunteers and administrators."
        )
    if case.case_status not in MONITORED_STATUSES:
        raise PreconditionFailed("Monitoring is only available for approved cases.")


def get_monitoring_case(db: Session, ctx: SessionContext, case_id: UUID) -> Case:
    case = db.query(Case).filter(Case.id == case_id).first()
    if not case:
        raise NotFound("Case not found.")
    _check_monitoring_access(case, ctx)
    return case


def initialize_milestones_for_case(
    db: Session, ctx: SessionContext, case_id: UUID
) -> list[FollowupMilestone]:
    """Operator action: build the schedule from the case's clinical dates."""
    get_monitoring_case(db, ctx, case_id)
    anchor = resolve_anchor_date(get_clinical_details(db, case_id))
    return ensure_followup_milestones(db, case_id, anchor)


def load_monitoring_overview(
    db: Session, ctx: SessionContext, case_id: UUID, today: date | None = None
) -> dict:
    """
    Everything the monitoring view needs. Creates the schedule lazily the
    first time a case with a known anchor date is viewed.
    """
    case = get_monitoring_case(db, ctx, case_id)
    clinical = get_clinical_details(db, case_id)
    anchor = resolve_anchor_date(clinical)

    milestones = list_followup_milestones(db, case_id)
    if not milestones and anchor is not None:
        milestones = ensure_followup_milestones(db, case_id, anchor)

    anchor_source = None
    if clinical is not None and clinical.discharge_date:
        anchor_source = "discharge"
    elif clinical is not None and clinical.admission_date:
        anchor_source = "admission"

    return {
        "case": case,
        "anchor_date": anchor,
        "anchor_source": anchor_source,
        "milestones": milestones,
        "progress": milestone_progress(milestones, today),
    }
