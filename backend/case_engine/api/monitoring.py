from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.models.models import FollowupMilestone
from case_engine.schemas.schemas import (
    MilestoneResponse,
    MilestoneProgress,
    MonitoringOverviewResponse,
    MetricDefinitionResponse,
    QuestionnaireResponse,
    QuestionnaireSubmit,
)
from case_engine.services import milestones as milestone_service
from case_engine.services import questionnaire as questionnaire_service

router = APIRouter(prefix="/cases/{case_id}/monitoring", tags=["monitoring"])


def milestone_response(milestone: FollowupMilestone, today: date) -> MilestoneResponse:
    return MilestoneResponse(
        id=milestone.id,
        milestone_months=milestone.milestone_months,
        due_date=milestone.due_date,
        followup_date=milestone.followup_date,
        status=milestone.status,
        display_status=milestone_service.milestone_display_status(milestone, today),
        notes=milestone.notes,
    )


@router.get("", response_model=MonitoringOverviewResponse)
def get_monitoring_overview(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    today = date.today()
    overview = milestone_service.load_monitoring_overview(db, ctx, case_id, today)
    db.commit()
    progress = overview["progress"]
    next_due = progress["next_due"]
    return MonitoringOverviewResponse(
        case_id=overview["case"].id,
        case_ref=overview["case"].case_ref,
        case_status=overview["case"].case_status,
        anchor_date=overview["anchor_date"],
        anchor_source=overview["anchor_source"],
        milestones=[milestone_response(m, today) for m in overview["milestones"]],
        progress=MilestoneProgress(
            completed=progress["completed"],
            total=progress["total"],
            next_due=milestone_response(next_due, today) if next_due else None,
        ),
    )


@router.get("/milestones", response_model=list[MilestoneResponse])
def list_milestones(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    milestone_service.get_monitoring_case(db, ctx, case_id)
    today = date.today()
    return [
        milestone_response(m, today)
        for m in milestone_service.list_followup_milestones(db, case_id)
    ]


@router.post("/milestones", response_model=list[MilestoneResponse], status_code=201)
def initialize_milestones(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    milestones = milestone_service.initialize_milestones_for_case(db, ctx, case_id)
    db.commit()
    today = date.today()
    return [milestone_response(m, today) for m in milestones]


@router.get("/milestones/{months}/questionnaire", response_model=QuestionnaireResponse)
def get_questionnaire(
    case_id: UUID,
    months: int,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    loaded = questionnaire_service.load_questionnaire(db, ctx, case_id, months)
    return QuestionnaireResponse(
        milestone=milestone_response(loaded["milestone"], date.today()),
        metrics=[MetricDefinitionResponse.model_validate(d) for d in loaded["metrics"]],
        responses=loaded["responses"],
        followup_date=loaded["followup_date"],
    )


@router.put("/milestones/{months}/questionnaire", response_model=MilestoneResponse)
def submit_questionnaire(
    case_id: UUID,
    months: int,
    body: QuestionnaireSubmit,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    milestone = questionnaire_service.submit_questionnaire(
        db,
        ctx,
        case_id,
        months,
        responses=body.responses,
        followup_date=body.followup_date,
        notes=body.notes,
    )
    db.commit()
    db.refresh(milestone)
    return milestone_response(milestone, date.today())
