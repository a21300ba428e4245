from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.models.enums import StatusGroup
from case_engine.models.models import Case
from case_engine.schemas.schemas import (
    CaseCreate,
    CaseCreatedResponse,
    CaseSummaryResponse,
    CaseDetailResponse,
    CaseStatusUpdate,
    CommitteeDecision,
    ClinicalDatesUpdate,
    ClinicalDetailsResponse,
    SubmitReadinessResponse,
)
from case_engine.services import workflow
from case_engine.services.intake import submit_readiness
from case_engine.services.status_taxonomy import classify

router = APIRouter(prefix="/cases", tags=["cases"])


def case_summary(case: Case) -> CaseSummaryResponse:
    return CaseSummaryResponse(
        id=case.id,
        case_ref=case.case_ref,
        process_type=case.process_type,
        hospital_id=case.hospital_id,
        case_status=case.case_status,
        status_group=classify(case.case_status),
        beneficiary_name=case.beneficiary_name,
        intake_date=case.intake_date,
        last_action_at=case.last_action_at,
    )


def case_detail(case: Case) -> CaseDetailResponse:
    clinical = case.clinical_details
    return CaseDetailResponse(
        **case_summary(case).model_dump(),
        closure_date=case.closure_date,
        created_at=case.created_at,
        clinical_details=(
            ClinicalDetailsResponse.model_validate(clinical) if clinical else None
        ),
    )


@router.post("", response_model=CaseCreatedResponse, status_code=201)
def create_case(
    body: CaseCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    case, warnings = workflow.create_case(
        db,
        ctx,
        hospital_id=body.hospital_id,
        intake_date=body.intake_date,
        admission_date=body.admission_date,
        beneficiary_name=body.beneficiary_name,
        diagnosis=body.diagnosis,
        summary=body.summary,
    )
    db.commit()
    db.refresh(case)
    return CaseCreatedResponse(case=case_detail(case), warnings=warnings)


@router.get("", response_model=list[CaseSummaryResponse])
def list_cases(
    status_group: StatusGroup | None = None,
    hospital_id: UUID | None = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    query = db.query(Case)

    if ctx.is_hospital_scoped:
        query = query.filter(Case.hospital_id == ctx.hospital_id)
    elif hospital_id:
        query = query.filter(Case.hospital_id == hospital_id)

    cases = query.order_by(Case.created_at.desc()).all()
    if status_group:
        cases = [c for c in cases if classify(c.case_status) == status_group]
    return [case_summary(c) for c in cases]


@router.get("/{case_id}", response_model=CaseDetailResponse)
def get_case(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    return case_detail(workflow.get_case(db, ctx, case_id))


@router.post("/{case_id}/status", response_model=CaseDetailResponse)
def update_status(
    case_id: UUID,
    body: CaseStatusUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    case = workflow.get_case(db, ctx, case_id)
    workflow.transition_case(db, ctx, case, body.new_status)
    db.commit()
    db.refresh(case)
    return case_detail(case)


@router.post("/{case_id}/committee-decision", response_model=CaseDetailResponse)
def record_committee_decision(
    case_id: UUID,
    body: CommitteeDecision,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    case = workflow.get_case(db, ctx, case_id)
    workflow.apply_committee_outcome(db, ctx, case, body.outcome, body.comments)
    db.commit()
    db.refresh(case)
    return case_detail(case)


@router.patch("/{case_id}/clinical-dates", response_model=ClinicalDetailsResponse)
def update_clinical_dates(
    case_id: UUID,
    body: ClinicalDatesUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    clinical = workflow.update_clinical_dates(
        db, ctx, case_id, body.admission_date, body.discharge_date
    )
    db.commit()
    db.refresh(clinical)
    return clinical


@router.get("/{case_id}/submit-readiness", response_model=SubmitReadinessResponse)
def get_submit_readiness(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    workflow.get_case(db, ctx, case_id)
    return submit_readiness(db, case_id)
