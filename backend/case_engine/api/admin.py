from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.core.errors import AccessDenied
from case_engine.schemas.schemas import (
    ProcessMapCreate,
    ProcessMapUpdate,
    ProcessMapResponse,
    MetricDefinitionCreate,
    MetricDefinitionUpdate,
    MetricDefinitionResponse,
)
from case_engine.services import process_type as process_type_service
from case_engine.services import questionnaire as questionnaire_service

router = APIRouter(prefix="/admin", tags=["admin"])


def _require_admin(ctx: SessionContext):
    if not ctx.is_admin:
        raise AccessDenied("Administrator role required.")


# ── Process mappings ──────────────────────────────────────────────────────────
@router.get("/process-maps", response_model=list[ProcessMapResponse])
def list_process_maps(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    _require_admin(ctx)
    return process_type_service.list_process_maps(db)


@router.post("/process-maps", response_model=ProcessMapResponse, status_code=201)
def create_process_map(
    body: ProcessMapCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    row = process_type_service.create_process_map(
        db,
        ctx,
        hospital_id=body.hospital_id,
        process_type=body.process_type,
        effective_from_date=body.effective_from_date,
        is_active=body.is_active,
        notes=body.notes,
    )
    db.commit()
    db.refresh(row)
    return row


@router.patch("/process-maps/{map_id}", response_model=ProcessMapResponse)
def update_process_map(
    map_id: UUID,
    body: ProcessMapUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    row = process_type_service.update_process_map(
        db, ctx, map_id, body.model_dump(exclude_unset=True)
    )
    db.commit()
    db.refresh(row)
    return row


@router.delete("/process-maps/{map_id}", status_code=204)
def delete_process_map(
    map_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    process_type_service.delete_process_map(db, ctx, map_id)
    db.commit()


# ── Follow-up metric catalog ──────────────────────────────────────────────────
@router.get("/followup-metrics", response_model=list[MetricDefinitionResponse])
def list_followup_metrics(
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    _require_admin(ctx)
    return questionnaire_service.list_metric_definitions(db)


@router.post("/followup-metrics", response_model=MetricDefinitionResponse, status_code=201)
def create_followup_metric(
    body: MetricDefinitionCreate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    definition = questionnaire_service.create_metric_definition(db, ctx, body.model_dump())
    db.commit()
    db.refresh(definition)
    return definition


@router.patch("/followup-metrics/{definition_id}", response_model=MetricDefinitionResponse)
def update_followup_metric(
    definition_id: UUID,
    body: MetricDefinitionUpdate,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    definition = questionnaire_service.update_metric_definition(
        db, ctx, definition_id, body.model_dump(exclude_unset=True)
    )
    db.commit()
    db.refresh(definition)
    return definition


@router.delete("/followup-metrics/{definition_id}", status_code=204)
def delete_followup_metric(
    definition_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    questionnaire_service.delete_metric_definition(db, ctx, definition_id)
    db.commit()
