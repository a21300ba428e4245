from dataclasses import asdict
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.models.enums import IntakeDocument
from case_engine.schemas.schemas import IntakeSectionResponse, IntakeCompletenessResponse
from case_engine.services import intake as intake_service
from case_engine.services.workflow import get_case

router = APIRouter(prefix="/cases/{case_id}", tags=["intake"])


@router.get("/intake/{document}", response_model=dict[str, IntakeSectionResponse])
def get_document(
    case_id: UUID,
    document: IntakeDocument,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    sections = intake_service.get_document(db, ctx, case_id, document)
    return {
        key: IntakeSectionResponse(
            label=section["label"],
            data=section["data"],
            progress=asdict(section["progress"]),
            status=section["status"],
        )
        for key, section in sections.items()
    }


@router.put("/intake/{document}/{section_key}", response_model=IntakeSectionResponse)
def save_section(
    case_id: UUID,
    document: IntakeDocument,
    section_key: str,
    data: dict = Body(...),
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    record = intake_service.save_section(db, ctx, case_id, document, section_key, data)
    db.commit()
    db.refresh(record)
    progress = intake_service.section_progress(document, section_key, record.data)
    return IntakeSectionResponse(
        label=intake_service.section_label(document, section_key),
        data=record.data,
        progress=asdict(progress),
        status=intake_service.section_status(progress),
    )


@router.get("/intake-completeness", response_model=IntakeCompletenessResponse)
def get_intake_completeness(
    case_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    get_case(db, ctx, case_id)
    return intake_service.intake_completeness(db, case_id)
