from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.core.errors import NotFound
from case_engine.models.models import Hospital
from case_engine.schemas.schemas import HospitalProcessTypeResponse
from case_engine.services.process_type import resolve_process_type

router = APIRouter(prefix="/hospitals", tags=["hospitals"])


@router.get("/{hospital_id}/process-type", response_model=HospitalProcessTypeResponse)
def get_process_type(
    hospital_id: UUID,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    """Case creation shows this read-only; a missing mapping blocks it."""
    if db.query(Hospital).filter(Hospital.id == hospital_id).first() is None:
        raise NotFound("Hospital not found.")
    process_type = resolve_process_type(db, hospital_id)
    return HospitalProcessTypeResponse(
        hospital_id=hospital_id,
        process_type=process_type,
        mapping_missing=process_type is None,
    )
