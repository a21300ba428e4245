from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from case_engine.core.database import get_db
from case_engine.core.deps import get_session_context, SessionContext
from case_engine.models.models import Case
from case_engine.schemas.schemas import StatusGroupCount
from case_engine.services.status_taxonomy import summarize_status_groups

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/status-groups", response_model=list[StatusGroupCount])
def status_groups(
    hospital_id: UUID | None = None,
    db: Session = Depends(get_db),
    ctx: SessionContext = Depends(get_session_context),
):
    query = db.query(Case.case_status)
    if ctx.is_hospital_scoped:
        query = query.filter(Case.hospital_id == ctx.hospital_id)
    elif hospital_id:
        query = query.filter(Case.hospital_id == hospital_id)

    counts = summarize_status_groups(status for (status,) in query.all())
    return [StatusGroupCount(group=group, count=count) for group, count in counts.items()]
