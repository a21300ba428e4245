"""
Hospital -> process type resolution and the mapping reference data behind it.

At most one active mapping per hospital is enforced when mappings are
written. Rows that predate the check are resolved deterministically: the
latest effective_from_date wins, then the latest created_at, then the id.
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session, joinedload

from case_engine.core.deps import SessionContext
from case_engine.core.errors import AccessDenied, NotFound, ValidationError
from case_engine.models.enums import ProcessType
from case_engine.models.models import Hospital, HospitalProcessMap
from case_engine.services.audit import log_audit

logger = logging.getLogger(__name__)


def _active_maps(db: Session, hospital_id: UUID, exclude_id: UUID | None = None):
    query = db.query(HospitalProcessMap).filter(
        HospitalProcessMap.hospital_id == hospital_id,
        HospitalProcessMap.is_active.is_(True),
    )
    if exclude_id is not None:
        query = query.filter(HospitalProcessMap.id != exclude_id)
    return query


def resolve_process_type(db: Session, hospital_id: UUID) -> ProcessType | None:
    """
    Return the hospital's active process type.

    None means no active mapping exists; callers must block case creation
    and send the operator to an administrator.
    """
    maps = (
        _active_maps(db, hospital_id)
        .order_by(
            HospitalProcessMap.effective_from_date.desc(),
            HospitalProcessMap.created_at.desc(),
            HospitalProcessMap.id,
        )
        .all()
    )
    if not maps:
        logger.warning("No active process mapping for hospital %s", hospital_id)
        return None
    if len(maps) > 1:
        logger.warning(
            "Hospital %s has %d active process mappings; using %s effective %s",
            hospital_id,
            len(maps),
            maps[0].process_type.value,
            maps[0].effective_from_date.isoformat(),
        )
    return maps[0].process_type


def _require_admin(ctx: SessionContext) -> None:
    if not ctx.is_admin:
        raise AccessDenied("Only administrators can manage process mappings.")


def _get_map_or_404(db: Session, map_id: UUID) -> HospitalProcessMap:
    row = (
        db.query(HospitalProcessMap)
        .options(joinedload(HospitalProcessMap.hospital))
        .filter(HospitalProcessMap.id == map_id)
        .first()
    )
    if not row:
        raise NotFound("Process mapping not found.")
    return row


def _ensure_single_active(db: Session, hospital_id: UUID, exclude_id: UUID | None = None):
    if _active_maps(db, hospital_id, exclude_id).first() is not None:
        raise ValidationError(
            "Hospital already has an active process mapping. Deactivate it first.",
            errors={"is_active": "Only one active mapping is allowed per hospital"},
        )


def list_process_maps(db: Session) -> list[HospitalProcessMap]:
    return (
        db.query(HospitalProcessMap)
        .options(joinedload(HospitalProcessMap.hospital))
        .order_by(HospitalProcessMap.updated_at.desc())
        .all()
    )


def create_process_map(
    db: Session,
    ctx: SessionContext,
    hospital_id: UUID,
    process_type: ProcessType,
    effective_from_date: date,
    is_active: bool = True,
    notes: str | None = None,
) -> HospitalProcessMap:
    _require_admin(ctx)
    if db.query(Hospital).filter(Hospital.id == hospital_id).first() is None:
        raise NotFound("Hospital not found.")
    if is_active:
        _ensure_single_active(db, hospital_id)

    row = HospitalProcessMap(
        hospital_id=hospital_id,
        process_type=process_type,
        is_active=is_active,
        effective_from_date=effective_from_date,
        notes=notes,
    )
    db.add(row)
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="PROCESS_MAP_CREATED",
        entity_type="hospital_process_map",
        entity_id=row.id,
        metadata={"hospital_id": str(hospital_id), "process_type": process_type.value},
    )
    return row


def update_process_map(
    db: Session,
    ctx: SessionContext,
    map_id: UUID,
    changes: dict,
) -> HospitalProcessMap:
    _require_admin(ctx)
    row = _get_map_or_404(db, map_id)
    if changes.get("is_active") and not row.is_active:
        _ensure_single_active(db, row.hospital_id, exclude_id=row.id)

    for field_name, value in changes.items():
        if value is not None:
            setattr(row, field_name, value)
    db.flush()
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="PROCESS_MAP_UPDATED",
        entity_type="hospital_process_map",
        entity_id=row.id,
        metadata={
            k: str(getattr(v, "value", v)) for k, v in changes.items() if v is not None
        },
    )
    return row


def delete_process_map(db: Session, ctx: SessionContext, map_id: UUID) -> None:
    _require_admin(ctx)
    row = _get_map_or_404(db, map_id)
    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="PROCESS_MAP_DELETED",
        entity_type="hospital_process_map",
        entity_id=row.id,
        metadata={"hospital_id": str(row.hospital_id), "process_type": row.process_type.value},
    )
    db.delete(row)
    db.flush()
