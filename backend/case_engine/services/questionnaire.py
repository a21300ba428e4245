"""
Per-milestone follow-up questionnaires.

Answers are captured against the metric catalog for the milestone. A
BOOLEAN metric's yes/no/na answer is stored as True/False/absent; a TEXT
metric stores the raw string. Submitting a questionnaire sets the
milestone's follow-up date, which retires it.
"""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from case_engine.core.deps import SessionContext
from case_engine.core.errors import (
    AccessDenied,
    NotFound,
    PreconditionFailed,
    StoreFailure,
    ValidationError,
)
from case_engine.models.enums import MetricValueType
from case_engine.models.models import (
    FollowupMetricDefinition,
    FollowupMetricValue,
    FollowupMilestone,
    utcnow,
)
from case_engine.services.audit import log_audit
from case_engine.services.milestones import MILESTONE_MONTHS, get_monitoring_case

logger = logging.getLogger(__name__)

BOOLEAN_RESPONSES = {"yes": True, "no": False, "na": None}


def load_metrics(db: Session, milestone_months: int) -> list[FollowupMetricDefinition]:
    return (
        db.query(FollowupMetricDefinition)
        .filter(FollowupMetricDefinition.milestone_months == milestone_months)
        .order_by(
            FollowupMetricDefinition.display_order,
            FollowupMetricDefinition.metric_key,
        )
        .all()
    )


def load_values(db: Session, case_id: UUID, milestone_months: int) -> list[FollowupMetricValue]:
    return (
        db.query(FollowupMetricValue)
        .filter(
            FollowupMetricValue.case_id == case_id,
            FollowupMetricValue.milestone_months == milestone_months,
        )
        .order_by(FollowupMetricValue.metric_key)
        .all()
    )


def encode_response(definition: FollowupMetricDefinition, raw) -> dict:
    """Turn one UI response into the value columns its definition allows."""
    if definition.value_type == MetricValueType.BOOLEAN:
        token = raw.strip().lower() if isinstance(raw, str) else raw
        if token not in BOOLEAN_RESPONSES:
            raise ValueError("must be one of yes, no, na")
        if token == "na" and not definition.allow_na:
            raise ValueError("N/A is not allowed for this metric")
        return {"value_boolean": BOOLEAN_RESPONSES[token], "value_text": None}

    if raw is None:
        return {"value_boolean": None, "value_text": None}
    if not isinstance(raw, str):
        raise ValueError("must be text")
    return {"value_boolean": None, "value_text": raw}


def encode_responses(
    definitions: list[FollowupMetricDefinition], responses: dict[str, object]
) -> dict[str, dict]:
    by_key = {d.metric_key: d for d in definitions}
    encoded = {}
    errors = {}
    for metric_key, raw in responses.items():
        definition = by_key.get(metric_key)
        if definition is None:
            errors[metric_key] = f"{metric_key} is not a metric for this milestone"
            continue
        try:
            encoded[metric_key] = encode_response(definition, raw)
        except ValueError as exc:
            errors[metric_key] = f"{definition.metric_label}: {exc}"
    if errors:
        raise ValidationError("Questionnaire responses are invalid.", errors=errors)
    return encoded


def decode_values(
    definitions: list[FollowupMetricDefinition], values: list[FollowupMetricValue]
) -> dict[str, str]:
    """Stored values back to the yes/no/text responses shown to the user."""
    types = {d.metric_key: d.value_type for d in definitions}
    responses = {}
    for value in values:
        if types.get(value.metric_key) == MetricValueType.BOOLEAN:
            if value.value_boolean is not None:
                responses[value.metric_key] = "yes" if value.value_boolean else "no"
        elif value.value_text:
            responses[value.metric_key] = value.value_text
    return responses


def _get_milestone(db: Session, case_id: UUID, milestone_months: int) -> FollowupMilestone:
    milestone = (
        db.query(FollowupMilestone)
        .filter(
            FollowupMilestone.case_id == case_id,
            FollowupMilestone.milestone_months == milestone_months,
        )
        .first()
    )
    if not milestone:
        raise NotFound(f"No {milestone_months} month milestone for this case.")
    return milestone


def save_values(
    db: Session,
    case_id: UUID,
    milestone_months: int,
    encoded: dict[str, dict],
    captured_by: UUID | None = None,
) -> list[FollowupMetricValue]:
    """Upsert one row per submitted metric key; other keys are left alone."""
    existing = {v.metric_key: v for v in load_values(db, case_id, milestone_months)}
    saved = []
    for metric_key, columns in encoded.items():
        row = existing.get(metric_key)
        if row is None:
            row = FollowupMetricValue(
                case_id=case_id,
                milestone_months=milestone_months,
                metric_key=metric_key,
            )
            db.add(row)
        row.value_boolean = columns["value_boolean"]
        row.value_text = columns["value_text"]
        row.captured_at = utcnow()
        row.captured_by_user_id = captured_by
        saved.append(row)
    db.flush()
    return saved


def set_followup_date(
    db: Session,
    case_id: UUID,
    milestone_months: int,
    followup_date: date,
    notes: str | None = None,
) -> FollowupMilestone:
    milestone = _get_milestone(db, case_id, milestone_months)
    milestone.followup_date = followup_date
    if notes:
        milestone.notes = notes
    db.flush()
    return milestone


def load_questionnaire(
    db: Session, ctx: SessionContext, case_id: UUID, milestone_months: int
) -> dict:
    get_monitoring_case(db, ctx, case_id)
    milestone = _get_milestone(db, case_id, milestone_months)
    definitions = load_metrics(db, milestone_months)
    values = load_values(db, case_id, milestone_months)
    return {
        "milestone": milestone,
        "metrics": definitions,
        "responses": decode_values(definitions, values),
        "followup_date": milestone.followup_date,
    }


def submit_questionnaire(
    db: Session,
    ctx: SessionContext,
    case_id: UUID,
    milestone_months: int,
    responses: dict[str, object],
    followup_date: date | None,
    notes: str | None = None,
) -> FollowupMilestone:
    """
    Save answers and close out the milestone.

    Nothing is written unless a follow-up date is given and every response
    matches its metric definition.
    """
    get_monitoring_case(db, ctx, case_id)
    if followup_date is None:
        raise PreconditionFailed("Please set the follow-up date.")
    milestone = _get_milestone(db, case_id, milestone_months)
    encoded = encode_responses(load_metrics(db, milestone_months), responses)

    try:
        save_values(db, case_id, milestone_months, encoded, captured_by=ctx.user_id)
        set_followup_date(db, case_id, milestone_months, followup_date, notes)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception(
            "Failed to save %d month questionnaire for case %s", milestone_months, case_id
        )
        raise StoreFailure("Failed to save questionnaire.") from exc

    log_audit(
        db,
        actor_user_id=ctx.user_id,
        action="FOLLOWUP_COMPLETED",
        entity_type="case",
        entity_id=case_id,
        metadata={
            "milestone_months": milestone_months,
            "followup_date": followup_date.isoformat(),
            "metrics": sorted(encoded),
        },
    )
    logger.info(
        "Case %s: %d month follow-up completed on %s",
        case_id,
        milestone_months,
        followup_date.isoformat(),
    )
    return milestone


# ── Metric catalog (admin reference data) ────────────────────────────────────
def _require_admin(ctx: SessionContext) -> None:
    if not ctx.is_admin:
        raise AccessDenied("Only administrators can manage follow-up metrics.")


def _check_months(milestone_months: int) -> None:
    if milestone_months not in MILESTONE_MONTHS:
        raise ValidationError(
            "Invalid milestone.",
            errors={
                "milestone_months": "must be one of "
                + ", ".join(str(m) for m in MILESTONE_MONTHS)
            },
        )


def _check_unique_key(
    db: Session, milestone_months: int, metric_key: str, exclude_id: UUID | None = None
) -> None:
    query = db.query(FollowupMetricDefinition).filter(
        FollowupMetricDefinition.milestone_months == milestone_months,
        FollowupMetricDefinition.metric_key == metric_key,
    )
    if exclude_id is not None:
        query = query.filter(FollowupMetricDefinition.id != exclude_id)
    if query.first() is not None:
        raise ValidationError(
            "Metric already defined for this milestone.",
            errors={"metric_key": f"{metric_key} already exists for {milestone_months} months"},
        )


def list_metric_definitions(db: Session) -> list[FollowupMetricDefinition]:
    return (
        db.query(FollowupMetricDefinition)
        .order_by(
            FollowupMetricDefinition.milestone_months,
            FollowupMetricDefinition.display_order,
        )
        .all()
    )


def create_metric_definition(db: Session, ctx: SessionContext, data: dict) -> FollowupMetricDefinition:
    _require_admin(ctx)
    _check_months(data["milestone_months"])
    _check_unique_key(db, data["milestone_months"], data["metric_key"])
    definition = FollowupMetricDefinition(**data)
    db.add(definition)
    db.flush()
    return definition


# Stored values are read through these; they cannot change once answers exist.
VALUE_SHAPE_FIELDS = ("milestone_months", "metric_key", "value_type")


def _check_captured_values(
    db: Session, definition: FollowupMetricDefinition, changes: dict
) -> None:
    changed = [
        name
        for name in VALUE_SHAPE_FIELDS
        if changes.get(name) is not None and changes[name] != getattr(definition, name)
    ]
    if not changed:
        return
    captured = (
        db.query(FollowupMetricValue.id)
        .filter(
            FollowupMetricValue.milestone_months == definition.milestone_months,
            FollowupMetricValue.metric_key == definition.metric_key,
        )
        .first()
    )
    if captured is not None:
        raise ValidationError(
            "Metric already has captured answers.",
            errors={
                name: f"cannot change {name} once answers are captured" for name in changed
            },
        )


def update_metric_definition(
    db: Session, ctx: SessionContext, definition_id: UUID, changes: dict
) -> FollowupMetricDefinition:
    _require_admin(ctx)
    definition = (
        db.query(FollowupMetricDefinition)
        .filter(FollowupMetricDefinition.id == definition_id)
        .first()
    )
    if not definition:
        raise NotFound("Metric definition not found.")
    months = changes.get("milestone_months") or definition.milestone_months
    key = changes.get("metric_key") or definition.metric_key
    _check_months(months)
    _check_unique_key(db, months, key, exclude_id=definition.id)
    _check_captured_values(db, definition, changes)
    for field_name, value in changes.items():
        if value is not None:
            setattr(definition, field_name, value)
    db.flush()
    return definition


def delete_metric_definition(db: Session, ctx: SessionContext, definition_id: UUID) -> None:
    _require_admin(ctx)
    definition = (
        db.query(FollowupMetricDefinition)
        .filter(FollowupMetricDefinition.id == definition_id)
        .first()
    )
    if not definition:
        raise NotFound("Metric definition not found.")
    db.delete(definition)
    db.flush()
