import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    String,
    DateTime,
    ForeignKey,
    Text,
    Boolean,
    Integer,
    Date,
    Enum as SAEnum,
    JSON,
    TypeDecorator,
    CHAR,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from case_engine.core.database import Base
from case_engine.models.enums import (
    ProcessType,
    CaseStatus,
    MilestoneStatus,
    MetricValueType,
    IntakeDocument,
)


# Cross-database UUID type: uses CHAR(32) so it works on both PostgreSQL and SQLite
class GUID(TypeDecorator):
    """Platform-independent UUID type. Stores as CHAR(32) in SQLite."""

    impl = CHAR(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            if isinstance(value, uuid.UUID):
                return value.hex
            return uuid.UUID(value).hex
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return uuid.UUID(value)
        return value


def utcnow():
    return datetime.now(timezone.utc)


def new_uuid():
    return uuid.uuid4()


# ── Hospitals ─────────────────────────────────────────────────────────────────
class Hospital(Base):
    __tablename__ = "hospitals"

    id = Column(GUID, primary_key=True, default=new_uuid)
    name = Column(String(255), nullable=False)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    process_maps = relationship("HospitalProcessMap", back_populates="hospital")


# ── Users ─────────────────────────────────────────────────────────────────────
class User(Base):
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=new_uuid)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    password_hash = Column(String(255), nullable=False)
    # List of UserRole values; the active one is chosen at login.
    roles = Column(JSON, nullable=False, default=list)
    hospital_id = Column(GUID, ForeignKey("hospitals.id"), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    hospital = relationship("Hospital")


# ── Hospital → process type mapping ───────────────────────────────────────────
class HospitalProcessMap(Base):
    __tablename__ = "hospital_process_maps"

    id = Column(GUID, primary_key=True, default=new_uuid)
    hospital_id = Column(GUID, ForeignKey("hospitals.id"), nullable=False, index=True)
    process_type = Column(SAEnum(ProcessType, name="process_type"), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    effective_from_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    hospital = relationship("Hospital", back_populates="process_maps")


# ── Cases ─────────────────────────────────────────────────────────────────────
class Case(Base):
    __tablename__ = "cases"

    id = Column(GUID, primary_key=True, default=new_uuid)
    case_ref = Column(String(50), unique=True, nullable=False)
    process_type = Column(SAEnum(ProcessType, name="process_type"), nullable=False)
    hospital_id = Column(GUID, ForeignKey("hospitals.id"), nullable=False, index=True)
    # Free text at the store boundary; legacy values are tolerated.
    case_status = Column(String(50), nullable=False, default=CaseStatus.DRAFT.value)
    beneficiary_name = Column(String(255), nullable=True)
    intake_date = Column(Date, nullable=False)
    closure_date = Column(Date, nullable=True)
    created_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    last_action_at = Column(DateTime(timezone=True), default=utcnow)

    hospital = relationship("Hospital")
    created_by = relationship("User", foreign_keys=[created_by_user_id])
    clinical_details = relationship(
        "ClinicalDetails", back_populates="case", uselist=False
    )
    milestones = relationship(
        "FollowupMilestone",
        back_populates="case",
        order_by="FollowupMilestone.milestone_months",
    )


# ── Clinical details ──────────────────────────────────────────────────────────
class ClinicalDetails(Base):
    __tablename__ = "clinical_details"

    id = Column(GUID, primary_key=True, default=new_uuid)
    case_id = Column(GUID, ForeignKey("cases.id"), nullable=False, unique=True)
    diagnosis = Column(Text, nullable=True)
    summary = Column(Text, nullable=True)
    doctor_name = Column(String(255), nullable=True)
    admission_date = Column(Date, nullable=True)
    discharge_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="clinical_details")


# ── Follow-up milestones ──────────────────────────────────────────────────────
class FollowupMilestone(Base):
    __tablename__ = "followup_milestones"
    __table_args__ = (
        UniqueConstraint("case_id", "milestone_months", name="uq_milestone_case_months"),
    )

    id = Column(GUID, primary_key=True, default=new_uuid)
    case_id = Column(GUID, ForeignKey("cases.id"), nullable=False, index=True)
    milestone_months = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False)
    followup_date = Column(Date, nullable=True)
    status = Column(
        SAEnum(MilestoneStatus, name="milestone_status"),
        nullable=False,
        default=MilestoneStatus.UPCOMING,
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    case = relationship("Case", back_populates="milestones")


class FollowupMetricDefinition(Base):
    __tablename__ = "followup_metric_definitions"
    __table_args__ = (
        UniqueConstraint("milestone_months", "metric_key", name="uq_metric_def_months_key"),
    )

    id = Column(GUID, primary_key=True, default=new_uuid)
    milestone_months = Column(Integer, nullable=False, index=True)
    metric_key = Column(String(100), nullable=False)
    metric_label = Column(String(255), nullable=False)
    value_type = Column(SAEnum(MetricValueType, name="metric_value_type"), nullable=False)
    allow_na = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class FollowupMetricValue(Base):
    __tablename__ = "followup_metric_values"
    __table_args__ = (
        UniqueConstraint(
            "case_id", "milestone_months", "metric_key", name="uq_metric_value_case_months_key"
        ),
    )

    id = Column(GUID, primary_key=True, default=new_uuid)
    case_id = Column(GUID, ForeignKey("cases.id"), nullable=False, index=True)
    milestone_months = Column(Integer, nullable=False)
    metric_key = Column(String(100), nullable=False)
    value_boolean = Column(Boolean, nullable=True)
    value_text = Column(Text, nullable=True)
    captured_at = Column(DateTime(timezone=True), default=utcnow)
    captured_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)


# ── Intake sections ───────────────────────────────────────────────────────────
class IntakeSectionRecord(Base):
    __tablename__ = "intake_sections"
    __table_args__ = (
        UniqueConstraint("case_id", "document", "section_key", name="uq_intake_section"),
    )

    id = Column(GUID, primary_key=True, default=new_uuid)
    case_id = Column(GUID, ForeignKey("cases.id"), nullable=False, index=True)
    document = Column(SAEnum(IntakeDocument, name="intake_document"), nullable=False)
    section_key = Column(String(100), nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    updated_by_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


# ── Audit Logs ────────────────────────────────────────────────────────────────
class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(GUID, primary_key=True, default=new_uuid)
    actor_user_id = Column(GUID, ForeignKey("users.id"), nullable=True)
    action = Column(String(100), nullable=False)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(GUID, nullable=True)
    metadata_json = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    actor = relationship("User")
