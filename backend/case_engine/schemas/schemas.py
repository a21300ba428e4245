from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from case_engine.models.enums import (
    UserRole,
    ProcessType,
    CaseStatus,
    CommitteeOutcome,
    StatusGroup,
    MilestoneStatus,
    MetricValueType,
)


# ── Auth ──────────────────────────────────────────────────────────────────────
class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    full_name: str
    roles: list[UserRole] = Field(min_length=1)
    hospital_id: UUID | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    role: UserRole


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    active_role: UserRole


class UserResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    roles: list[UserRole]
    hospital_id: UUID | None = None

    class Config:
        from_attributes = True


class SessionResponse(BaseModel):
    user: UserResponse
    active_role: UserRole


# ── Hospital process mapping ──────────────────────────────────────────────────
class ProcessMapCreate(BaseModel):
    hospital_id: UUID
    process_type: ProcessType
    effective_from_date: date
    is_active: bool = True
    notes: str | None = None


class ProcessMapUpdate(BaseModel):
    process_type: ProcessType | None = None
    effective_from_date: date | None = None
    is_active: bool | None = None
    notes: str | None = None


class ProcessMapResponse(BaseModel):
    id: UUID
    hospital_id: UUID
    process_type: ProcessType
    is_active: bool
    effective_from_date: date
    notes: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class HospitalProcessTypeResponse(BaseModel):
    hospital_id: UUID
    process_type: ProcessType | None = None
    mapping_missing: bool


# ── Case ──────────────────────────────────────────────────────────────────────
class CaseCreate(BaseModel):
    hospital_id: UUID
    intake_date: date
    admission_date: date | None = None
    beneficiary_name: str | None = None
    diagnosis: str | None = None
    summary: str | None = None


class CaseStatusUpdate(BaseModel):
    new_status: CaseStatus


class CommitteeDecision(BaseModel):
    outcome: CommitteeOutcome
    comments: str | None = None


class ClinicalDatesUpdate(BaseModel):
    admission_date: date | None = None
    discharge_date: date | None = None


class ClinicalDetailsResponse(BaseModel):
    diagnosis: str | None = None
    summary: str | None = None
    doctor_name: str | None = None
    admission_date: date | None = None
    discharge_date: date | None = None

    class Config:
        from_attributes = True


class CaseSummaryResponse(BaseModel):
    id: UUID
    case_ref: str
    process_type: ProcessType
    hospital_id: UUID
    case_status: str
    status_group: StatusGroup
    beneficiary_name: str | None = None
    intake_date: date
    last_action_at: datetime | None = None


class CaseDetailResponse(CaseSummaryResponse):
    closure_date: date | None = None
    created_at: datetime | None = None
    clinical_details: ClinicalDetailsResponse | None = None


class CaseCreatedResponse(BaseModel):
    case: CaseDetailResponse
    warnings: list[str] = []


class SubmitReadinessResponse(BaseModel):
    can_submit: bool
    fund_application_complete: bool
    interim_summary_complete: bool
    missing_sections: list[str]


# ── Monitoring ────────────────────────────────────────────────────────────────
class MilestoneResponse(BaseModel):
    id: UUID
    milestone_months: int
    due_date: date
    followup_date: date | None = None
    status: MilestoneStatus
    display_status: MilestoneStatus
    notes: str | None = None


class MilestoneProgress(BaseModel):
    completed: int
    total: int
    next_due: MilestoneResponse | None = None


class MonitoringOverviewResponse(BaseModel):
    case_id: UUID
    case_ref: str
    case_status: str
    anchor_date: date | None = None
    anchor_source: str | None = None
    milestones: list[MilestoneResponse]
    progress: MilestoneProgress


class MetricDefinitionCreate(BaseModel):
    milestone_months: int
    metric_key: str = Field(min_length=1, max_length=100)
    metric_label: str = Field(min_length=1)
    value_type: MetricValueType
    allow_na: bool = False
    display_order: int = 0


class MetricDefinitionUpdate(BaseModel):
    milestone_months: int | None = None
    metric_key: str | None = None
    metric_label: str | None = None
    value_type: MetricValueType | None = None
    allow_na: bool | None = None
    display_order: int | None = None


class MetricDefinitionResponse(BaseModel):
    id: UUID
    milestone_months: int
    metric_key: str
    metric_label: str
    value_type: MetricValueType
    allow_na: bool
    display_order: int

    class Config:
        from_attributes = True


class QuestionnaireResponse(BaseModel):
    milestone: MilestoneResponse
    metrics: list[MetricDefinitionResponse]
    responses: dict[str, str]
    followup_date: date | None = None


class QuestionnaireSubmit(BaseModel):
    followup_date: date | None = None
    responses: dict[str, str | None] = {}
    notes: str | None = None


# ── Intake ────────────────────────────────────────────────────────────────────
class SectionProgressResponse(BaseModel):
    filled: int
    total: int
    pct: int


class IntakeSectionResponse(BaseModel):
    label: str
    data: dict
    progress: SectionProgressResponse
    status: str


class DocumentCompletenessResponse(BaseModel):
    sections: dict[str, bool]
    percent: int
    is_complete: bool


class IntakeCompletenessResponse(BaseModel):
    fund_application: DocumentCompletenessResponse
    interim_summary: DocumentCompletenessResponse
    overall_percent: int
    all_required_fields_complete: bool


# ── Reports ───────────────────────────────────────────────────────────────────
class StatusGroupCount(BaseModel):
    group: StatusGroup
    count: int
