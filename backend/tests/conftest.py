"""
Test configuration using SQLite in-memory database.
"""

import uuid
from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from case_engine.core.database import Base, get_db
from case_engine.core.deps import build_session_context
from case_engine.core.security import hash_password, create_access_token
from case_engine.models.enums import (
    UserRole,
    ProcessType,
    CaseStatus,
    MetricValueType,
    IntakeDocument,
)
from case_engine.models.models import (
    Hospital,
    HospitalProcessMap,
    User,
    Case,
    ClinicalDetails,
    FollowupMetricDefinition,
)
from case_engine.main import app
from case_engine.services.intake import save_section

# Use SQLite for testing
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def db():
    """Create fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def auth_headers(user: User, role: UserRole) -> dict:
    token = create_access_token({"sub": str(user.id), "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def hospital(db):
    h = Hospital(id=uuid.uuid4(), name="City Children's Hospital", city="Pune", state="MH")
    db.add(h)
    db.flush()
    return h


@pytest.fixture
def other_hospital(db):
    h = Hospital(id=uuid.uuid4(), name="Unmapped Hospital", city="Nagpur", state="MH")
    db.add(h)
    db.flush()
    return h


@pytest.fixture
def process_map(db, hospital):
    row = HospitalProcessMap(
        id=uuid.uuid4(),
        hospital_id=hospital.id,
        process_type=ProcessType.BRC,
        is_active=True,
        effective_from_date=date(2024, 1, 1),
    )
    db.add(row)
    db.flush()
    return row


def _make_user(db, email, roles, hospital_id=None):
    user = User(
        id=uuid.uuid4(),
        email=email,
        full_name=email.split("@")[0].title(),
        password_hash=hash_password("password123"),
        roles=[r.value for r in roles],
        hospital_id=hospital_id,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def admin_user(db):
    return _make_user(db, "admin@example.com", [UserRole.ADMIN, UserRole.LEADERSHIP])


@pytest.fixture
def volunteer_user(db):
    return _make_user(db, "volunteer@example.com", [UserRole.BENI_VOLUNTEER])


@pytest.fixture
def verifier_user(db):
    return _make_user(db, "verifier@example.com", [UserRole.VERIFIER, UserRole.COMMITTEE_MEMBER])


@pytest.fixture
def spoc_user(db, hospital):
    return _make_user(
        db, "spoc@example.com", [UserRole.HOSPITAL_SPOC], hospital_id=hospital.id
    )


@pytest.fixture
def admin_ctx(admin_user):
    return build_session_context(admin_user, UserRole.ADMIN)


@pytest.fixture
def volunteer_ctx(volunteer_user):
    return build_session_context(volunteer_user, UserRole.BENI_VOLUNTEER)


@pytest.fixture
def verifier_ctx(verifier_user):
    return build_session_context(verifier_user, UserRole.VERIFIER)


@pytest.fixture
def committee_ctx(verifier_user):
    return build_session_context(verifier_user, UserRole.COMMITTEE_MEMBER)


@pytest.fixture
def spoc_ctx(spoc_user):
    return build_session_context(spoc_user, UserRole.HOSPITAL_SPOC)


def _make_case(db, hospital, user, status, admission_date=None, discharge_date=None, ref="0001"):
    case = Case(
        id=uuid.uuid4(),
        case_ref=f"NFI/BRC/2024/{ref}",
        process_type=ProcessType.BRC,
        hospital_id=hospital.id,
        case_status=status,
        beneficiary_name="Baby of Asha",
        intake_date=date(2024, 1, 10),
        created_by_user_id=user.id,
    )
    db.add(case)
    db.flush()
    db.add(
        ClinicalDetails(
            case_id=case.id,
            admission_date=admission_date,
            discharge_date=discharge_date,
        )
    )
    db.flush()
    return case


@pytest.fixture
def draft_case(db, hospital, spoc_user):
    return _make_case(db, hospital, spoc_user, CaseStatus.DRAFT.value, date(2024, 1, 5))


@pytest.fixture
def approved_case(db, hospital, spoc_user):
    return _make_case(
        db,
        hospital,
        spoc_user,
        CaseStatus.APPROVED.value,
        admission_date=date(2023, 12, 20),
        discharge_date=date(2024, 1, 15),
        ref="0002",
    )


@pytest.fixture
def approved_case_without_dates(db, hospital, spoc_user):
    return _make_case(db, hospital, spoc_user, CaseStatus.APPROVED.value, ref="0003")


@pytest.fixture
def three_month_metrics(db):
    rows = [
        FollowupMetricDefinition(
            milestone_months=3,
            metric_key="weight_gain_adequate",
            metric_label="Adequate weight gain",
            value_type=MetricValueType.BOOLEAN,
            allow_na=False,
            display_order=1,
        ),
        FollowupMetricDefinition(
            milestone_months=3,
            metric_key="hearing_screening_done",
            metric_label="Hearing screening done",
            value_type=MetricValueType.BOOLEAN,
            allow_na=True,
            display_order=2,
        ),
        FollowupMetricDefinition(
            milestone_months=3,
            metric_key="remarks",
            metric_label="Remarks",
            value_type=MetricValueType.TEXT,
            allow_na=False,
            display_order=3,
        ),
    ]
    db.add_all(rows)
    db.flush()
    return rows


def fill_intake(db, ctx, case_id):
    sections = {
        IntakeDocument.FUND_APPLICATION: {
            "parents_family": {
                "father_dob": "1990-02-01",
                "father_education": "Graduate",
                "mother_dob": "1994-03-12",
                "mother_education": "HSC",
                "marriage_date": "2019-05-20",
                "dependents": "2",
            },
            "occupation_income": {
                "father_occupation": "Driver",
                "father_monthly_income": 15000,
                "mother_occupation": "Homemaker",
                "mother_monthly_income": 0,
                "income_proof_type": "Salary slip",
            },
            "birth_details": {
                "is_inborn": True,
                "conception_type": "Natural",
                "gestational_age_weeks": 30,
                "delivery_type": "LSCS",
                "gravida": 1,
            },
            "nicu_financial": {
                "nicu_admission_date": "2024-01-05",
                "estimated_nicu_days": 30,
                "nfi_requested_amount": 150000,
                "estimate_billed": 300000,
                "estimate_after_discount": 250000,
            },
            "other_support": {"other_support_notes": "None"},
            "declarations": {"declarations_accepted": True},
            "hospital_approval": {"approved_by_name": "Dr. Rao", "approval_date": "2024-01-08"},
        },
        IntakeDocument.INTERIM_SUMMARY: {
            "birth_summary": {
                "apgar_score": 7,
                "time_of_birth": "10:20",
                "place_of_birth": "Inborn",
                "gestational_age_weeks": 30,
            },
            "maternal_details": {
                "marital_status": "Married",
                "years_married": 4,
                "mother_age": 29,
                "gravida": 1,
                "parity": 0,
                "abortions": 0,
                "live_children_before": 0,
            },
            "antenatal_risk_factors": {"risk_notes": "None known"},
            "diagnosis": {"diagnoses": ["Prematurity"]},
            "treatment_given": {"respiratory_support_required": True},
            "current_status": {
                "day_of_life": 4,
                "current_weight": 1.2,
                "corrected_gestational_age": 30.5,
            },
            "feeding_respiration": {"feeding_mode": "OG", "respiration_status": "CPAP"},
            "discharge_plan_investigations": {
                "discharge_date": "2024-02-10",
                "investigations_planned": "ROP screening",
            },
            "remarks_signature": {"doctor_name": "Dr. Rao", "signed_at": "2024-01-09"},
        },
    }
    for document, by_key in sections.items():
        for section_key, data in by_key.items():
            save_section(db, ctx, case_id, document, section_key, data)


@pytest.fixture
def complete_intake(db, spoc_ctx, draft_case):
    fill_intake(db, spoc_ctx, draft_case.id)
    return draft_case
