"""
Seed script: creates hospitals, process mappings, users, the follow-up
metric catalog and sample cases.
Run: python seed.py
"""

import uuid
from datetime import date, datetime, timedelta, timezone

from case_engine.core.database import SessionLocal, engine, Base
from case_engine.core.security import hash_password
from case_engine.models.enums import (
    UserRole,
    ProcessType,
    CaseStatus,
    MetricValueType,
)
from case_engine.models.models import (
    Hospital,
    HospitalProcessMap,
    User,
    Case,
    ClinicalDetails,
    FollowupMetricDefinition,
)
from case_engine.services.milestones import ensure_followup_milestones, resolve_anchor_date

WEIGHT = ("current_weight", "Current Weight (kg)", MetricValueType.TEXT, False)

METRIC_CATALOG = {
    3: [
        WEIGHT,
        ("feeding_status_normal", "Feeding Status Normal", MetricValueType.BOOLEAN, True),
        ("no_major_illness", "No Major Illness", MetricValueType.BOOLEAN, True),
    ],
    6: [
        WEIGHT,
        ("development_normal", "Normal Development", MetricValueType.BOOLEAN, True),
        ("immunization_up_to_date", "Immunization Up-to-Date", MetricValueType.BOOLEAN, False),
    ],
    9: [WEIGHT],
    12: [
        WEIGHT,
        ("language_milestone", "Appropriate Language Skills", MetricValueType.BOOLEAN, True),
    ],
    18: [WEIGHT],
    24: [WEIGHT],
}


def seed():
    # Create all tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        # Check if already seeded
        if db.query(Hospital).first():
            print("Database already seeded. Skipping.")
            return

        # ── Hospitals ─────────────────────────────────────────────────
        hospitals = [
            Hospital(
                id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
                name="Sahyadri Children's Hospital",
                city="Pune",
                state="Maharashtra",
            ),
            Hospital(
                id=uuid.UUID("00000000-0000-0000-0000-000000000002"),
                name="Lotus Women & Child Care",
                city="Mumbai",
                state="Maharashtra",
            ),
            Hospital(
                id=uuid.UUID("00000000-0000-0000-0000-000000000003"),
                name="Riverside Neonatal Centre",
                city="Nashik",
                state="Maharashtra",
            ),
        ]
        db.add_all(hospitals)
        db.flush()

        # The third hospital is left unmapped so case creation is blocked there.
        db.add_all(
            [
                HospitalProcessMap(
                    hospital_id=hospitals[0].id,
                    process_type=ProcessType.BRC,
                    effective_from_date=date(2024, 1, 1),
                ),
                HospitalProcessMap(
                    hospital_id=hospitals[1].id,
                    process_type=ProcessType.BCRC,
                    effective_from_date=date(2024, 4, 1),
                ),
            ]
        )

        # ── Users ──────────────────────────────────────────────────────
        users = {
            "spoc": User(
                email="spoc@example.com",
                full_name="Hospital SPOC",
                password_hash=hash_password("password123"),
                roles=[UserRole.HOSPITAL_SPOC.value, UserRole.HOSPITAL_DOCTOR.value],
                hospital_id=hospitals[0].id,
            ),
            "verifier": User(
                email="verifier@example.com",
                full_name="Case Verifier",
                password_hash=hash_password("password123"),
                roles=[UserRole.VERIFIER.value, UserRole.COMMITTEE_MEMBER.value],
            ),
            "volunteer": User(
                email="volunteer@example.com",
                full_name="BENI Volunteer",
                password_hash=hash_password("password123"),
                roles=[UserRole.BENI_VOLUNTEER.value],
            ),
            "admin": User(
                email="admin@example.com",
                full_name="NFI Admin",
                password_hash=hash_password("password123"),
                roles=[UserRole.ADMIN.value, UserRole.LEADERSHIP.value],
            ),
        }
        db.add_all(users.values())
        db.flush()

        # ── Follow-up metric catalog ──────────────────────────────────
        for months, metrics in METRIC_CATALOG.items():
            for order, (key, label, value_type, allow_na) in enumerate(metrics, start=1):
                db.add(
                    FollowupMetricDefinition(
                        milestone_months=months,
                        metric_key=key,
                        metric_label=label,
                        value_type=value_type,
                        allow_na=allow_na,
                        display_order=order,
                    )
                )

        # ── Cases at various statuses ─────────────────────────────────
        now = datetime.now(timezone.utc)
        today = date.today()
        case_configs = [
            (CaseStatus.DRAFT, "Baby of Asha Patil", 3, None),
            (CaseStatus.SUBMITTED, "Baby of Kavita More", 20, None),
            (CaseStatus.UNDER_VERIFICATION, "Baby of Sunita Jadhav", 25, None),
            (CaseStatus.UNDER_REVIEW, "Baby of Pooja Shinde", 40, 10),
            (CaseStatus.RETURNED, "Baby of Neha Kulkarni", 35, None),
            (CaseStatus.APPROVED, "Baby of Rekha Pawar", 200, 160),
            (CaseStatus.APPROVED, "Baby of Meena Gaikwad", 60, None),
            (CaseStatus.REJECTED, "Baby of Anita Deshmukh", 90, 50),
            (CaseStatus.CLOSED, "Baby of Savita Bhosale", 420, 380),
        ]

        for i, (status, name, admitted_days_ago, discharged_days_ago) in enumerate(case_configs, start=1):
            admission = today - timedelta(days=admitted_days_ago)
            case = Case(
                case_ref=f"NFI/{ProcessType.BRC.value}/{admission.year}/{i:04d}",
                process_type=ProcessType.BRC,
                hospital_id=hospitals[0].id,
                case_status=status.value,
                beneficiary_name=name,
                intake_date=admission + timedelta(days=1),
                closure_date=today if status == CaseStatus.CLOSED else None,
                created_by_user_id=users["spoc"].id,
                created_at=now - timedelta(days=admitted_days_ago - 1),
            )
            db.add(case)
            db.flush()

            clinical = ClinicalDetails(
                case_id=case.id,
                diagnosis="Prematurity with respiratory distress",
                admission_date=admission,
                discharge_date=(
                    today - timedelta(days=discharged_days_ago) if discharged_days_ago else None
                ),
            )
            db.add(clinical)
            db.flush()

            if status in (CaseStatus.APPROVED, CaseStatus.CLOSED):
                ensure_followup_milestones(db, case.id, resolve_anchor_date(clinical))

        db.commit()
        print("Seed data created successfully!")
        print("  - 3 hospitals (2 mapped, 1 without a process type)")
        print("  - 4 users: spoc@, verifier@, volunteer@, admin@example.com (password: password123)")
        print(f"  - {len(case_configs)} cases across the workflow statuses")

    finally:
        db.close()


if __name__ == "__main__":
    seed()
