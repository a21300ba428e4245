"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Enums
    process_type = sa.Enum("BRC", "BRRC", "BGRC", "BCRC", "NON_BRC", name="process_type")
    milestone_status = sa.Enum("UPCOMING", "DUE", "COMPLETED", name="milestone_status")
    metric_value_type = sa.Enum("BOOLEAN", "TEXT", name="metric_value_type")
    intake_document = sa.Enum("FUND_APPLICATION", "INTERIM_SUMMARY", name="intake_document")

    # Hospitals
    op.create_table(
        "hospitals",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Users
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("roles", JSON, nullable=False),
        sa.Column("hospital_id", UUID(as_uuid=True), sa.ForeignKey("hospitals.id"), nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # Hospital -> process type mappings
    op.create_table(
        "hospital_process_maps",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("hospital_id", UUID(as_uuid=True), sa.ForeignKey("hospitals.id"), nullable=False),
        sa.Column("process_type", process_type, nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("effective_from_date", sa.Date, nullable=False),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_hospital_process_maps_hospital_id", "hospital_process_maps", ["hospital_id"]
    )

    # Cases
    op.create_table(
        "cases",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("case_ref", sa.String(50), unique=True, nullable=False),
        sa.Column("process_type", process_type, nullable=False),
        sa.Column("hospital_id", UUID(as_uuid=True), sa.ForeignKey("hospitals.id"), nullable=False),
        sa.Column("case_status", sa.String(50), nullable=False, server_default="Draft"),
        sa.Column("beneficiary_name", sa.String(255), nullable=True),
        sa.Column("intake_date", sa.Date, nullable=False),
        sa.Column("closure_date", sa.Date, nullable=True),
        sa.Column("created_by_user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("last_action_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_cases_hospital_id", "cases", ["hospital_id"])

    # Clinical details
    op.create_table(
        "clinical_details",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("case_id", UUID(as_uuid=True), sa.ForeignKey("cases.id"), nullable=False, unique=True),
        sa.Column("diagnosis", sa.Text, nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("doctor_name", sa.String(255), nullable=True),
        sa.Column("admission_date", sa.Date, nullable=True),
        sa.Column("discharge_date", sa.Date, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # Follow-up milestones
    op.create_table(
        "followup_milestones",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("case_id", UUID(as_uuid=True), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("milestone_months", sa.Integer, nullable=False),
        sa.Column("due_date", sa.Date, nullable=False),
        sa.Column("followup_date", sa.Date, nullable=True),
        sa.Column("status", milestone_status, nullable=False, server_default="UPCOMING"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("case_id", "milestone_months", name="uq_milestone_case_months"),
    )
    op.create_index("ix_followup_milestones_case_id", "followup_milestones", ["case_id"])

    # Follow-up metric catalog
    op.create_table(
        "followup_metric_definitions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("milestone_months", sa.Integer, nullable=False),
        sa.Column("metric_key", sa.String(100), nullable=False),
        sa.Column("metric_label", sa.String(255), nullable=False),
        sa.Column("value_type", metric_value_type, nullable=False),
        sa.Column("allow_na", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("display_order", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("milestone_months", "metric_key", name="uq_metric_def_months_key"),
    )
    op.create_index(
        "ix_followup_metric_definitions_milestone_months",
        "followup_metric_definitions",
        ["milestone_months"],
    )

    # Follow-up metric values
    op.create_table(
        "followup_metric_values",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("case_id", UUID(as_uuid=True), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("milestone_months", sa.Integer, nullable=False),
        sa.Column("metric_key", sa.String(100), nullable=False),
        sa.Column("value_boolean", sa.Boolean, nullable=True),
        sa.Column("value_text", sa.Text, nullable=True),
        sa.Column("captured_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("captured_by_user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.UniqueConstraint(
            "case_id", "milestone_months", "metric_key", name="uq_metric_value_case_months_key"
        ),
    )
    op.create_index("ix_followup_metric_values_case_id", "followup_metric_values", ["case_id"])

    # Intake sections
    op.create_table(
        "intake_sections",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("case_id", UUID(as_uuid=True), sa.ForeignKey("cases.id"), nullable=False),
        sa.Column("document", intake_document, nullable=False),
        sa.Column("section_key", sa.String(100), nullable=False),
        sa.Column("data", JSON, nullable=False),
        sa.Column("updated_by_user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("case_id", "document", "section_key", name="uq_intake_section"),
    )
    op.create_index("ix_intake_sections_case_id", "intake_sections", ["case_id"])

    # Audit logs
    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", UUID(as_uuid=True), nullable=True),
        sa.Column("metadata_json", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("intake_sections")
    op.drop_table("followup_metric_values")
    op.drop_table("followup_metric_definitions")
    op.drop_table("followup_milestones")
    op.drop_table("clinical_details")
    op.drop_table("cases")
    op.drop_table("hospital_process_maps")
    op.drop_table("users")
    op.drop_table("hospitals")
    sa.Enum(name="intake_document").drop(op.get_bind())
    sa.Enum(name="metric_value_type").drop(op.get_bind())
    sa.Enum(name="milestone_status").drop(op.get_bind())
    sa.Enum(name="process_type").drop(op.get_bind())
