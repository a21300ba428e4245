"""
Tests for hospital -> process type resolution and mapping administration.
"""

import uuid
from datetime import date, datetime, timezone

import pytest

from case_engine.core.errors import AccessDenied, NotFound, ValidationError
from case_engine.models.enums import ProcessType
from case_engine.models.models import AuditLog, HospitalProcessMap
from case_engine.services.process_type import (
    create_process_map,
    delete_process_map,
    resolve_process_type,
    update_process_map,
)


class TestResolveProcessType:
    def test_returns_active_mapping(self, db, hospital, process_map):
        assert resolve_process_type(db, hospital.id) == ProcessType.BRC

    def test_no_mapping_returns_none(self, db, other_hospital):
        assert resolve_process_type(db, other_hospital.id) is None

    def test_inactive_mapping_is_ignored(self, db, hospital, process_map):
        process_map.is_active = False
        db.flush()
        assert resolve_process_type(db, hospital.id) is None

    def test_multiple_active_rows_pick_latest_effective_date(self, db, hospital, caplog):
        db.add_all(
            [
                HospitalProcessMap(
                    hospital_id=hospital.id,
                    process_type=ProcessType.BRC,
                    is_active=True,
                    effective_from_date=date(2023, 1, 1),
                ),
                HospitalProcessMap(
                    hospital_id=hospital.id,
                    process_type=ProcessType.BCRC,
                    is_active=True,
                    effective_from_date=date(2024, 6, 1),
                ),
            ]
        )
        db.flush()
        with caplog.at_level("WARNING"):
            assert resolve_process_type(db, hospital.id) == ProcessType.BCRC
        assert "2 active process mappings" in caplog.text

    def test_same_effective_date_picks_latest_created(self, db, hospital):
        db.add_all(
            [
                HospitalProcessMap(
                    hospital_id=hospital.id,
                    process_type=ProcessType.BGRC,
                    is_active=True,
                    effective_from_date=date(2024, 1, 1),
                    created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
                ),
                HospitalProcessMap(
                    hospital_id=hospital.id,
                    process_type=ProcessType.NON_BRC,
                    is_active=True,
                    effective_from_date=date(2024, 1, 1),
                    created_at=datetime(2024, 2, 1, tzinfo=timezone.utc),
                ),
            ]
        )
        db.flush()
        assert resolve_process_type(db, hospital.id) == ProcessType.NON_BRC


class TestProcessMapAdministration:
    def test_admin_creates_mapping(self, db, admin_ctx, other_hospital):
        row = create_process_map(
            db, admin_ctx, other_hospital.id, ProcessType.BRRC, date(2024, 3, 1)
        )
        assert row.is_active is True
        assert resolve_process_type(db, other_hospital.id) == ProcessType.BRRC
        audit = db.query(AuditLog).filter(AuditLog.entity_id == row.id).first()
        assert audit.action == "PROCESS_MAP_CREATED"

    def test_second_active_mapping_is_rejected(self, db, admin_ctx, hospital, process_map):
        with pytest.raises(ValidationError) as exc_info:
            create_process_map(db, admin_ctx, hospital.id, ProcessType.BCRC, date(2024, 5, 1))
        assert "is_active" in exc_info.value.errors

    def test_inactive_mapping_can_coexist(self, db, admin_ctx, hospital, process_map):
        row = create_process_map(
            db, admin_ctx, hospital.id, ProcessType.BCRC, date(2024, 5, 1), is_active=False
        )
        assert row.is_active is False
        assert resolve_process_type(db, hospital.id) == ProcessType.BRC

    def test_reactivating_while_another_is_active_is_rejected(
        self, db, admin_ctx, hospital, process_map
    ):
        row = create_process_map(
            db, admin_ctx, hospital.id, ProcessType.BCRC, date(2024, 5, 1), is_active=False
        )
        with pytest.raises(ValidationError):
            update_process_map(db, admin_ctx, row.id, {"is_active": True})

    def test_switching_mapping(self, db, admin_ctx, hospital, process_map):
        update_process_map(db, admin_ctx, process_map.id, {"is_active": False})
        row = create_process_map(db, admin_ctx, hospital.id, ProcessType.BCRC, date(2024, 5, 1))
        assert resolve_process_type(db, hospital.id) == ProcessType.BCRC
        assert row.process_type == ProcessType.BCRC

    def test_update_records_enum_values_in_audit(self, db, admin_ctx, process_map):
        update_process_map(db, admin_ctx, process_map.id, {"process_type": ProcessType.BGRC})
        audit = (
            db.query(AuditLog)
            .filter(AuditLog.action == "PROCESS_MAP_UPDATED")
            .first()
        )
        assert audit.metadata_json == {"process_type": "BGRC"}

    def test_non_admin_cannot_manage_mappings(self, db, volunteer_ctx, other_hospital):
        with pytest.raises(AccessDenied):
            create_process_map(
                db, volunteer_ctx, other_hospital.id, ProcessType.BRC, date(2024, 1, 1)
            )

    def test_unknown_hospital(self, db, admin_ctx):
        with pytest.raises(NotFound):
            create_process_map(db, admin_ctx, uuid.uuid4(), ProcessType.BRC, date(2024, 1, 1))

    def test_delete_mapping(self, db, admin_ctx, hospital, process_map):
        delete_process_map(db, admin_ctx, process_map.id)
        assert resolve_process_type(db, hospital.id) is None
        with pytest.raises(NotFound):
            delete_process_map(db, admin_ctx, process_map.id)
