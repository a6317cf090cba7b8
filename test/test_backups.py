"""
Tests for tenant backups
"""

import gzip
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from salon.exceptions import (
    BackupNotFoundError,
    FeatureNotAvailableError,
    InvalidOperationError,
    TenantNotFoundError,
)
from salon.models.appointment import Appointment
from salon.models.backup import Backup, BackupStats, BackupStatus, BackupType
from salon.services.backup_service import BACKUP_FORMAT_VERSION, BackupService


@pytest.fixture
def backups(test_db, settings, catalog) -> BackupService:
    return BackupService(test_db, settings, catalog)


@pytest.fixture
async def booked_tenant(test_db, premium_tenant):
    test_db.add_all(
        [
            Appointment(
                tenant_id=premium_tenant.id,
                customer_name="Maria Souza",
                status="confirmed",
                confirmed_at=datetime(2026, 1, 5, 14, 0, tzinfo=timezone.utc),
            ),
            Appointment(tenant_id=premium_tenant.id, customer_name="Carlos Lima", status="pending"),
        ]
    )
    await test_db.commit()
    return premium_tenant


class TestCreateBackup:
    async def test_writes_compressed_export(self, backups, test_db, booked_tenant, settings):
        backup = await backups.create_backup(booked_tenant.id, description="antes da migração")

        assert backup.status == BackupStatus.COMPLETED
        assert backup.total_records == 3
        assert backup.file_size > 0
        assert backup.expires_at is not None

        path = Path(backup.file_path)
        assert path.parent == Path(settings.backup_dir)
        assert backup.file_name.endswith(".json.gz")

        with gzip.open(path, "rt", encoding="utf-8") as f:
            document = json.load(f)
        assert document["metadata"]["version"] == BACKUP_FORMAT_VERSION
        assert document["metadata"]["tenant_id"] == booked_tenant.id
        assert document["tenant"]["plan_tier"] == "premium"
        assert sorted(a["customer_name"] for a in document["appointments"]) == ["Carlos Lima", "Maria Souza"]

    async def test_updates_stats(self, backups, test_db, premium_tenant):
        await backups.create_backup(premium_tenant.id)
        await backups.create_backup(premium_tenant.id, backup_type=BackupType.MANUAL)

        stats = await test_db.get(BackupStats, premium_tenant.id)
        assert stats.total_backups == 2
        assert stats.successful_backups == 2
        assert stats.failed_backups == 0
        assert stats.total_size > 0

    async def test_plan_without_backups_is_refused(self, backups, make_tenant):
        tenant = await make_tenant(plan_tier="professional", plan_status="active", payment_completed=True)

        with pytest.raises(FeatureNotAvailableError) as exc_info:
            await backups.create_backup(tenant.id)
        assert exc_info.value.details["required_tier"] == "premium"

    async def test_unknown_tenant(self, backups):
        with pytest.raises(TenantNotFoundError):
            await backups.create_backup("missing")

    async def test_write_failure_records_failed_backup(self, backups, test_db, premium_tenant, tmp_path):
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("occupied")
        backups.backup_dir = blocker
        tenant_id = premium_tenant.id

        backup = await backups.create_backup(tenant_id)

        assert backup.status == BackupStatus.FAILED
        assert backup.error_message
        stats = await test_db.get(BackupStats, tenant_id)
        assert stats.failed_backups == 1

    async def test_database_failure_records_failed_backup(self, backups, test_db, premium_tenant, monkeypatch):
        """A query error during export is rolled back and recorded as FAILED"""
        monkeypatch.setattr(
            backups, "_rows", AsyncMock(side_effect=OperationalError("SELECT", {}, Exception("database is locked")))
        )
        tenant_id = premium_tenant.id

        backup = await backups.create_backup(tenant_id)

        assert backup.status == BackupStatus.FAILED
        assert "database is locked" in backup.error_message
        assert backup.file_path is None
        stored = await test_db.get(Backup, backup.id)
        assert stored.status == BackupStatus.FAILED
        stats = await test_db.get(BackupStats, tenant_id)
        assert stats.total_backups == 1
        assert stats.failed_backups == 1
        assert stats.successful_backups == 0


class TestRestoreBackup:
    async def test_restores_appointments_with_new_ids(self, backups, test_db, booked_tenant):
        backup = await backups.create_backup(booked_tenant.id)
        original_ids = {a.id for a in (await test_db.execute(select(Appointment))).scalars().all()}

        restored = await backups.restore_backup(backup.id)

        assert restored == 2
        appointments = (await test_db.execute(select(Appointment))).scalars().all()
        assert len(appointments) == 4
        new = [a for a in appointments if a.id not in original_ids]
        assert {a.customer_name for a in new} == {"Maria Souza", "Carlos Lima"}
        assert all(a.tenant_id == booked_tenant.id for a in new)

    async def test_restore_into_other_tenant(self, backups, test_db, booked_tenant, make_tenant):
        backup = await backups.create_backup(booked_tenant.id)
        target = await make_tenant()

        await backups.restore_backup(backup.id, target_tenant_id=target.id)

        result = await test_db.execute(select(Appointment).where(Appointment.tenant_id == target.id))
        assert len(result.scalars().all()) == 2

    async def test_restore_can_skip_appointments(self, backups, booked_tenant):
        backup = await backups.create_backup(booked_tenant.id)

        assert await backups.restore_backup(backup.id, restore_options={"restoreAppointments": False}) == 0

    async def test_failed_backup_cannot_be_restored(self, backups, test_db, premium_tenant):
        backup = Backup(tenant_id=premium_tenant.id, name="falhou", status=BackupStatus.FAILED)
        test_db.add(backup)
        await test_db.commit()

        with pytest.raises(InvalidOperationError):
            await backups.restore_backup(backup.id)

    async def test_unknown_backup(self, backups):
        with pytest.raises(BackupNotFoundError):
            await backups.restore_backup("missing")


class TestCleanup:
    async def test_removes_expired_backups_and_files(self, backups, test_db, premium_tenant):
        expired = await backups.create_backup(premium_tenant.id)
        kept = await backups.create_backup(premium_tenant.id)
        expired.expires_at = datetime.now(timezone.utc) - timedelta(days=1)
        await test_db.commit()

        deleted = await backups.cleanup_expired()

        assert deleted == 1
        assert not Path(expired.file_path).exists()
        assert Path(kept.file_path).exists()
        remaining = (await test_db.execute(select(Backup))).scalars().all()
        assert [b.id for b in remaining] == [kept.id]


class TestBackupRoutes:
    async def test_create_list_download(self, client, booked_tenant):
        response = await client.post(
            "/api/v1/create-backup", json={"tenantId": booked_tenant.id, "backupType": "manual"}
        )
        assert response.status_code == 200
        created = response.json()
        assert created["success"] is True
        assert created["totalRecords"] == 3

        response = await client.get("/api/v1/backups", params={"tenantId": booked_tenant.id})
        assert response.status_code == 200
        listed = response.json()["backups"]
        assert [b["id"] for b in listed] == [created["backupId"]]
        assert listed[0]["backupType"] == "manual"
        assert listed[0]["status"] == "completed"

        response = await client.get(f"/api/v1/download-backup/{created['backupId']}")
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/gzip"
        document = json.loads(gzip.decompress(response.content))
        assert document["metadata"]["total_records"] == 3

    async def test_create_refused_for_essential(self, client, make_tenant):
        tenant = await make_tenant(plan_status="active", payment_completed=True)

        response = await client.post("/api/v1/create-backup", json={"tenantId": tenant.id})

        assert response.status_code == 403
        assert response.json()["error_code"] == "FEATURE_NOT_AVAILABLE"

    async def test_restore(self, client, booked_tenant):
        created = (await client.post("/api/v1/create-backup", json={"tenantId": booked_tenant.id})).json()

        response = await client.post("/api/v1/restore-backup", json={"backupId": created["backupId"]})

        assert response.status_code == 200
        assert response.json()["restoredRecords"] == 2

    async def test_download_unknown_backup(self, client):
        response = await client.get("/api/v1/download-backup/missing")

        assert response.status_code == 404

    async def test_list_requires_tenant(self, client):
        response = await client.get("/api/v1/backups")

        assert response.status_code == 400
