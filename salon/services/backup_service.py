"""
Backup Service

Tenant-scoped export and restore. A backup is a gzip-compressed JSON
document holding the tenant row and its appointments and billing mirrors.
"""

import gzip
import json
import logging
import uuid
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salon.config import Settings
from salon.exceptions import (
    BackupNotFoundError,
    FeatureNotAvailableError,
    InvalidOperationError,
    TenantNotFoundError,
    ValidationError,
)
from salon.models.appointment import Appointment
from salon.models.backup import Backup, BackupStats, BackupStatus, BackupType
from salon.models.billing import Subscriber, Subscription
from salon.models.tenant import Tenant
from salon.plans import PlanCatalog
from salon.utils.time import as_utc, isoformat, utcnow

logger = logging.getLogger(__name__)

BACKUP_FORMAT_VERSION = "1.0.0"


def _serialize(row) -> dict:
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        data[column.key] = isoformat(value) if isinstance(value, datetime) else value
    return data


class BackupService:
    """Service for managing tenant backups."""

    def __init__(self, db: AsyncSession, settings: Settings, catalog: PlanCatalog):
        self.db = db
        self.settings = settings
        self.catalog = catalog
        self.backup_dir = Path(settings.backup_dir)

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalars().first()
        if not tenant:
            raise TenantNotFoundError(tenant_id)
        return tenant

    async def get_backup(self, backup_id: str) -> Backup:
        result = await self.db.execute(select(Backup).where(Backup.id == backup_id))
        backup = result.scalars().first()
        if not backup:
            raise BackupNotFoundError(backup_id)
        return backup

    async def list_backups(self, tenant_id: str) -> list[Backup]:
        result = await self.db.execute(
            select(Backup).where(Backup.tenant_id == tenant_id).order_by(Backup.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_backup(
        self,
        tenant_id: str,
        backup_type: BackupType = BackupType.FULL,
        description: str | None = None,
    ) -> Backup:
        """
        Export a tenant to a compressed JSON file.

        The tenant's plan must include backups. A failed export leaves a
        FAILED record behind rather than raising.

        Returns:
            The backup record, completed or failed
        """
        if not tenant_id:
            raise ValidationError("tenantId is required", field="tenantId")

        tenant = await self._get_tenant(tenant_id)
        if not self.catalog.can_access(tenant.plan_tier, "has_backup"):
            required = self.catalog.required_tier("has_backup")
            raise FeatureNotAvailableError("backup", tenant.plan_tier, required.value if required else None)

        now = utcnow()
        backup = Backup(
            id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            name=f"Backup {backup_type.value} {now.strftime('%d/%m/%Y %H:%M')}",
            description=description,
            backup_type=backup_type,
            status=BackupStatus.IN_PROGRESS,
            retention_days=self.settings.backup_retention_days,
            expires_at=now + timedelta(days=self.settings.backup_retention_days),
        )
        self.db.add(backup)
        await self.db.commit()
        backup_id = backup.id

        try:
            await self._perform_backup(backup, tenant)
        except (OSError, TypeError, ValueError, SQLAlchemyError) as e:
            logger.error(f"Backup {backup_id} for tenant {tenant_id} failed: {e}")
            await self.db.rollback()
            backup.status = BackupStatus.FAILED
            backup.error_message = str(e)
            await self._update_stats(tenant_id, succeeded=False)
            await self.db.commit()
            await self.db.refresh(backup)
            return backup

        await self._update_stats(tenant_id, succeeded=True, size=backup.file_size)
        await self.db.commit()
        logger.info(f"Backup {backup.id} completed for tenant {tenant_id} ({backup.total_records} records)")
        return backup

    async def _perform_backup(self, backup: Backup, tenant: Tenant) -> None:
        appointments = await self._rows(Appointment, Appointment.tenant_id == tenant.id)
        subscribers = await self._rows(Subscriber, Subscriber.tenant_id == tenant.id)
        subscriptions = await self._rows(Subscription, Subscription.tenant_id == tenant.id)
        total_records = 1 + len(appointments) + len(subscribers) + len(subscriptions)

        document = {
            "tenant": _serialize(tenant),
            "appointments": [_serialize(row) for row in appointments],
            "subscribers": [_serialize(row) for row in subscribers],
            "subscriptions": [_serialize(row) for row in subscriptions],
            "metadata": {
                "backup_type": backup.backup_type.value,
                "created_at": isoformat(backup.created_at or utcnow()),
                "tenant_id": tenant.id,
                "total_records": total_records,
                "version": BACKUP_FORMAT_VERSION,
            },
        }
        raw = json.dumps(document, ensure_ascii=False).encode("utf-8")
        compressed = gzip.compress(raw)

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.backup_dir / f"backup_{tenant.id}_{utcnow().strftime('%Y%m%d_%H%M%S')}_{backup.id[:8]}.json.gz"
        file_path.write_bytes(compressed)

        backup.status = BackupStatus.COMPLETED
        backup.file_path = str(file_path)
        backup.file_size = len(compressed)
        backup.compression_ratio = round(len(compressed) / len(raw), 4) if raw else None
        backup.total_records = total_records
        backup.completed_at = utcnow()

    async def _rows(self, model, criterion) -> list:
        result = await self.db.execute(select(model).where(criterion))
        return list(result.scalars().all())

    async def _update_stats(self, tenant_id: str, succeeded: bool, size: int | None = None) -> None:
        stats = await self.db.get(BackupStats, tenant_id)
        if stats is None:
            stats = BackupStats(
                tenant_id=tenant_id, total_backups=0, successful_backups=0, failed_backups=0, total_size=0
            )
            self.db.add(stats)
        stats.total_backups += 1
        if succeeded:
            stats.successful_backups += 1
            stats.total_size += size or 0
            stats.last_backup_at = utcnow()
        else:
            stats.failed_backups += 1

    def get_backup_file(self, backup: Backup) -> Path:
        """Return the path of a completed backup's file."""
        if backup.status != BackupStatus.COMPLETED or not backup.file_path:
            raise InvalidOperationError("Backup is not ready for download")
        path = Path(backup.file_path)
        if not path.exists():
            raise BackupNotFoundError(backup.id)
        return path

    def _load(self, backup: Backup) -> dict:
        with gzip.open(self.get_backup_file(backup), "rt", encoding="utf-8") as f:
            return json.load(f)

    async def restore_backup(
        self,
        backup_id: str,
        target_tenant_id: str | None = None,
        restore_options: dict | None = None,
    ) -> int:
        """
        Re-insert a backup's appointments into a tenant.

        Restored appointments get new ids; the target defaults to the
        backup's own tenant.

        Returns:
            Number of records restored
        """
        if not backup_id:
            raise ValidationError("Missing backup ID", field="backupId")

        backup = await self.get_backup(backup_id)
        if backup.status != BackupStatus.COMPLETED:
            raise InvalidOperationError("Backup is not ready for restoration")

        target = target_tenant_id or backup.tenant_id
        await self._get_tenant(target)

        options = restore_options or {}
        data = self._load(backup)

        restored = 0
        if options.get("restoreAppointments", True):
            for record in data.get("appointments", []):
                self.db.add(
                    Appointment(
                        id=str(uuid.uuid4()),
                        tenant_id=target,
                        customer_name=record["customer_name"],
                        scheduled_at=self._parse_datetime(record.get("scheduled_at")),
                        status=record["status"],
                        confirmed_at=self._parse_datetime(record.get("confirmed_at")),
                        completed_at=self._parse_datetime(record.get("completed_at")),
                    )
                )
                restored += 1

        await self.db.commit()
        logger.info(f"Restored {restored} records from backup {backup_id} into tenant {target}")
        return restored

    @staticmethod
    def _parse_datetime(value: str | None) -> datetime | None:
        return as_utc(datetime.fromisoformat(value)) if value else None

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """Delete backups past their expiry together with their files."""
        now = now or utcnow()
        result = await self.db.execute(select(Backup).where(Backup.expires_at.is_not(None)))

        deleted = 0
        for backup in result.scalars().all():
            if as_utc(backup.expires_at) > now:
                continue
            if backup.file_path:
                Path(backup.file_path).unlink(missing_ok=True)
            await self.db.delete(backup)
            deleted += 1

        if deleted:
            await self.db.commit()
            logger.info(f"Deleted {deleted} expired backup(s)")
        return deleted
