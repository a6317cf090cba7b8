"""
Backup Model

Stores metadata about tenant data exports for tracking, download and restore.
"""

import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, Enum as SQLEnum, Float, ForeignKey, Integer, String, Text

from salon.database import Base
from salon.utils.time import utcnow


class BackupStatus(str, Enum):
    """Backup status enumeration."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class BackupType(str, Enum):
    """Backup type enumeration."""

    FULL = "full"
    INCREMENTAL = "incremental"
    MANUAL = "manual"


class Backup(Base):
    """
    A single export of one tenant's data.

    The export itself is a gzip-compressed JSON document on disk; this row
    tracks where it lives, how big it is and whether it finished.
    """

    __tablename__ = "backups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    backup_type = Column(
        SQLEnum(BackupType, values_callable=lambda e: [m.value for m in e]), default=BackupType.FULL, nullable=False
    )
    status = Column(
        SQLEnum(BackupStatus, values_callable=lambda e: [m.value for m in e]),
        default=BackupStatus.IN_PROGRESS,
        nullable=False,
    )

    file_path = Column(String(500), nullable=True)
    file_size = Column(Integer, nullable=True)  # Size in bytes, compressed
    compression_ratio = Column(Float, nullable=True)
    total_records = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    retention_days = Column(Integer, nullable=False, default=30)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<Backup(id={self.id}, name='{self.name}', status={self.status.value})>"

    @property
    def file_name(self) -> str | None:
        if not self.file_path:
            return None
        return self.file_path.replace("\\", "/").rsplit("/", 1)[-1]


class BackupStats(Base):
    """Running per-tenant backup counters."""

    __tablename__ = "backup_stats"

    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), primary_key=True)
    total_backups = Column(Integer, nullable=False, default=0)
    successful_backups = Column(Integer, nullable=False, default=0)
    failed_backups = Column(Integer, nullable=False, default=0)
    total_size = Column(Integer, nullable=False, default=0)
    last_backup_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<BackupStats(tenant_id={self.tenant_id}, total={self.total_backups})>"
