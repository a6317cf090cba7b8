"""
Backup Routes

Create, list, download and restore tenant backups.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import FileResponse

from salon.dependencies import get_backup_service
from salon.models.backup import Backup, BackupStatus
from salon.schemas import CreateBackupRequest, RestoreBackupRequest
from salon.services.backup_service import BackupService
from salon.utils.time import isoformat

router = APIRouter(tags=["Backups"])


def _backup_to_dict(backup: Backup) -> dict:
    return {
        "id": backup.id,
        "tenantId": backup.tenant_id,
        "name": backup.name,
        "description": backup.description,
        "backupType": backup.backup_type.value,
        "status": backup.status.value,
        "fileName": backup.file_name,
        "fileSize": backup.file_size,
        "compressionRatio": backup.compression_ratio,
        "totalRecords": backup.total_records,
        "errorMessage": backup.error_message,
        "createdAt": isoformat(backup.created_at),
        "completedAt": isoformat(backup.completed_at),
        "expiresAt": isoformat(backup.expires_at),
    }


@router.post("/create-backup")
async def create_backup(
    payload: CreateBackupRequest,
    service: BackupService = Depends(get_backup_service),
):
    backup = await service.create_backup(payload.tenant_id, payload.backup_type, payload.description)
    succeeded = backup.status == BackupStatus.COMPLETED
    return {
        "success": succeeded,
        "message": "Backup criado com sucesso" if succeeded else f"Falha no backup: {backup.error_message}",
        "backupId": backup.id,
        "status": backup.status.value,
        "fileSize": backup.file_size,
        "totalRecords": backup.total_records,
        "fileName": backup.file_name,
    }


@router.get("/backups")
async def list_backups(
    tenant_id: str = Query(..., alias="tenantId"),
    service: BackupService = Depends(get_backup_service),
):
    return {"backups": [_backup_to_dict(backup) for backup in await service.list_backups(tenant_id)]}


@router.get("/download-backup/{backup_id}")
async def download_backup(backup_id: str, service: BackupService = Depends(get_backup_service)):
    backup = await service.get_backup(backup_id)
    path = service.get_backup_file(backup)
    return FileResponse(path, media_type="application/gzip", filename=backup.file_name)


@router.post("/restore-backup")
async def restore_backup(
    payload: RestoreBackupRequest,
    service: BackupService = Depends(get_backup_service),
):
    restored = await service.restore_backup(payload.backup_id, payload.target_tenant_id, payload.restore_options)
    return {
        "success": True,
        "message": f"Backup restaurado com sucesso. {restored} registros restaurados.",
        "restoredRecords": restored,
    }
