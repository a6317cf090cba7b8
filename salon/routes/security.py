from fastapi import APIRouter, Depends, Request

from salon.dependencies import get_security_service
from salon.schemas import BlockIpRequest
from salon.services.security_service import SecurityService

router = APIRouter(tags=["Security"])


@router.post("/block-ip")
async def block_ip(
    payload: BlockIpRequest,
    request: Request,
    service: SecurityService = Depends(get_security_service),
):
    blocked = await service.block_ip(
        payload.tenant_id,
        payload.ip_address,
        duration_minutes=payload.duration,
        user_agent=request.headers.get("user-agent"),
    )
    return {
        "success": True,
        "message": f"IP {blocked.ip_address} bloqueado com sucesso",
    }


@router.get("/tenants/{tenant_id}/blocked-ips/{ip_address}")
async def blocked_ip_status(
    tenant_id: str,
    ip_address: str,
    service: SecurityService = Depends(get_security_service),
):
    """Whether an address is currently blocked for a tenant."""
    blocked = await service.is_blocked(tenant_id, ip_address)
    return {"success": True, "tenantId": tenant_id, "ipAddress": ip_address, "blocked": blocked}
