import ipaddress
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.exceptions import ValidationError
from salon.models.security_event import BlockedIP, SecurityEvent, SecurityEventType, SecuritySeverity
from salon.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


def _check_address(ip_address: str) -> None:
    try:
        ipaddress.ip_address(ip_address)
    except ValueError:
        raise ValidationError(f"Invalid IP address: {ip_address}", field="ipAddress") from None


class SecurityService:
    def __init__(self, db: AsyncSession, default_block_minutes: int = 15):
        self.db = db
        self.default_block_minutes = default_block_minutes

    async def block_ip(
        self,
        tenant_id: str,
        ip_address: str,
        duration_minutes: int | None = None,
        user_agent: str | None = None,
    ) -> BlockedIP:
        """Record a blocked_ip security event and block the address until now + duration."""
        if not tenant_id or not ip_address:
            raise ValidationError("Missing required parameters")
        _check_address(ip_address)

        minutes = duration_minutes or self.default_block_minutes
        if minutes <= 0:
            raise ValidationError("duration must be positive", field="duration")

        now = utcnow()
        self.db.add(
            SecurityEvent(
                tenant_id=tenant_id,
                type=SecurityEventType.blocked_ip.value,
                severity=SecuritySeverity.high.value,
                description=f"IP {ip_address} bloqueado por {minutes} minutos",
                ip_address=ip_address,
                user_agent=user_agent,
                resolved=False,
                timestamp=now,
            )
        )
        blocked = BlockedIP(
            tenant_id=tenant_id,
            ip_address=ip_address,
            reason="manual block",
            blocked_until=now + timedelta(minutes=minutes),
        )
        self.db.add(blocked)
        await self.db.commit()

        logger.warning(f"IP {ip_address} blocked for tenant {tenant_id} for {minutes} minutes")
        return blocked

    async def is_blocked(self, tenant_id: str, ip_address: str, now: datetime | None = None) -> bool:
        """True while any block row for this tenant and address is still in force."""
        _check_address(ip_address)
        now = now or utcnow()
        result = await self.db.execute(
            select(BlockedIP).where(BlockedIP.tenant_id == tenant_id, BlockedIP.ip_address == ip_address)
        )
        return any(as_utc(row.blocked_until) > now for row in result.scalars().all())
