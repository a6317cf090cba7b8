"""
Plan Validation Service

`check` answers whether a tenant's plan is currently active without
touching the store. `reconcile` is the repair operation: a tenant whose
plan is no longer active is moved back to pending with payment cleared.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.exceptions import TenantNotFoundError, ValidationError
from salon.models.tenant import PlanStatus, Tenant
from salon.utils.time import as_utc, isoformat, utcnow

logger = logging.getLogger(__name__)


def is_plan_active(tenant: Tenant, now: datetime) -> bool:
    """A plan is active when it is paid, marked active and not past its period end."""
    if tenant.plan_status != PlanStatus.active.value or not tenant.payment_completed:
        return False
    period_end = as_utc(tenant.current_period_end)
    return period_end is None or period_end > now


@dataclass(frozen=True)
class PlanStatusReport:
    tenant_id: str
    plan: str
    status: str
    payment_completed: bool
    period_end: datetime | None
    is_active: bool

    @classmethod
    def for_tenant(cls, tenant: Tenant, now: datetime) -> "PlanStatusReport":
        return cls(
            tenant_id=tenant.id,
            plan=tenant.plan_tier,
            status=tenant.plan_status,
            payment_completed=bool(tenant.payment_completed),
            period_end=as_utc(tenant.current_period_end),
            is_active=is_plan_active(tenant, now),
        )

    def to_response(self) -> dict:
        return {
            "success": True,
            "isActive": self.is_active,
            "plan": self.plan,
            "status": self.status,
            "paymentCompleted": self.payment_completed,
            "periodEnd": isoformat(self.period_end),
        }


class PlanValidator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        if not tenant_id:
            raise ValidationError("tenantId is required", field="tenantId")
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalars().first()
        if not tenant:
            raise TenantNotFoundError(tenant_id)
        return tenant

    async def check(self, tenant_id: str, now: datetime | None = None) -> PlanStatusReport:
        tenant = await self._get_tenant(tenant_id)
        return PlanStatusReport.for_tenant(tenant, now or utcnow())

    async def reconcile(self, tenant_id: str, now: datetime | None = None) -> PlanStatusReport:
        """
        Check a tenant's plan and repair stale flags.

        The returned report describes the tenant as it was read, with
        is_active freshly computed, so callers see why a repair happened.
        """
        tenant = await self._get_tenant(tenant_id)
        report = PlanStatusReport.for_tenant(tenant, now or utcnow())

        if not report.is_active and self._downgrade(tenant):
            await self.db.commit()
            logger.info(f"Tenant {tenant_id} plan is no longer active; status reset to pending")

        return report

    async def reconcile_expired(self, now: datetime | None = None) -> int:
        """Repair every tenant stored as active whose plan has lapsed. Returns the number repaired."""
        now = now or utcnow()
        result = await self.db.execute(select(Tenant).where(Tenant.plan_status == PlanStatus.active.value))

        repaired = 0
        for tenant in result.scalars().all():
            if not is_plan_active(tenant, now) and self._downgrade(tenant):
                repaired += 1

        if repaired:
            await self.db.commit()
            logger.info(f"Plan reconciliation reset {repaired} lapsed tenant(s) to pending")
        return repaired

    @staticmethod
    def _downgrade(tenant: Tenant) -> bool:
        if tenant.plan_status == PlanStatus.pending.value and not tenant.payment_completed:
            return False
        tenant.plan_status = PlanStatus.pending.value
        tenant.payment_completed = False
        return True
