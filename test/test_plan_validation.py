"""
Tests for plan validation and reconciliation
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from salon.exceptions import TenantNotFoundError, ValidationError
from salon.models.tenant import Tenant
from salon.services.plan_service import PlanValidator, is_plan_active

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestIsPlanActive:
    def _tenant(self, **values) -> Tenant:
        defaults = {"plan_status": "active", "payment_completed": True, "current_period_end": None}
        defaults.update(values)
        return Tenant(**defaults)

    def test_active_paid_without_expiry(self):
        assert is_plan_active(self._tenant(), NOW) is True

    def test_future_expiry_is_active(self):
        assert is_plan_active(self._tenant(current_period_end=NOW + timedelta(days=3)), NOW) is True

    def test_past_expiry_is_inactive(self):
        assert is_plan_active(self._tenant(current_period_end=NOW - timedelta(seconds=1)), NOW) is False

    def test_expiry_equal_to_now_is_inactive(self):
        assert is_plan_active(self._tenant(current_period_end=NOW), NOW) is False

    def test_unpaid_is_inactive(self):
        assert is_plan_active(self._tenant(payment_completed=False), NOW) is False

    @pytest.mark.parametrize("status", ["pending", "canceled", "past_due"])
    def test_non_active_status_is_inactive(self, status):
        assert is_plan_active(self._tenant(plan_status=status), NOW) is False

    def test_naive_expiry_treated_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert is_plan_active(self._tenant(current_period_end=naive), NOW) is True


class TestPlanValidator:
    async def test_check_premium_example(self, test_db: AsyncSession, premium_tenant):
        report = await PlanValidator(test_db).check(premium_tenant.id)

        assert report.to_response() == {
            "success": True,
            "isActive": True,
            "plan": "premium",
            "status": "active",
            "paymentCompleted": True,
            "periodEnd": "2099-01-01T00:00:00+00:00",
        }

    async def test_check_reports_stored_tier(self, test_db: AsyncSession, make_tenant):
        """A legacy tier name is reported as stored, not normalized"""
        tenant = await make_tenant(plan_tier="basic", plan_status="active", payment_completed=True)

        report = await PlanValidator(test_db).check(tenant.id)

        assert report.plan == "basic"
        assert report.to_response()["plan"] == "basic"

    async def test_check_has_no_side_effects(self, test_db: AsyncSession, expired_tenant):
        report = await PlanValidator(test_db).check(expired_tenant.id)

        assert report.is_active is False
        await test_db.refresh(expired_tenant)
        assert expired_tenant.plan_status == "active"
        assert expired_tenant.payment_completed is True

    async def test_reconcile_downgrades_expired_plan(self, test_db: AsyncSession, expired_tenant):
        report = await PlanValidator(test_db).reconcile(expired_tenant.id)

        # Reported as read, with the freshly computed flag
        assert report.is_active is False
        assert report.status == "active"

        await test_db.refresh(expired_tenant)
        assert expired_tenant.plan_status == "pending"
        assert expired_tenant.payment_completed is False

    async def test_reconcile_leaves_active_plan_alone(self, test_db: AsyncSession, premium_tenant):
        report = await PlanValidator(test_db).reconcile(premium_tenant.id)

        assert report.is_active is True
        await test_db.refresh(premium_tenant)
        assert premium_tenant.plan_status == "active"

    async def test_unknown_tenant(self, test_db: AsyncSession):
        with pytest.raises(TenantNotFoundError):
            await PlanValidator(test_db).check("missing")

    async def test_missing_tenant_id(self, test_db: AsyncSession):
        with pytest.raises(ValidationError):
            await PlanValidator(test_db).reconcile("")

    async def test_reconcile_expired_repairs_only_lapsed(
        self, test_db: AsyncSession, premium_tenant, expired_tenant, make_tenant
    ):
        unpaid = await make_tenant(plan_status="active", payment_completed=False)
        pending = await make_tenant(plan_status="pending")

        repaired = await PlanValidator(test_db).reconcile_expired()

        assert repaired == 2
        for tenant in (premium_tenant, expired_tenant, unpaid, pending):
            await test_db.refresh(tenant)
        assert premium_tenant.plan_status == "active"
        assert expired_tenant.plan_status == "pending"
        assert unpaid.plan_status == "pending"
        assert pending.plan_status == "pending"


class TestPlanRoutes:
    async def test_validate_plan_expired(self, client, expired_tenant):
        response = await client.post("/api/v1/validate-plan", json={"tenantId": expired_tenant.id})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["isActive"] is False
        assert body["plan"] == "professional"

    async def test_validate_plan_premium(self, client, premium_tenant):
        response = await client.post("/api/v1/validate-plan", json={"tenantId": premium_tenant.id})

        assert response.status_code == 200
        assert response.json()["isActive"] is True
        assert response.json()["periodEnd"].startswith("2099-01-01")

    async def test_validate_plan_missing_tenant_id(self, client):
        response = await client.post("/api/v1/validate-plan", json={})

        assert response.status_code == 400
        assert response.json() == {
            "success": False,
            "error": "Missing required parameters",
            "error_code": "VALIDATION_FAILED",
            "details": response.json()["details"],
            "path": "/api/v1/validate-plan",
        }

    async def test_validate_plan_unknown_tenant(self, client):
        response = await client.post("/api/v1/validate-plan", json={"tenantId": "nope"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Tenant not found"
        assert body["error_code"] == "VALIDATION_FAILED"

    async def test_plan_status_unknown_tenant_is_not_found(self, client):
        response = await client.get("/api/v1/tenants/nope/plan-status")

        assert response.status_code == 404
        assert response.json()["error_code"] == "RESOURCE_TENANT_NOT_FOUND"

    async def test_plan_status_is_read_only(self, client, test_db, expired_tenant):
        response = await client.get(f"/api/v1/tenants/{expired_tenant.id}/plan-status")

        assert response.status_code == 200
        assert response.json()["isActive"] is False
        await test_db.refresh(expired_tenant)
        assert expired_tenant.plan_status == "active"

    async def test_list_plans(self, client):
        response = await client.get("/api/v1/plans")

        assert response.status_code == 200
        assert [plan["tier"] for plan in response.json()["plans"]] == ["essential", "professional", "premium"]

    async def test_get_plan(self, client):
        response = await client.get("/api/v1/plans/professional")

        assert response.status_code == 200
        assert response.json()["price"] == 4390

    async def test_get_unknown_plan(self, client):
        response = await client.get("/api/v1/plans/gold")

        assert response.status_code == 404
