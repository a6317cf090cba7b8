from fastapi import APIRouter, Depends

from salon.dependencies import get_plan_validator
from salon.exceptions import ResourceNotFoundError, TenantNotFoundError, ValidationError
from salon.plans import PlanCatalog, get_plan_catalog
from salon.schemas import ValidatePlanRequest
from salon.services.plan_service import PlanValidator

router = APIRouter(tags=["Plans"])


@router.post("/validate-plan")
async def validate_plan(
    payload: ValidatePlanRequest,
    validator: PlanValidator = Depends(get_plan_validator),
):
    """
    Check a tenant's plan and reset it to pending if it has lapsed.

    An unknown tenant is a bad request here, not a 404.
    """
    try:
        report = await validator.reconcile(payload.tenant_id)
    except TenantNotFoundError as e:
        raise ValidationError("Tenant not found", field="tenantId") from e
    return report.to_response()


@router.get("/plans")
async def list_plans(catalog: PlanCatalog = Depends(get_plan_catalog)):
    return {"plans": [plan.to_dict() for plan in catalog.all()]}


@router.get("/plans/{tier}")
async def get_plan(tier: str, catalog: PlanCatalog = Depends(get_plan_catalog)):
    if not catalog.is_known_tier(tier):
        raise ResourceNotFoundError("Plan", tier)
    return catalog.get(tier).to_dict()


@router.get("/tenants/{tenant_id}/plan-status")
async def plan_status(tenant_id: str, validator: PlanValidator = Depends(get_plan_validator)):
    """Read-only plan check; never modifies the tenant."""
    report = await validator.check(tenant_id)
    return report.to_response()
