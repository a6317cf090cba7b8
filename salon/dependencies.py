"""
FastAPI dependencies wiring settings, the plan catalog and services.
"""

import hmac

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from salon.config import Settings, get_settings
from salon.database import get_db
from salon.exceptions import AuthenticationError
from salon.plans import PlanCatalog, get_plan_catalog
from salon.services.appointment_service import AppointmentService
from salon.services.backup_service import BackupService
from salon.services.billing_service import BillingService
from salon.services.billing_webhook_service import BillingWebhookService
from salon.services.plan_service import PlanValidator
from salon.services.security_service import SecurityService
from salon.services.two_factor_service import TwoFactorService


def _matches(candidate: str | None, expected) -> bool:
    if not candidate or expected is None:
        return False
    secret = expected.get_secret_value()
    return bool(secret) and hmac.compare_digest(candidate.encode(), secret.encode())


async def verify_cron_caller(
    x_cron_secret: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    Admit scheduled callers.

    Accepts the shared X-Cron-Secret header or a bearer service token.
    With neither configured every call is refused.
    """
    if _matches(x_cron_secret, settings.cron_secret):
        return

    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and _matches(token.strip(), settings.service_token):
            return
        raise AuthenticationError("Unauthorized - invalid credentials")

    raise AuthenticationError("Unauthorized - Requisição não autorizada")


def get_billing_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> BillingService:
    return BillingService(db, settings, catalog)


def get_webhook_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> BillingWebhookService:
    return BillingWebhookService(db, settings, catalog)


def get_plan_validator(db: AsyncSession = Depends(get_db)) -> PlanValidator:
    return PlanValidator(db)


def get_appointment_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> AppointmentService:
    return AppointmentService(db, complete_after_hours=settings.auto_complete_after_hours)


def get_two_factor_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> TwoFactorService:
    return TwoFactorService(db, settings)


def get_backup_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
    catalog: PlanCatalog = Depends(get_plan_catalog),
) -> BackupService:
    return BackupService(db, settings, catalog)


def get_security_service(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> SecurityService:
    return SecurityService(db, default_block_minutes=settings.ip_block_default_minutes)
