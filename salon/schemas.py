"""
Request and response schemas shared by the routers.

Payloads use camelCase on the wire and snake_case in Python.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from salon.models.backup import BackupType


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============== Billing ==============


class CancelSubscriptionRequest(CamelModel):
    subscription_id: str
    tenant_id: str


class CreateCustomerRequest(CamelModel):
    email: str
    name: str | None = None
    metadata: dict[str, str] | None = None


class CustomerPortalRequest(CamelModel):
    customer_id: str
    return_url: str | None = None


class CheckoutSessionRequest(CamelModel):
    plan_tier: str
    success_url: str
    cancel_url: str
    customer_email: str | None = None
    tenant_id: str | None = None


# ============== Plans ==============


class ValidatePlanRequest(CamelModel):
    tenant_id: str


# ============== Two-factor ==============


class SendCodeRequest(CamelModel):
    user_id: str
    method_type: str


class VerifyCodeRequest(CamelModel):
    user_id: str
    method_type: str
    code: str = Field(..., min_length=6, max_length=10)
    secret_key: str | None = None


class GenerateSecretRequest(CamelModel):
    user_id: str
    method_type: str = "authenticator"


# ============== Backups ==============


class CreateBackupRequest(CamelModel):
    tenant_id: str
    backup_type: BackupType = BackupType.FULL
    description: str | None = None


class RestoreBackupRequest(CamelModel):
    backup_id: str
    target_tenant_id: str | None = None
    restore_options: dict[str, Any] = Field(default_factory=dict)


# ============== Security ==============


class BlockIpRequest(CamelModel):
    tenant_id: str
    ip_address: str
    duration: int | None = Field(default=None, gt=0, le=60 * 24 * 30)
