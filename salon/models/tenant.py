"""
Tenant model.

Each Tenant is one salon/barbershop account. Its plan columns are the
authoritative local view of the billing relationship; entitlements are
derived from plan_tier through the plan catalog and never stored.
"""

import enum
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String

from salon.database import Base
from salon.utils.time import utcnow


class PlanStatus(str, enum.Enum):
    pending = "pending"
    active = "active"
    canceled = "canceled"


class Tenant(Base):
    __tablename__ = "tenants"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(200), nullable=False)
    slug = Column(String(100), nullable=False, unique=True, index=True)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)

    plan_tier = Column(String(20), nullable=False, default="essential")
    # Holds pending|active|canceled, or a raw processor status mirrored by the webhook
    plan_status = Column(String(20), nullable=False, default=PlanStatus.pending.value)
    payment_completed = Column(Boolean, nullable=False, default=False)

    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (Index("idx_tenant_plan_status", "plan_status"),)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}', plan={self.plan_tier}/{self.plan_status})>"
