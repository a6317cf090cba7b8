"""
Billing mirror models.

Subscription mirrors one processor subscription; Subscriber is the
denormalised payment record that can exist before its user signs up.
Both lag the tenant row, which stays the authoritative plan flag.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from salon.database import Base
from salon.utils.time import utcnow


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True)
    stripe_subscription_id = Column(String(255), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(255), nullable=True)
    plan_tier = Column(String(20), nullable=True)
    status = Column(String(30), nullable=False, default="active")
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Subscription(stripe_id={self.stripe_subscription_id}, status={self.status})>"


class Subscriber(Base):
    __tablename__ = "subscribers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    tenant_id = Column(String(36), ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True, index=True)
    subscribed = Column(Boolean, nullable=False, default=False)
    subscription_tier = Column(String(20), nullable=True)
    subscription_end = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Subscriber(email='{self.email}', subscribed={self.subscribed})>"
