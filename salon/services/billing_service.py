"""
Billing Service

Stripe subscription lifecycle: customers, checkout and portal sessions,
and cancellation mirrored into the local tenant, subscriber and
subscription rows.
"""

import asyncio
import logging
from typing import Any

import stripe
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from salon.config import Settings
from salon.exceptions import DatabaseError, PaymentProviderError, TenantNotFoundError, ValidationError
from salon.models.billing import Subscriber, Subscription
from salon.models.tenant import PlanStatus, Tenant
from salon.plans import PlanCatalog
from salon.utils.time import utcnow

logger = logging.getLogger(__name__)


class BillingService:
    """Stripe billing operations backed by the local billing mirror."""

    def __init__(self, db: AsyncSession, settings: Settings, catalog: PlanCatalog):
        self.db = db
        self.settings = settings
        self.catalog = catalog

    def _get_stripe(self) -> Any:
        """Configure and return the Stripe client module."""
        stripe.api_key = self.settings.stripe_secret_key.get_secret_value()
        return stripe

    async def _get_tenant(self, tenant_id: str) -> Tenant:
        result = await self.db.execute(select(Tenant).where(Tenant.id == tenant_id))
        tenant = result.scalars().first()
        if not tenant:
            raise TenantNotFoundError(tenant_id)
        return tenant

    # ============== Cancellation ==============

    async def cancel_subscription(self, subscription_id: str, tenant_id: str) -> dict[str, Any]:
        """
        Cancel a subscription at Stripe and mirror the result locally.

        The tenant row is the authoritative flag: failing to update it
        raises. The subscriber and subscription mirrors are updated
        independently and a failure there is only logged.

        Returns:
            dict describing the canceled Stripe subscription
        """
        if not subscription_id:
            raise ValidationError("subscriptionId is required", field="subscriptionId")
        if not tenant_id:
            raise ValidationError("tenantId is required", field="tenantId")

        tenant = await self._get_tenant(tenant_id)

        client = self._get_stripe()
        try:
            canceled = await asyncio.to_thread(client.Subscription.cancel, subscription_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe rejected cancellation of {subscription_id}: {e}")
            raise PaymentProviderError(
                f"Failed to cancel subscription: {e.user_message or e}", operation="cancel_subscription"
            ) from e

        logger.info(f"Subscription {subscription_id} canceled at Stripe for tenant {tenant_id}")

        try:
            tenant.plan_status = PlanStatus.canceled.value
            tenant.payment_completed = False
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to mark tenant {tenant_id} as canceled: {e}")
            raise DatabaseError("Failed to update tenant plan status", operation="cancel_subscription") from e

        mirrors = (
            ("subscriber", self._cancel_subscriber_mirror),
            ("subscription", self._cancel_subscription_mirror),
        )
        for name, mirror in mirrors:
            try:
                await mirror(subscription_id)
                await self.db.commit()
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception(f"Non-fatal: failed to cancel {name} mirror for subscription {subscription_id}")

        return {
            "id": canceled["id"],
            "status": canceled["status"],
            "customer": canceled["customer"],
            "canceled_at": canceled["canceled_at"],
        }

    async def _cancel_subscriber_mirror(self, subscription_id: str) -> None:
        await self.db.execute(
            update(Subscriber)
            .where(Subscriber.stripe_subscription_id == subscription_id)
            .values(subscribed=False, updated_at=utcnow())
        )

    async def _cancel_subscription_mirror(self, subscription_id: str) -> None:
        await self.db.execute(
            update(Subscription)
            .where(Subscription.stripe_subscription_id == subscription_id)
            .values(status="canceled", updated_at=utcnow())
        )

    # ============== Customers & Sessions ==============

    async def create_customer(
        self, email: str, name: str | None = None, metadata: dict[str, str] | None = None
    ) -> dict[str, Any]:
        if not email:
            raise ValidationError("email is required", field="email")

        client = self._get_stripe()
        try:
            customer = await asyncio.to_thread(
                client.Customer.create,
                email=email,
                name=name or f"Cliente {email.split('@')[0]}",
                metadata=metadata or {},
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Failed to create customer: {e.user_message or e}", "create_customer") from e

        logger.info(f"Stripe customer {customer['id']} created for {email}")
        return {"customer_id": customer["id"], "email": customer["email"], "created": customer["created"]}

    async def create_portal_session(
        self, customer_id: str, return_url: str | None = None, origin: str | None = None
    ) -> dict[str, str]:
        """Open a billing portal session; return_url defaults to the subscription page."""
        if not customer_id:
            raise ValidationError("customerId is required", field="customerId")

        if not return_url:
            base = (origin or self.settings.allowed_origins[0]).rstrip("/")
            return_url = f"{base}{self.settings.portal_return_path}"

        client = self._get_stripe()
        try:
            session = await asyncio.to_thread(
                client.billing_portal.Session.create, customer=customer_id, return_url=return_url
            )
        except stripe.StripeError as e:
            raise PaymentProviderError(
                f"Failed to create portal session: {e.user_message or e}", "create_portal_session"
            ) from e

        return {"url": session["url"]}

    async def create_checkout_session(
        self,
        plan_tier: str,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        tenant_id: str | None = None,
    ) -> dict[str, str]:
        """
        Start a subscription checkout for a plan tier.

        The session metadata carries the tier, its product and the tenant so
        the webhook can activate the right account when payment completes.
        """
        if not self.catalog.is_known_tier(plan_tier):
            raise ValidationError(f"Unknown plan tier: {plan_tier}", field="planTier")
        if not success_url or not cancel_url:
            raise ValidationError("successUrl and cancelUrl are required")

        price_id = self.settings.stripe_price_ids.get(plan_tier)
        if not price_id:
            raise ValidationError(f"No price configured for plan {plan_tier}", field="planTier")

        metadata = {"plan_tier": plan_tier}
        product_id = self.catalog.product_for_tier(plan_tier)
        if product_id:
            metadata["product_id"] = product_id
        if tenant_id:
            metadata["tenant_id"] = tenant_id

        params: dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_email:
            params["customer_email"] = customer_email

        client = self._get_stripe()
        try:
            session = await asyncio.to_thread(client.checkout.Session.create, **params)
        except stripe.StripeError as e:
            raise PaymentProviderError(
                f"Failed to create checkout session: {e.user_message or e}", "create_checkout_session"
            ) from e

        logger.info(f"Checkout session {session['id']} created for plan {plan_tier}")
        return {"url": session["url"], "session_id": session["id"]}
