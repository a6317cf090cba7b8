"""
Stripe webhook processing.

Verifies the Stripe-Signature header and applies subscription lifecycle
events to the tenant, subscriber and subscription rows.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any

import stripe
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salon.config import Settings
from salon.exceptions import PaymentProviderError, ValidationError
from salon.models.billing import Subscriber, Subscription
from salon.models.tenant import PlanStatus, Tenant
from salon.models.user import User
from salon.plans import PlanCatalog, PlanTier
from salon.utils.time import utcnow

logger = logging.getLogger(__name__)


def _from_timestamp(value: int | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class BillingWebhookService:
    def __init__(self, db: AsyncSession, settings: Settings, catalog: PlanCatalog):
        self.db = db
        self.settings = settings
        self.catalog = catalog

    def _get_stripe(self) -> Any:
        stripe.api_key = self.settings.stripe_secret_key.get_secret_value()
        return stripe

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Verify the webhook signature and parse the event."""
        if not signature:
            raise ValidationError("Missing Stripe signature", field="stripe-signature")

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")

        client = self._get_stripe()
        try:
            client.WebhookSignature.verify_header(
                payload,
                signature,
                self.settings.stripe_webhook_secret.get_secret_value(),
                client.Webhook.DEFAULT_TOLERANCE,
            )
            return json.loads(payload)
        except ValueError as e:
            raise ValidationError("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Stripe webhook signature verification failed: {e}")
            raise ValidationError("Signature verification failed") from e

    async def handle_event(self, event: dict[str, Any]) -> bool:
        """
        Apply a verified event to local state.

        Returns:
            True if the event type was handled, False if it was ignored
        """
        event_type = event.get("type", "")
        data_object = event.get("data", {}).get("object", {})

        handlers = {
            "checkout.session.completed": self._handle_checkout_completed,
            "invoice.payment_succeeded": self._handle_invoice_paid,
            "customer.subscription.created": self._handle_subscription_changed,
            "customer.subscription.updated": self._handle_subscription_changed,
            "customer.subscription.deleted": self._handle_subscription_deleted,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.debug(f"Unhandled Stripe event type: {event_type}")
            return False

        logger.info(f"Processing Stripe event {event.get('id')} ({event_type})")
        await handler(data_object)
        await self.db.commit()
        return True

    # ============== Lookups ==============

    async def _customer_email(self, customer_id: str | None) -> str | None:
        if not customer_id:
            return None
        client = self._get_stripe()
        try:
            customer = await asyncio.to_thread(client.Customer.retrieve, customer_id)
        except stripe.StripeError as e:
            raise PaymentProviderError(f"Failed to fetch customer {customer_id}: {e}", "retrieve_customer") from e
        return customer["email"]

    async def _tenant_for_email(self, email: str | None) -> tuple[User | None, Tenant | None]:
        if not email:
            return None, None
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalars().first()
        if not user:
            return None, None
        result = await self.db.execute(select(Tenant).where(Tenant.owner_id == user.id))
        return user, result.scalars().first()

    async def _tenant_by(self, column, value: str | None) -> Tenant | None:
        if not value:
            return None
        result = await self.db.execute(select(Tenant).where(column == value))
        return result.scalars().first()

    async def _upsert_subscriber(self, email: str, **values) -> Subscriber:
        result = await self.db.execute(select(Subscriber).where(Subscriber.email == email))
        subscriber = result.scalars().first()
        if subscriber is None:
            subscriber = Subscriber(email=email)
            self.db.add(subscriber)
        for key, value in values.items():
            setattr(subscriber, key, value)
        subscriber.updated_at = utcnow()
        return subscriber

    async def _upsert_subscription(self, stripe_subscription_id: str, **values) -> Subscription:
        result = await self.db.execute(
            select(Subscription).where(Subscription.stripe_subscription_id == stripe_subscription_id)
        )
        subscription = result.scalars().first()
        if subscription is None:
            subscription = Subscription(stripe_subscription_id=stripe_subscription_id)
            self.db.add(subscription)
        for key, value in values.items():
            setattr(subscription, key, value)
        return subscription

    # ============== Handlers ==============

    async def _handle_checkout_completed(self, session: dict[str, Any]) -> None:
        metadata = session.get("metadata") or {}
        tier = self.catalog.tier_for_product(metadata.get("product_id"))
        if not metadata.get("product_id") and self.catalog.is_known_tier(metadata.get("plan_tier")):
            tier = PlanTier(metadata["plan_tier"])

        customer_id = session.get("customer")
        subscription_id = session.get("subscription")
        email = (session.get("customer_details") or {}).get("email") or await self._customer_email(customer_id)

        tenant = await self._tenant_by(Tenant.id, metadata.get("tenant_id"))
        user = None
        if tenant is None:
            user, tenant = await self._tenant_for_email(email)

        if tenant is not None:
            tenant.plan_tier = tier.value
            tenant.plan_status = PlanStatus.active.value
            tenant.payment_completed = True
            tenant.stripe_customer_id = customer_id
            tenant.stripe_subscription_id = subscription_id
            logger.info(f"Tenant {tenant.id} activated on plan {tier.value} after checkout")
            return

        if not email:
            logger.warning(f"Checkout session {session.get('id')} completed without a resolvable email")
            return

        # No account yet; keep the payment until the user signs up
        await self._upsert_subscriber(
            email,
            user_id=user.id if user else None,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            subscribed=True,
            subscription_tier=tier.value,
        )
        logger.info(f"Stored pending subscription for {email} on plan {tier.value}")

    async def _handle_invoice_paid(self, invoice: dict[str, Any]) -> None:
        customer_id = invoice.get("customer")
        if not customer_id:
            return
        result = await self.db.execute(
            update(Tenant)
            .where(Tenant.stripe_customer_id == customer_id)
            .values(plan_status=PlanStatus.active.value, payment_completed=True, updated_at=utcnow())
        )
        logger.info(f"Invoice {invoice.get('id')} paid; {result.rowcount} tenant(s) marked active")

    async def _handle_subscription_changed(self, subscription: dict[str, Any]) -> None:
        customer_id = subscription.get("customer")
        subscription_id = subscription.get("id")
        status = subscription.get("status", "")

        items = (subscription.get("items") or {}).get("data") or []
        first_item = items[0] if items else {}
        product = (first_item.get("price") or {}).get("product")
        if isinstance(product, dict):
            product = product.get("id")
        tier = self.catalog.tier_for_product(product)

        # Newer API versions report the billing period on the item
        period_start = _from_timestamp(
            subscription.get("current_period_start") or first_item.get("current_period_start")
        )
        period_end = _from_timestamp(subscription.get("current_period_end") or first_item.get("current_period_end"))

        email = await self._customer_email(customer_id)
        user, tenant = await self._tenant_for_email(email)
        if tenant is None:
            tenant = await self._tenant_by(Tenant.stripe_customer_id, customer_id)

        if tenant is not None:
            tenant.plan_status = status
            tenant.plan_tier = tier.value
            tenant.current_period_start = period_start
            tenant.current_period_end = period_end
            tenant.stripe_customer_id = customer_id
            tenant.stripe_subscription_id = subscription_id
            logger.info(f"Tenant {tenant.id} synced to subscription {subscription_id} ({status})")

        if email:
            await self._upsert_subscriber(
                email,
                user_id=user.id if user else None,
                tenant_id=tenant.id if tenant else None,
                stripe_customer_id=customer_id,
                stripe_subscription_id=subscription_id,
                subscribed=status == "active",
                subscription_tier=tier.value,
                subscription_end=period_end,
            )

        if subscription_id:
            await self._upsert_subscription(
                subscription_id,
                tenant_id=tenant.id if tenant else None,
                stripe_customer_id=customer_id,
                plan_tier=tier.value,
                status=status,
                current_period_end=period_end,
            )

    async def _handle_subscription_deleted(self, subscription: dict[str, Any]) -> None:
        subscription_id = subscription.get("id")
        if not subscription_id:
            return
        now = utcnow()

        await self.db.execute(
            update(Tenant)
            .where(Tenant.stripe_subscription_id == subscription_id)
            .values(plan_status=PlanStatus.canceled.value, payment_completed=False, updated_at=now)
        )
        await self.db.execute(
            update(Subscriber)
            .where(Subscriber.stripe_subscription_id == subscription_id)
            .values(subscribed=False, subscription_end=now, updated_at=now)
        )
        await self.db.execute(
            update(Subscription)
            .where(Subscription.stripe_subscription_id == subscription_id)
            .values(status="canceled", updated_at=now)
        )
        logger.info(f"Subscription {subscription_id} deleted; local records canceled")
