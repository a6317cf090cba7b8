"""
Tests for Stripe webhook verification and event handling
"""

import hashlib
import hmac
import json
import time
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
import stripe
from sqlalchemy import select

from salon.exceptions import PaymentProviderError, ValidationError
from salon.models.billing import Subscriber, Subscription
from salon.services.billing_webhook_service import BillingWebhookService

WEBHOOK_SECRET = "whsec_test_xxx"
PERIOD_END = 1798761600  # 2027-01-01T00:00:00Z


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    ts = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={ts},v1={signature}"


def event(event_type: str, data_object: dict) -> dict:
    return {"id": "evt_test_1", "type": event_type, "data": {"object": data_object}}


def subscription_object(status: str = "active", product: str = "prod_professional") -> dict:
    return {
        "id": "sub_new",
        "customer": "cus_owner",
        "status": status,
        "current_period_start": PERIOD_END - 30 * 86400,
        "current_period_end": PERIOD_END,
        "items": {"data": [{"price": {"product": product}}]},
    }


@pytest.fixture
def webhooks(test_db, settings, catalog) -> BillingWebhookService:
    return BillingWebhookService(test_db, settings, catalog)


class TestConstructEvent:
    def test_valid_signature(self, webhooks):
        payload = json.dumps(event("invoice.payment_succeeded", {"customer": "cus_1"}))

        parsed = webhooks.construct_event(payload.encode(), sign(payload))

        assert parsed["type"] == "invoice.payment_succeeded"

    def test_missing_signature(self, webhooks):
        with pytest.raises(ValidationError) as exc_info:
            webhooks.construct_event(b"{}", None)
        assert exc_info.value.message == "Missing Stripe signature"

    def test_wrong_secret(self, webhooks):
        payload = json.dumps(event("invoice.payment_succeeded", {}))

        with pytest.raises(ValidationError) as exc_info:
            webhooks.construct_event(payload.encode(), sign(payload, secret="whsec_other"))
        assert exc_info.value.message == "Signature verification failed"

    def test_stale_timestamp(self, webhooks):
        payload = json.dumps(event("invoice.payment_succeeded", {}))

        with pytest.raises(ValidationError):
            webhooks.construct_event(payload.encode(), sign(payload, timestamp=int(time.time()) - 3600))

    def test_tampered_payload(self, webhooks):
        payload = json.dumps(event("invoice.payment_succeeded", {"customer": "cus_1"}))
        tampered = payload.replace("cus_1", "cus_2")

        with pytest.raises(ValidationError):
            webhooks.construct_event(tampered.encode(), sign(payload))


class TestHandleEvent:
    async def test_unhandled_event_is_ignored(self, webhooks):
        assert await webhooks.handle_event(event("charge.refunded", {})) is False

    async def test_checkout_activates_tenant_from_metadata(self, webhooks, test_db, make_tenant):
        tenant = await make_tenant()

        handled = await webhooks.handle_event(
            event(
                "checkout.session.completed",
                {
                    "id": "cs_1",
                    "customer": "cus_new",
                    "subscription": "sub_new",
                    "customer_details": {"email": "someone@salao.com"},
                    "metadata": {"tenant_id": tenant.id, "product_id": "prod_premium"},
                },
            )
        )

        assert handled is True
        await test_db.refresh(tenant)
        assert tenant.plan_tier == "premium"
        assert tenant.plan_status == "active"
        assert tenant.payment_completed is True
        assert tenant.stripe_customer_id == "cus_new"
        assert tenant.stripe_subscription_id == "sub_new"

    async def test_checkout_matches_tenant_by_owner_email(self, webhooks, test_db, test_user, make_tenant):
        tenant = await make_tenant(owner_id=test_user.id)

        await webhooks.handle_event(
            event(
                "checkout.session.completed",
                {
                    "customer": "cus_owner",
                    "subscription": "sub_owner",
                    "customer_details": {"email": test_user.email},
                    "metadata": {"plan_tier": "professional"},
                },
            )
        )

        await test_db.refresh(tenant)
        assert tenant.plan_tier == "professional"
        assert tenant.plan_status == "active"

    async def test_checkout_without_account_stores_subscriber(self, webhooks, test_db):
        await webhooks.handle_event(
            event(
                "checkout.session.completed",
                {
                    "customer": "cus_future",
                    "subscription": "sub_future",
                    "customer_details": {"email": "futuro@salao.com"},
                    "metadata": {"product_id": "prod_premium"},
                },
            )
        )

        result = await test_db.execute(select(Subscriber).where(Subscriber.email == "futuro@salao.com"))
        subscriber = result.scalars().one()
        assert subscriber.subscribed is True
        assert subscriber.subscription_tier == "premium"
        assert subscriber.stripe_customer_id == "cus_future"

    async def test_invoice_paid_reactivates_tenant(self, webhooks, test_db, make_tenant):
        tenant = await make_tenant(stripe_customer_id="cus_late", plan_status="pending")

        await webhooks.handle_event(event("invoice.payment_succeeded", {"id": "in_1", "customer": "cus_late"}))

        await test_db.refresh(tenant)
        assert tenant.plan_status == "active"
        assert tenant.payment_completed is True

    async def test_subscription_updated_syncs_everything(
        self, webhooks, test_db, test_user, make_tenant, monkeypatch
    ):
        tenant = await make_tenant(owner_id=test_user.id)
        monkeypatch.setattr(webhooks, "_customer_email", AsyncMock(return_value=test_user.email))

        await webhooks.handle_event(event("customer.subscription.updated", subscription_object()))

        await test_db.refresh(tenant)
        assert tenant.plan_tier == "professional"
        assert tenant.plan_status == "active"
        assert tenant.stripe_subscription_id == "sub_new"
        assert tenant.current_period_end.replace(tzinfo=timezone.utc) == datetime(2027, 1, 1, tzinfo=timezone.utc)

        subscriber = (await test_db.execute(select(Subscriber))).scalars().one()
        assert subscriber.email == test_user.email
        assert subscriber.tenant_id == tenant.id
        assert subscriber.subscribed is True

        subscription = (await test_db.execute(select(Subscription))).scalars().one()
        assert subscription.stripe_subscription_id == "sub_new"
        assert subscription.plan_tier == "professional"

    async def test_subscription_update_is_idempotent(self, webhooks, test_db, test_user, make_tenant, monkeypatch):
        await make_tenant(owner_id=test_user.id)
        monkeypatch.setattr(webhooks, "_customer_email", AsyncMock(return_value=test_user.email))

        for status in ("active", "past_due"):
            await webhooks.handle_event(event("customer.subscription.updated", subscription_object(status=status)))

        subscriptions = (await test_db.execute(select(Subscription))).scalars().all()
        assert len(subscriptions) == 1
        assert subscriptions[0].status == "past_due"

    async def test_subscription_period_on_item(self, webhooks, test_db, test_user, make_tenant, monkeypatch):
        tenant = await make_tenant(owner_id=test_user.id)
        monkeypatch.setattr(webhooks, "_customer_email", AsyncMock(return_value=test_user.email))
        data = subscription_object()
        data.pop("current_period_end")
        data["items"]["data"][0]["current_period_end"] = PERIOD_END

        await webhooks.handle_event(event("customer.subscription.created", data))

        await test_db.refresh(tenant)
        assert tenant.current_period_end is not None

    async def test_subscription_deleted_cancels_records(self, webhooks, test_db, premium_tenant):
        test_db.add(Subscription(tenant_id=premium_tenant.id, stripe_subscription_id="sub_premium", status="active"))
        await test_db.commit()

        await webhooks.handle_event(event("customer.subscription.deleted", {"id": "sub_premium"}))

        await test_db.refresh(premium_tenant)
        assert premium_tenant.plan_status == "canceled"
        assert premium_tenant.payment_completed is False
        subscription = (await test_db.execute(select(Subscription))).scalars().one()
        await test_db.refresh(subscription)
        assert subscription.status == "canceled"


class TestCustomerLookup:
    async def test_email_from_stripe_customer(self, webhooks, monkeypatch):
        client = MagicMock()
        client.Customer.retrieve.return_value = {"id": "cus_owner", "email": "owner@barbearia.com"}
        monkeypatch.setattr(webhooks, "_get_stripe", lambda: client)

        assert await webhooks._customer_email("cus_owner") == "owner@barbearia.com"
        client.Customer.retrieve.assert_called_once_with("cus_owner")

    async def test_no_customer_skips_stripe(self, webhooks, monkeypatch):
        client = MagicMock()
        monkeypatch.setattr(webhooks, "_get_stripe", lambda: client)

        assert await webhooks._customer_email(None) is None
        client.Customer.retrieve.assert_not_called()

    async def test_stripe_error_is_wrapped(self, webhooks, monkeypatch):
        client = MagicMock()
        client.Customer.retrieve.side_effect = stripe.StripeError("No such customer")
        monkeypatch.setattr(webhooks, "_get_stripe", lambda: client)

        with pytest.raises(PaymentProviderError):
            await webhooks._customer_email("cus_gone")


class TestWebhookRoute:
    async def test_signed_event_is_accepted(self, client, test_db, make_tenant):
        tenant = await make_tenant(stripe_customer_id="cus_route")
        payload = json.dumps(event("invoice.payment_succeeded", {"id": "in_2", "customer": "cus_route"}))

        response = await client.post(
            "/api/v1/stripe-webhook",
            content=payload,
            headers={"Stripe-Signature": sign(payload), "Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        await test_db.refresh(tenant)
        assert tenant.plan_status == "active"

    async def test_unsigned_event_is_rejected(self, client):
        response = await client.post("/api/v1/stripe-webhook", content=b"{}")

        assert response.status_code == 400
        assert response.json()["error"] == "Missing Stripe signature"

    async def test_bad_signature_is_rejected(self, client):
        payload = json.dumps(event("invoice.payment_succeeded", {}))

        response = await client.post(
            "/api/v1/stripe-webhook",
            content=payload,
            headers={"Stripe-Signature": sign(payload, secret="whsec_wrong")},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Signature verification failed"
