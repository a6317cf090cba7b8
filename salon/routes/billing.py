"""
Billing Routes

Stripe customer, checkout, portal and cancellation endpoints, plus the
Stripe webhook receiver.
"""

from fastapi import APIRouter, Depends, Request

from salon.dependencies import get_billing_service, get_webhook_service
from salon.schemas import (
    CancelSubscriptionRequest,
    CheckoutSessionRequest,
    CreateCustomerRequest,
    CustomerPortalRequest,
)
from salon.services.billing_service import BillingService
from salon.services.billing_webhook_service import BillingWebhookService

router = APIRouter(tags=["Billing"])


@router.post("/cancel-subscription")
async def cancel_subscription(
    payload: CancelSubscriptionRequest,
    service: BillingService = Depends(get_billing_service),
):
    subscription = await service.cancel_subscription(payload.subscription_id, payload.tenant_id)
    return {"success": True, "subscription": subscription}


@router.post("/create-customer")
async def create_customer(
    payload: CreateCustomerRequest,
    service: BillingService = Depends(get_billing_service),
):
    return await service.create_customer(payload.email, payload.name, payload.metadata)


@router.post("/customer-portal")
async def customer_portal(
    payload: CustomerPortalRequest,
    request: Request,
    service: BillingService = Depends(get_billing_service),
):
    return await service.create_portal_session(
        payload.customer_id,
        return_url=payload.return_url,
        origin=request.headers.get("origin"),
    )


@router.post("/create-checkout-session")
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    service: BillingService = Depends(get_billing_service),
):
    session = await service.create_checkout_session(
        plan_tier=payload.plan_tier,
        success_url=payload.success_url,
        cancel_url=payload.cancel_url,
        customer_email=payload.customer_email,
        tenant_id=payload.tenant_id,
    )
    return {"url": session["url"], "sessionId": session["session_id"]}


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    service: BillingWebhookService = Depends(get_webhook_service),
):
    """Receive Stripe events; authenticated by the Stripe-Signature header."""
    body = await request.body()
    event = service.construct_event(body, request.headers.get("stripe-signature"))
    await service.handle_event(event)
    return {"received": True}
