from fastapi import APIRouter, HTTPException, Depends, Request
from pydantic import BaseModel
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json
import logging
import stripe

from app.api.deps import get_current_user, get_synchronizer, get_user_service
from app.billing.plans import get_plan_by_price_id
from app.core.config import settings
from app.core.exceptions import PaymentConfigurationError, PlanNotFoundError
from app.schemas.user import User
from app.services.session_sync import SessionSynchronizer
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

stripe.api_key = settings.STRIPE_SECRET_KEY or ""

# Stripe subscription statuses folded into the statuses a user record can hold
STRIPE_STATUS_MAP = {
    "active": "active",
    "trialing": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
    "paused": "canceled",
    "incomplete": "incomplete",
}


class CheckoutSessionRequest(BaseModel):
    priceId: str
    successUrl: Optional[str] = None
    cancelUrl: Optional[str] = None


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutSessionRequest,
    user: User = Depends(get_current_user)
):
    if not stripe.api_key:
        raise PaymentConfigurationError()

    plan = get_plan_by_price_id(request.priceId)
    if plan is None:
        raise PlanNotFoundError(request.priceId)

    # Use provided URLs or fall back to environment-configured frontend URL
    frontend_url = settings.FRONTEND_URL
    success_url = request.successUrl or f"{frontend_url}/dashboard?success=true"
    cancel_url = request.cancelUrl or f"{frontend_url}/pricing?canceled=true"

    params: Dict[str, Any] = {
        "payment_method_types": ["card"],
        "line_items": [{"price": request.priceId, "quantity": 1}],
        "mode": "subscription",
        "success_url": success_url,
        "cancel_url": cancel_url,
        "client_reference_id": user.uid,  # Store uid to identify them in webhook
        "metadata": {"user_id": user.uid, "plan": plan.id},
    }
    if user.subscription.customer_id:
        params["customer"] = user.subscription.customer_id
    else:
        params["customer_email"] = user.email

    try:
        checkout_session = stripe.checkout.Session.create(**params)
        return {"url": checkout_session.url}
    except Exception as e:
        logger.error(f"Error creating checkout session for {user.uid}: {e}")
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/webhook", include_in_schema=False)
async def stripe_webhook(
    request: Request,
    user_service: UserService = Depends(get_user_service),
    synchronizer: SessionSynchronizer = Depends(get_synchronizer)
):
    """
    Handle Stripe webhook events.
    This endpoint is called by Stripe when events occur (e.g., successful payment).
    """
    payload = await request.body()
    sig_header = request.headers.get('stripe-signature')
    webhook_secret = settings.STRIPE_WEBHOOK_SECRET

    if not webhook_secret and not settings.TEST_MODE:
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    # Unsigned events are only accepted in test mode without a secret
    if webhook_secret and not sig_header:
        raise HTTPException(status_code=400, detail="Missing signature")

    try:
        if webhook_secret:
            verified = stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
            event = json.loads(str(verified))
        else:
            event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")

    event_type = event.get('type') if isinstance(event, dict) else None
    event_data = event.get('data') if isinstance(event, dict) else None
    data = event_data.get('object') if isinstance(event_data, dict) else None
    if not event_type or not isinstance(data, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    try:
        if event_type == 'checkout.session.completed':
            uid = await handle_checkout_session_completed(user_service, data)
        elif event_type == 'customer.subscription.updated':
            uid = await handle_subscription_updated(user_service, data)
        elif event_type == 'customer.subscription.deleted':
            uid = await handle_subscription_deleted(user_service, data)
        elif event_type == 'invoice.payment_failed':
            uid = await handle_payment_failed(user_service, data)
        elif event_type in ['invoice.payment_succeeded', 'invoice.paid']:
            uid = await handle_invoice_payment_succeeded(user_service, data)
        else:
            logger.info(f"Ignoring Stripe event {event_type}")
            uid = None
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error handling Stripe event {event_type}: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    # Keep the dashboard's copy in line when the event concerns the signed-in user
    current = synchronizer.store.user
    if uid and current is not None and current.uid == uid:
        await synchronizer.refresh()

    return {"status": "success"}


def _period_end(subscription: Dict[str, Any]) -> Optional[datetime]:
    timestamp = subscription.get('current_period_end')
    if timestamp is None:
        items = (subscription.get('items') or {}).get('data') or []
        timestamp = items[0].get('current_period_end') if items else None
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def _subscription_plan(subscription: Dict[str, Any]) -> Optional[str]:
    items = (subscription.get('items') or {}).get('data') or []
    if not items:
        return None
    plan = get_plan_by_price_id(items[0]['price']['id'])
    return plan.id if plan else None


async def _uid_for_customer(user_service: UserService, customer_id: Optional[str]) -> Optional[str]:
    if not customer_id:
        return None
    uid = await user_service.find_uid_by_customer(customer_id)
    if uid is None:
        logger.warning(f"No user found for Stripe customer {customer_id}")
    return uid


async def handle_checkout_session_completed(user_service: UserService, session) -> Optional[str]:
    """Handle successful checkout session."""
    uid = session.get('client_reference_id') or (session.get('metadata') or {}).get('user_id')

    if not uid:
        logger.error("No user_id found in checkout session")
        return None

    fields: Dict[str, Any] = {
        "status": "active",
        "customer_id": session.get('customer') or "",
        "subscription_id": session.get('subscription'),
        "plan": (session.get('metadata') or {}).get('plan') or "pro",
    }

    subscription_id = session.get('subscription')
    if subscription_id:
        try:
            subscription = json.loads(str(stripe.Subscription.retrieve(subscription_id)))
            fields["plan"] = _subscription_plan(subscription) or fields["plan"]
            period_end = _period_end(subscription)
            if period_end:
                fields["current_period_end"] = period_end
        except Exception as e:
            logger.error(f"Error retrieving subscription: {e}")

    await user_service.update_subscription(uid, fields)
    logger.info(f"Activated {fields['plan']} plan for {uid}")
    return uid


async def handle_subscription_updated(user_service: UserService, subscription) -> Optional[str]:
    """Handle subscription updates."""
    uid = await _uid_for_customer(user_service, subscription.get('customer'))
    if uid is None:
        return None

    fields: Dict[str, Any] = {
        "status": STRIPE_STATUS_MAP.get(subscription.get('status'), "incomplete"),
        "subscription_id": subscription.get('id'),
    }
    plan = _subscription_plan(subscription)
    if plan:
        fields["plan"] = plan
    period_end = _period_end(subscription)
    if period_end:
        fields["current_period_end"] = period_end

    await user_service.update_subscription(uid, fields)
    return uid


async def handle_invoice_payment_succeeded(user_service: UserService, invoice) -> Optional[str]:
    """Handle successful invoice payment (renewal)."""
    uid = await _uid_for_customer(user_service, invoice.get('customer'))
    if uid is None:
        return None

    fields: Dict[str, Any] = {"status": "active"}

    # Try to extract plan from lines if available
    for line in (invoice.get('lines') or {}).get('data') or []:
        price = line.get('price') or {}
        plan = get_plan_by_price_id(price.get('id', ''))
        if plan:
            fields["plan"] = plan.id
            break

    await user_service.update_subscription(uid, fields)
    return uid


async def handle_subscription_deleted(user_service: UserService, subscription) -> Optional[str]:
    """Handle subscription cancellation."""
    uid = await _uid_for_customer(user_service, subscription.get('customer'))
    if uid is None:
        return None

    await user_service.update_subscription(uid, {"status": "canceled", "plan": "free"})
    return uid


async def handle_payment_failed(user_service: UserService, invoice) -> Optional[str]:
    """Handle failed payment."""
    uid = await _uid_for_customer(user_service, invoice.get('customer'))
    if uid is None:
        return None

    await user_service.update_subscription(uid, {"status": "past_due"})
    return uid
