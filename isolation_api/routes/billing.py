"""Billing routes — Stripe checkout, webhook persistence, cancellation."""

import json
import logging
import os
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from isolation_api.auth import get_current_user
from isolation_api.database import get_db
from isolation_api.middleware.tier_check import has_active_subscription, latest_payment, require_tier
from isolation_api.models import (
    CancelSubscriptionResponse,
    CheckoutRequest,
    CheckoutResponse,
    SubscriptionStatusResponse,
    SubscriptionTier,
)
from isolation_api.models_db import Payment, User
from isolation_api.routes.auth import user_response

logger = logging.getLogger(__name__)

router = APIRouter()


def _stripe_key() -> str:
    stripe_key = os.getenv("STRIPE_SECRET_KEY")
    if not stripe_key:
        raise HTTPException(status_code=500, detail="Stripe not configured")
    return stripe_key


def _price_ids() -> dict[str, str]:
    return {
        SubscriptionTier.ESSENTIAL.value: os.getenv("STRIPE_ESSENTIAL_PRICE_ID", ""),
        SubscriptionTier.PRO.value: os.getenv("STRIPE_PRO_PRICE_ID", ""),
    }


def _tier_for_price(price_id: Optional[str]) -> str:
    for tier, configured in _price_ids().items():
        if configured and configured == price_id:
            return tier
    return SubscriptionTier.ESSENTIAL.value


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout_session(
    body: CheckoutRequest,
    current_user: User = Depends(get_current_user),
):
    """Create a Stripe checkout session for a subscription upgrade."""
    stripe.api_key = _stripe_key()

    if body.price_id:
        price_id = body.price_id
    elif body.tier == SubscriptionTier.FREE:
        raise HTTPException(status_code=400, detail="Invalid tier")
    else:
        price_id = _price_ids()[body.tier.value]
    if not price_id:
        raise HTTPException(status_code=400, detail="Price ID is required")

    frontend_url = os.getenv("FRONTEND_URL", "http://localhost:5173")
    try:
        session = stripe.checkout.Session.create(
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            customer_email=current_user.email,
            client_reference_id=current_user.id,
            metadata={"user_id": current_user.id, "tier": _tier_for_price(price_id)},
            success_url=frontend_url + "/checkout?success=true",
            cancel_url=frontend_url + "/checkout?canceled=true",
        )
    except stripe.StripeError:
        logger.error("Stripe checkout session creation failed", exc_info=True)
        raise HTTPException(status_code=502, detail="Failed to create checkout session")

    logger.info("Created checkout session %s for user %s", session.id, current_user.id)
    return CheckoutResponse(session_id=session.id, checkout_url=session.url)


def _record_checkout(db: Session, session: dict) -> None:
    """Persist a completed checkout and upgrade the paying user."""
    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id") or session.get("client_reference_id")
    user = db.get(User, user_id) if user_id else None
    if user is None:
        logger.warning("Checkout session %s has no known user", session.get("id"))
        return

    existing = db.query(Payment).filter(Payment.session_id == session["id"]).first()
    if existing:
        return

    amount_total = session.get("amount_total")
    status = session.get("payment_status") or "unpaid"
    db.add(Payment(
        user_id=user.id,
        session_id=session["id"],
        status=status,
        amount=amount_total / 100 if amount_total else 0.0,
        currency=session.get("currency") or "usd",
    ))

    if status == "paid":
        user.subscription_tier = metadata.get("tier") or SubscriptionTier.ESSENTIAL.value
        user.calculations_used = 0
        user.stripe_customer_id = session.get("customer") or user.stripe_customer_id
        user.stripe_subscription_id = session.get("subscription") or user.stripe_subscription_id

    db.commit()
    logger.info("Stored payment for session %s (status=%s)", session["id"], status)


def _downgrade_subscription(db: Session, subscription: dict) -> None:
    user = db.query(User).filter(User.stripe_subscription_id == subscription.get("id")).first()
    if user is None:
        return
    user.subscription_tier = SubscriptionTier.FREE.value
    user.stripe_subscription_id = None
    user.calculations_used = 0
    db.commit()
    logger.info("Subscription %s ended, user %s downgraded", subscription.get("id"), user.id)


@router.post("/webhook/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: Session = Depends(get_db),
):
    """Handle Stripe webhook events."""
    webhook_secret = os.getenv("STRIPE_WEBHOOK_SECRET")
    if not os.getenv("STRIPE_SECRET_KEY") or not webhook_secret:
        raise HTTPException(status_code=500, detail="Stripe not configured")

    payload = await request.body()
    if not stripe_signature:
        raise HTTPException(status_code=400, detail="Missing Stripe signature")

    try:
        stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=400, detail="Invalid signature")
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    # Signature verified; read the event as plain JSON
    event = json.loads(payload)
    event_type = event.get("type")
    data_object = event.get("data", {}).get("object", {})

    if event_type == "checkout.session.completed":
        _record_checkout(db, data_object)
    elif event_type == "customer.subscription.deleted":
        _downgrade_subscription(db, data_object)
    else:
        logger.debug("Ignoring Stripe event %s", event_type)

    return {"status": "ok"}


@router.post("/subscription/cancel", response_model=CancelSubscriptionResponse)
async def cancel_subscription(
    current_user: User = Depends(require_tier(SubscriptionTier.ESSENTIAL.value)),
    db: Session = Depends(get_db),
):
    """Cancel the caller's Stripe subscription and return them to the free tier."""
    if current_user.stripe_subscription_id:
        stripe.api_key = _stripe_key()
        try:
            stripe.Subscription.cancel(current_user.stripe_subscription_id)
        except stripe.StripeError:
            logger.error("Stripe cancellation failed for %s", current_user.id, exc_info=True)
            raise HTTPException(status_code=502, detail="Failed to cancel subscription")

    current_user.subscription_tier = SubscriptionTier.FREE.value
    current_user.stripe_subscription_id = None
    current_user.calculations_used = 0
    db.commit()
    db.refresh(current_user)

    return CancelSubscriptionResponse(status="cancelled", user=user_response(current_user))


@router.get("/subscription", response_model=SubscriptionStatusResponse)
async def get_subscription(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Subscription state plus the most recent payment on record."""
    payment = latest_payment(db, current_user)
    return SubscriptionStatusResponse(
        subscription_tier=current_user.subscription_tier,
        subscribed=has_active_subscription(current_user),
        latest_payment_status=payment.status if payment else None,
        latest_payment_at=payment.created_at if payment else None,
    )
