from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Mapping

from .. import metrics
from ..config import settings
from ..plans import is_known_pair, is_known_plan
from ..repositories import payments as payments_repo
from ..repositories import profiles as profiles_repo
from ..repositories import subscriptions as subscriptions_repo
from ..utils.timestamps import to_datetime, utcnow
from .payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    status_code = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class SubscriptionConfigError(SubscriptionError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=503)


async def create_subscription_session(
    user: Mapping[str, Any],
    gateway: PaymentGateway,
    *,
    plan: str,
    period: str,
    success_url: str | None = None,
    cancel_url: str | None = None,
) -> dict[str, Any]:
    if not is_known_pair(plan, period):
        raise SubscriptionError("Invalid plan", status_code=400)
    price_id = gateway.price_for(plan, period)
    if not price_id:
        raise SubscriptionConfigError(f"No price configured for {plan}/{period}")

    profile_id = str(user["id"])
    profile = await profiles_repo.get_profile(profile_id)
    if not profile:
        raise SubscriptionError("Profile not found", status_code=404)

    customer_id = await _get_or_create_customer(profile, gateway, plan=plan)
    metadata = {"userId": profile_id, "plan": plan, "period": period}
    session = await gateway.create_checkout_session(
        customer_id=customer_id,
        price_id=price_id,
        success_url=success_url
        or settings.checkout_success_url
        or _build_frontend_url("payment-success.html"),
        cancel_url=cancel_url
        or settings.checkout_cancel_url
        or _build_frontend_url("tarifs.html"),
        trial_days=settings.trial_days,
        metadata=metadata,
    )
    session_id = session.get("id")
    if not isinstance(session_id, str):
        raise SubscriptionError("Checkout session missing id", status_code=502)

    metrics.checkout_sessions_created_total.labels(plan=plan, period=period).inc()
    logger.info("Checkout session %s created for profile %s", session_id, profile_id)
    return {"session_id": session_id, "url": session.get("url")}


async def start_trial(
    user: Mapping[str, Any], *, plan: str, now: datetime | None = None
) -> datetime:
    if not is_known_plan(plan):
        raise SubscriptionError("Invalid plan", status_code=400)

    profile_id = str(user["id"])
    started_at = now or utcnow()
    trial_ends_at = started_at + timedelta(days=settings.trial_days)
    row = await subscriptions_repo.start_trial(
        profile_id,
        plan=plan,
        started_at=started_at,
        trial_ends_at=trial_ends_at,
    )
    if row is None:
        raise SubscriptionError("An active subscription or trial already exists", status_code=409)

    metrics.trials_started_total.labels(plan=plan).inc()
    logger.info("Trial started for profile %s until %s", profile_id, trial_ends_at.isoformat())
    return trial_ends_at


async def cancel_subscription(
    user: Mapping[str, Any], gateway: PaymentGateway
) -> dict[str, Any]:
    profile_id = str(user["id"])
    subscription = await subscriptions_repo.get_active_subscription(profile_id)
    if not subscription:
        raise SubscriptionError("No active subscription found", status_code=404)

    stripe_subscription_id = subscription.get("stripe_subscription_id")
    cancel_at_period_end = False
    if stripe_subscription_id:
        updated = await gateway.cancel_subscription(stripe_subscription_id)
        cancel_at_period_end = bool(updated.get("cancel_at_period_end"))

    await subscriptions_repo.cancel_subscription_record(
        str(subscription["id"]),
        profile_id,
        cancel_at_period_end=cancel_at_period_end,
    )
    logger.info(
        "Subscription %s canceled for profile %s",
        stripe_subscription_id or subscription.get("id"),
        profile_id,
    )
    return {
        "success": True,
        "message": "Subscription canceled",
        "subscription_id": stripe_subscription_id,
        "cancel_at_period_end": cancel_at_period_end,
    }


async def get_subscription_status(user: Mapping[str, Any]) -> dict[str, Any]:
    subscription = await subscriptions_repo.get_active_subscription(str(user["id"]))
    return {
        "subscription": subscription,
        "has_premium_access": has_premium_access(subscription),
    }


def has_premium_access(
    subscription: Mapping[str, Any] | None, *, now: datetime | None = None
) -> bool:
    """A running trial, or an active subscription whose paid period has not ended."""
    if not subscription:
        return False
    now = now or utcnow()

    trial_end = to_datetime(subscription.get("trial_end"))
    if trial_end and trial_end > now:
        return True

    if subscription.get("status") == "active":
        period_end = to_datetime(subscription.get("current_period_end"))
        if period_end:
            return period_end > now
        return True
    return False


async def list_payment_history(user: Mapping[str, Any]) -> list[dict[str, Any]]:
    return await payments_repo.list_payments(str(user["id"]))


async def get_payment_details(gateway: PaymentGateway, session_id: str) -> dict[str, Any]:
    session = await gateway.retrieve_checkout_session(session_id)
    metadata = session.get("metadata") or {}
    details = session.get("customer_details") or {}
    return {
        "session_id": session.get("id") or session_id,
        "status": session.get("payment_status"),
        "amount": session.get("amount_total"),
        "currency": session.get("currency"),
        "customer_email": details.get("email") if isinstance(details, Mapping) else None,
        "plan": metadata.get("plan") if isinstance(metadata, Mapping) else None,
        "period": metadata.get("period") if isinstance(metadata, Mapping) else None,
    }


async def _get_or_create_customer(
    profile: Mapping[str, Any], gateway: PaymentGateway, *, plan: str
) -> str:
    existing = profile.get("stripe_customer_id")
    if existing:
        return str(existing)

    profile_id = str(profile["id"])
    name = " ".join(
        part for part in (profile.get("first_name"), profile.get("last_name")) if part
    )
    customer_id = await gateway.create_customer(
        email=profile.get("email"),
        name=name or None,
        metadata={"userId": profile_id, "plan": plan},
    )
    await profiles_repo.set_stripe_customer_id(profile_id, customer_id)
    return customer_id


def _build_frontend_url(path: str) -> str:
    base = (settings.frontend_base_url or "http://localhost:3000").rstrip("/")
    return f"{base}/{path.lstrip('/')}"


__all__ = [
    "SubscriptionConfigError",
    "SubscriptionError",
    "cancel_subscription",
    "create_subscription_session",
    "get_payment_details",
    "get_subscription_status",
    "has_premium_access",
    "list_payment_history",
    "start_trial",
]
