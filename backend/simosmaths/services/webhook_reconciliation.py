"""Translate verified payment-gateway events into data store mutations.

Each handled event kind maps to a single mutation keyed by a natural id, so
redelivery of the same event converges on the same rows:

* ``checkout.session.completed``: profile tier/status, keyed by profile id
* ``customer.subscription.created`` / ``.updated``: subscription snapshot
  upsert, keyed by ``stripe_subscription_id``
* ``customer.subscription.deleted``: status ``canceled``, same key
* ``invoice.payment_succeeded``: payment row, keyed by invoice id
* ``invoice.payment_failed``: logged only

Handler failures are logged, counted and reported, then acknowledged: the
gateway gets a success response either way, so a failed write after a
successful payment has to be reconciled from the ``webhook_events`` log.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Mapping

import sentry_sdk

from .. import metrics
from ..repositories import payments as payments_repo
from ..repositories import profiles as profiles_repo
from ..repositories import subscriptions as subscriptions_repo
from ..utils.timestamps import to_datetime
from .payment_gateway import PaymentGateway

logger = logging.getLogger(__name__)

# Gateway subscription statuses folded into the platform vocabulary.
GATEWAY_STATUS_MAP = {
    "trialing": "trial",
    "active": "active",
    "canceled": "canceled",
    "incomplete_expired": "canceled",
    "incomplete": "pending",
    "past_due": "pending",
    "unpaid": "pending",
    "paused": "pending",
}


async def handle_webhook(
    gateway: PaymentGateway, payload: bytes, signature: str | None
) -> Mapping[str, Any]:
    """Verify the payload signature, then process it. Signature errors propagate."""
    event = gateway.construct_event(payload, signature)
    await process_event(event)
    return event


async def process_event(event: Mapping[str, Any]) -> None:
    event_id = str(event.get("id") or "")
    event_type = str(event.get("type") or "")
    data = event.get("data") or {}
    data_object = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(data_object, Mapping):
        data_object = {}

    try:
        first_delivery = await subscriptions_repo.record_webhook_event(event_id, event_type, event)
    except Exception:
        logger.exception("Failed to record payment event %s", event_id)
        first_delivery = True
    if not first_delivery:
        logger.info("Payment event %s (%s) redelivered", event_id, event_type)

    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.info("Ignoring payment event %s (%s)", event_id, event_type)
        metrics.webhook_events_total.labels(event_type=event_type or "unknown", outcome="ignored").inc()
        return

    try:
        await handler(data_object)
    except Exception as exc:
        logger.exception("Failed to process payment event %s (%s)", event_id, event_type)
        metrics.webhook_events_total.labels(event_type=event_type, outcome="failed").inc()
        with sentry_sdk.new_scope() as scope:
            scope.set_tag("webhook.event_type", event_type)
            scope.set_tag("webhook.event_id", event_id)
            sentry_sdk.capture_exception(exc)
        return

    metrics.webhook_events_total.labels(event_type=event_type, outcome="processed").inc()


async def _handle_checkout_completed(session: Mapping[str, Any]) -> None:
    metadata = _metadata(session)
    profile_id = metadata.get("userId")
    plan = metadata.get("plan")
    if not profile_id:
        logger.warning("Checkout session %s has no userId metadata", session.get("id"))
        return

    await profiles_repo.update_profile(
        profile_id,
        {"subscription_tier": plan, "subscription_status": "active"},
    )
    logger.info("Checkout completed for profile %s (plan=%s)", profile_id, plan)


async def _handle_subscription_upsert(subscription: Mapping[str, Any]) -> None:
    subscription_id = subscription.get("id")
    if not isinstance(subscription_id, str):
        logger.warning("Subscription event without id")
        return

    metadata = _metadata(subscription)
    customer_id = subscription.get("customer")
    customer_id = customer_id if isinstance(customer_id, str) else None
    profile_id = metadata.get("userId") or await _profile_id_for_customer(customer_id)
    if not profile_id:
        logger.warning(
            "Subscription %s could not be mapped to a profile (customer=%s)",
            subscription_id,
            customer_id,
        )
        return

    first_item = _first_item(subscription)
    price = first_item.get("price") if isinstance(first_item.get("price"), Mapping) else {}
    raw_status = str(subscription.get("status") or "")
    status = GATEWAY_STATUS_MAP.get(raw_status, raw_status or "pending")
    cancel_at_period_end = bool(subscription.get("cancel_at_period_end"))
    if cancel_at_period_end and status in subscriptions_repo.LIVE_STATUSES:
        # Cancellation is recorded when requested, not when the period ends.
        status = "canceled"
    record = {
        "profile_id": profile_id,
        "stripe_subscription_id": subscription_id,
        "stripe_customer_id": customer_id,
        "plan": metadata.get("plan"),
        "period": metadata.get("period"),
        "status": status,
        "current_period_start": to_datetime(
            subscription.get("current_period_start") or first_item.get("current_period_start")
        ),
        "current_period_end": to_datetime(
            subscription.get("current_period_end") or first_item.get("current_period_end")
        ),
        "trial_start": to_datetime(subscription.get("trial_start")),
        "trial_end": to_datetime(subscription.get("trial_end")),
        "cancel_at_period_end": cancel_at_period_end,
        "amount": price.get("unit_amount"),
        "currency": subscription.get("currency") or price.get("currency"),
    }
    await subscriptions_repo.upsert_subscription(record)
    logger.info("Subscription %s synced: %s", subscription_id, record["status"])


async def _handle_subscription_deleted(subscription: Mapping[str, Any]) -> None:
    subscription_id = subscription.get("id")
    if not isinstance(subscription_id, str):
        logger.warning("Subscription deletion without id")
        return
    row = await subscriptions_repo.mark_canceled_by_stripe_id(subscription_id)
    if row is None:
        logger.info("Deleted subscription %s has no local row", subscription_id)
        return
    logger.info("Subscription %s canceled", subscription_id)


async def _handle_invoice_payment_succeeded(invoice: Mapping[str, Any]) -> None:
    invoice_id = invoice.get("id")
    if not isinstance(invoice_id, str):
        logger.warning("Invoice event without id")
        return
    customer_id = invoice.get("customer")
    profile_id = await _profile_id_for_customer(
        customer_id if isinstance(customer_id, str) else None
    )
    inserted = await payments_repo.insert_payment(
        {
            "profile_id": profile_id,
            "stripe_invoice_id": invoice_id,
            "stripe_payment_intent_id": invoice.get("payment_intent"),
            "amount": invoice.get("amount_paid"),
            "currency": invoice.get("currency"),
            "status": "succeeded",
            "receipt_url": invoice.get("hosted_invoice_url"),
        }
    )
    if inserted:
        logger.info("Payment recorded for invoice %s", invoice_id)
    else:
        logger.info("Payment for invoice %s already recorded", invoice_id)


async def _handle_invoice_payment_failed(invoice: Mapping[str, Any]) -> None:
    logger.warning(
        "Payment failed for invoice %s (customer=%s, subscription=%s)",
        invoice.get("id"),
        invoice.get("customer"),
        invoice.get("subscription"),
    )


EVENT_HANDLERS: dict[str, Callable[[Mapping[str, Any]], Awaitable[None]]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.created": _handle_subscription_upsert,
    "customer.subscription.updated": _handle_subscription_upsert,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.payment_succeeded": _handle_invoice_payment_succeeded,
    "invoice.payment_failed": _handle_invoice_payment_failed,
}


async def _profile_id_for_customer(customer_id: str | None) -> str | None:
    if not customer_id:
        return None
    profile = await profiles_repo.get_profile_by_customer(customer_id)
    return str(profile["id"]) if profile else None


def _metadata(payload: Mapping[str, Any]) -> dict[str, str]:
    metadata = payload.get("metadata")
    if not isinstance(metadata, Mapping):
        return {}
    return {str(key): str(value) for key, value in metadata.items() if value is not None}


def _first_item(subscription: Mapping[str, Any]) -> Mapping[str, Any]:
    items = subscription.get("items")
    data = items.get("data") if isinstance(items, Mapping) else None
    if isinstance(data, list) and data and isinstance(data[0], Mapping):
        return data[0]
    return {}


__all__ = ["EVENT_HANDLERS", "GATEWAY_STATUS_MAP", "handle_webhook", "process_event"]
