"""Payment gateway clients.

Two backends share one interface: ``StripeGateway`` talks to Stripe,
``SimulatedGateway`` runs without network access (static sites, demos, local
development). ``build_payment_gateway`` picks one from settings and the app
keeps the instance on ``app.state``.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from typing import Any, Mapping

import stripe
from starlette.concurrency import run_in_threadpool

from ..config import Settings
from ..plans import PLAN_CATALOG, price_table

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = stripe.Webhook.DEFAULT_TOLERANCE


class PaymentGatewayError(Exception):
    status_code = 500

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class PaymentGatewayConfigError(PaymentGatewayError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=503)


class WebhookSignatureError(PaymentGatewayError):
    def __init__(self, detail: str) -> None:
        super().__init__(detail, status_code=400)


class PaymentGateway:
    """Operations the application needs from a payment processor."""

    name = "base"

    def __init__(self, *, webhook_secret: str | None, prices: Mapping[tuple[str, str], str]):
        self.webhook_secret = webhook_secret
        self.prices = dict(prices)

    def price_for(self, plan: str, period: str) -> str | None:
        return self.prices.get((plan, period))

    async def create_customer(
        self, *, email: str | None, name: str | None, metadata: Mapping[str, str]
    ) -> str:
        raise NotImplementedError

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: int,
        metadata: Mapping[str, str],
    ) -> dict[str, Any]:
        raise NotImplementedError

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        raise NotImplementedError

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        raise NotImplementedError

    async def list_products(self) -> list[dict[str, Any]]:
        raise NotImplementedError

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(
        self,
        *,
        secret_key: str | None,
        webhook_secret: str | None,
        prices: Mapping[tuple[str, str], str],
    ) -> None:
        super().__init__(webhook_secret=webhook_secret, prices=prices)
        self.secret_key = secret_key

    def _api_key(self) -> str:
        if not self.secret_key:
            raise PaymentGatewayConfigError("Stripe secret key is missing")
        return self.secret_key

    async def _call(self, fn, *args, **kwargs):
        api_key = self._api_key()
        try:
            result = await run_in_threadpool(lambda: fn(*args, api_key=api_key, **kwargs))
        except stripe.StripeError as exc:
            logger.warning("Stripe call %s failed: %s", getattr(fn, "__qualname__", fn), exc)
            raise PaymentGatewayError(str(exc)) from exc
        return _plain(result)

    async def create_customer(
        self, *, email: str | None, name: str | None, metadata: Mapping[str, str]
    ) -> str:
        customer = await self._call(
            stripe.Customer.create, email=email, name=name, metadata=dict(metadata)
        )
        customer_id = customer.get("id")
        if not isinstance(customer_id, str):
            raise PaymentGatewayError("Stripe did not return a customer id", status_code=502)
        return customer_id

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: int,
        metadata: Mapping[str, str],
    ) -> dict[str, Any]:
        session = await self._call(
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            allow_promotion_codes=True,
            subscription_data={
                "trial_period_days": trial_days,
                "metadata": dict(metadata),
            },
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=dict(metadata),
        )
        return {"id": session.get("id"), "url": session.get("url")}

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        try:
            return await self._call(
                stripe.checkout.Session.retrieve,
                session_id,
                expand=["customer", "subscription"],
            )
        except PaymentGatewayError as exc:
            if isinstance(exc.__cause__, stripe.InvalidRequestError):
                raise PaymentGatewayError("Session not found", status_code=404) from exc
            raise

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        return await self._call(
            stripe.Subscription.modify, subscription_id, cancel_at_period_end=True
        )

    async def list_products(self) -> list[dict[str, Any]]:
        products = await self._call(
            stripe.Product.list, active=True, expand=["data.default_price"]
        )
        return [_format_product(product) for product in products.get("data", [])]

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self.webhook_secret:
            raise PaymentGatewayConfigError("Stripe webhook secret missing")
        if not signature:
            raise WebhookSignatureError("Missing Stripe signature")
        try:
            event = stripe.Webhook.construct_event(
                payload=payload.decode("utf-8"),
                sig_header=signature,
                secret=self.webhook_secret,
            )
        except ValueError as exc:
            raise WebhookSignatureError("Invalid payload") from exc
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError("Invalid signature") from exc
        return _plain(event)


class SimulatedGateway(PaymentGateway):
    """
    Offline stand-in for the payment processor.

    Checkout sessions redirect straight to the success URL, cancellations
    echo back a canceled subscription, and webhook payloads are verified with
    an HMAC-SHA256 header ``t=<timestamp>,v1=<hex digest>`` computed over
    ``"<timestamp>.<payload>"`` with the webhook secret.
    """

    name = "simulated"

    def price_for(self, plan: str, period: str) -> str | None:
        return self.prices.get((plan, period)) or f"price_sim_{plan}_{period}"

    async def create_customer(
        self, *, email: str | None, name: str | None, metadata: Mapping[str, str]
    ) -> str:
        return f"cus_sim_{uuid.uuid4().hex[:14]}"

    async def create_checkout_session(
        self,
        *,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_days: int,
        metadata: Mapping[str, str],
    ) -> dict[str, Any]:
        session_id = f"cs_sim_{uuid.uuid4().hex}"
        separator = "&" if "?" in success_url else "?"
        return {"id": session_id, "url": f"{success_url}{separator}session_id={session_id}"}

    async def retrieve_checkout_session(self, session_id: str) -> dict[str, Any]:
        if not session_id.startswith("cs_sim_"):
            raise PaymentGatewayError("Session not found", status_code=404)
        return {
            "id": session_id,
            "payment_status": "no_payment_required",
            "amount_total": 0,
            "currency": None,
            "customer_details": None,
            "metadata": {},
        }

    async def cancel_subscription(self, subscription_id: str) -> dict[str, Any]:
        return {
            "id": subscription_id,
            "status": "active",
            "cancel_at_period_end": True,
            "current_period_end": None,
        }

    async def list_products(self) -> list[dict[str, Any]]:
        products = []
        for plan, details in PLAN_CATALOG.items():
            for period, amount in details["amounts"].items():
                price_id = self.price_for(plan, period)
                products.append(
                    {
                        "id": f"prod_sim_{plan}_{period}",
                        "name": details["name"],
                        "description": details["description"],
                        "price": {
                            "id": price_id,
                            "amount": amount,
                            "currency": details["currency"],
                            "interval": "month" if period == "monthly" else "year",
                        },
                        "metadata": {"plan": plan, "period": period},
                    }
                )
        return products

    def construct_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self.webhook_secret:
            raise PaymentGatewayConfigError("Webhook secret missing")
        if not signature:
            raise WebhookSignatureError("Missing signature")
        parts = dict(
            item.split("=", 1) for item in signature.split(",") if "=" in item
        )
        timestamp = parts.get("t")
        provided = parts.get("v1")
        if not timestamp or not provided:
            raise WebhookSignatureError("Invalid signature")
        expected = _simulated_digest(payload, self.webhook_secret, timestamp)
        if not hmac.compare_digest(expected, provided):
            raise WebhookSignatureError("Invalid signature")
        try:
            signed_at = int(timestamp)
        except ValueError as exc:
            raise WebhookSignatureError("Invalid signature") from exc
        if abs(time.time() - signed_at) > SIGNATURE_TOLERANCE_SECONDS:
            raise WebhookSignatureError("Signature timestamp outside the tolerance zone")
        try:
            event = json.loads(payload.decode("utf-8"))
        except ValueError as exc:
            raise WebhookSignatureError("Invalid payload") from exc
        if not isinstance(event, dict):
            raise WebhookSignatureError("Invalid payload")
        return event


def _plain(obj: Any) -> Any:
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return obj


def _simulated_digest(payload: bytes, secret: str, timestamp: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def sign_simulated_payload(payload: bytes, secret: str, *, timestamp: str | None = None) -> str:
    timestamp = timestamp or str(int(time.time()))
    return f"t={timestamp},v1={_simulated_digest(payload, secret, timestamp)}"


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    prices = price_table(settings)
    if settings.payment_backend == "simulated":
        logger.info("Using simulated payment gateway")
        return SimulatedGateway(webhook_secret=settings.stripe_webhook_secret, prices=prices)
    return StripeGateway(
        secret_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        prices=prices,
    )


def _format_product(product: Mapping[str, Any]) -> dict[str, Any]:
    price = product.get("default_price")
    price_payload = None
    if isinstance(price, Mapping):
        recurring = price.get("recurring") or {}
        price_payload = {
            "id": price.get("id"),
            "amount": price.get("unit_amount"),
            "currency": price.get("currency"),
            "interval": recurring.get("interval") if isinstance(recurring, Mapping) else None,
        }
    return {
        "id": product.get("id"),
        "name": product.get("name"),
        "description": product.get("description"),
        "price": price_payload,
        "metadata": dict(product.get("metadata") or {}),
    }


__all__ = [
    "PaymentGateway",
    "PaymentGatewayConfigError",
    "PaymentGatewayError",
    "SimulatedGateway",
    "StripeGateway",
    "WebhookSignatureError",
    "build_payment_gateway",
    "sign_simulated_payload",
]
