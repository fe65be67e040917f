#!/usr/bin/env python3
"""Check the Stripe setup the subscription flow depends on.

Reads the same settings as the API (environment and backend/.env) and
verifies the secret key, each configured plan price and the webhook endpoint.
Exits non-zero when anything is missing.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from urllib.parse import urlparse

import stripe

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from simosmaths.config import settings  # noqa: E402
from simosmaths.plans import PERIODS, PLAN_CATALOG, price_table  # noqa: E402

EXPECTED_INTERVALS = {"monthly": "month", "yearly": "year"}
WEBHOOK_PATH = "/api/webhook"


def check_prices(api_key: str, errors: list[str]) -> None:
    prices = price_table(settings)
    for plan in PLAN_CATALOG:
        for period in PERIODS:
            price_id = prices.get((plan, period))
            label = f"{plan}/{period}"
            if not price_id:
                errors.append(f"No price configured for {label}")
                continue
            try:
                price = stripe.Price.retrieve(price_id, api_key=api_key).to_dict()
            except stripe.StripeError as exc:
                errors.append(f"{label}: price {price_id} not retrievable ({exc})")
                continue
            recurring = price.get("recurring") or {}
            interval = recurring.get("interval")
            if interval != EXPECTED_INTERVALS[period]:
                errors.append(f"{label}: price {price_id} bills per {interval or 'one-off'}")
            if not price.get("active"):
                errors.append(f"{label}: price {price_id} is inactive")
            print(f"- {label}: {price_id} ({price.get('unit_amount')} {price.get('currency')})")


def check_webhook_endpoint(api_key: str, errors: list[str]) -> None:
    try:
        endpoints = stripe.WebhookEndpoint.list(limit=100, api_key=api_key)
    except stripe.StripeError:
        errors.append("Failed to list Stripe webhook endpoints")
        return
    for endpoint in endpoints.auto_paging_iter():
        url = getattr(endpoint, "url", None) or ""
        if urlparse(url).path.rstrip("/") == WEBHOOK_PATH:
            print(f"- Webhook endpoint: {url}")
            return
    errors.append(f"No Stripe webhook endpoint targets {WEBHOOK_PATH}")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--allow-live",
        action="store_true",
        help="Accept a live-mode secret key",
    )
    args = parser.parse_args()

    errors: list[str] = []
    api_key = settings.stripe_secret_key or ""
    if not api_key:
        errors.append("STRIPE_SECRET_KEY is missing")
    elif api_key.startswith("sk_live_") and not args.allow_live:
        errors.append("STRIPE_SECRET_KEY is a live key; pass --allow-live to check it")
    if not settings.stripe_webhook_secret:
        errors.append("STRIPE_WEBHOOK_SECRET is missing")

    print("==> Stripe configuration")
    if api_key and not errors:
        check_prices(api_key, errors)
        check_webhook_endpoint(api_key, errors)

    if errors:
        print("Stripe verification: FAIL")
        for err in errors:
            print(f"  - {err}")
        raise SystemExit(1)

    print("Stripe verification: PASS")


if __name__ == "__main__":
    main()
