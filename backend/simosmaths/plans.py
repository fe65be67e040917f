from __future__ import annotations

from typing import Any

from .config import Settings

PERIODS = ("monthly", "yearly")

# Display catalog; amounts are in cents and only used by the simulated gateway
# and the view-models. Stripe remains the source of truth for real prices.
PLAN_CATALOG: dict[str, dict[str, Any]] = {
    "decouverte": {
        "name": "Découverte",
        "description": "Exercices et vidéos pour un enfant.",
        "currency": "eur",
        "amounts": {"monthly": 1490, "yearly": 14900},
    },
    "excellence": {
        "name": "Excellence",
        "description": "Accès complet avec suivi détaillé.",
        "currency": "eur",
        "amounts": {"monthly": 2490, "yearly": 24900},
    },
    "famille": {
        "name": "Famille",
        "description": "Accès complet jusqu'à quatre enfants.",
        "currency": "eur",
        "amounts": {"monthly": 3490, "yearly": 34900},
    },
}


def is_known_plan(plan: str | None) -> bool:
    return plan in PLAN_CATALOG


def is_known_pair(plan: str | None, period: str | None) -> bool:
    return plan in PLAN_CATALOG and period in PERIODS


def price_table(settings: Settings) -> dict[tuple[str, str], str]:
    """Configured gateway price id per (plan, period); unset prices are left out."""
    table: dict[tuple[str, str], str] = {}
    for plan in PLAN_CATALOG:
        for period in PERIODS:
            price_id = getattr(settings, f"stripe_price_{plan}_{period}", None)
            if price_id:
                table[(plan, period)] = price_id
    return table


__all__ = ["PERIODS", "PLAN_CATALOG", "is_known_pair", "is_known_plan", "price_table"]
