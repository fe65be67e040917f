"""Display data for the parent dashboard.

Pure functions over ``DashboardStatsResponse``: they format prices and
durations the way the French front end shows them and never touch the
database or the clock unless ``now`` is omitted.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from ..schemas import ChildWithStats, DashboardStatsResponse, SubscriptionSummary
from ..utils.timestamps import to_datetime, utcnow

CURRENCY_SYMBOLS = {"eur": "€", "usd": "$", "gbp": "£"}
DEFAULT_TIER = "excellence"
UNKNOWN_LEVEL = "Non spécifié"


def format_price(amount: int | None, currency: str = "eur") -> str:
    """Format an amount in cents, e.g. ``1499`` -> ``"14,99 €"``."""
    value = (amount or 0) / 100
    grouped = f"{value:,.2f}".replace(",", " ").replace(".", ",")
    code = (currency or "eur").lower()
    symbol = CURRENCY_SYMBOLS.get(code, code.upper())
    return f"{grouped} {symbol}"


def yearly_savings(monthly_amount: int, yearly_amount: int) -> int:
    return max(0, monthly_amount * 12 - yearly_amount)


def trial_days_remaining(trial_ends_at: Any, *, now: datetime | None = None) -> int:
    ends_at = to_datetime(trial_ends_at)
    if ends_at is None:
        return 0
    seconds = (ends_at - (now or utcnow())).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


def format_watch_time(minutes: int) -> str:
    hours, rest = divmod(max(0, int(minutes)), 60)
    if hours:
        return f"{hours}h {rest:02d}min"
    return f"{rest}min"


def subscription_banner(
    subscription: SubscriptionSummary, *, now: datetime | None = None
) -> dict[str, Any]:
    tier = subscription.tier or DEFAULT_TIER
    if subscription.status == "trial":
        days = trial_days_remaining(subscription.trial_ends_at, now=now)
        if days > 0:
            return {
                "kind": "trial",
                "title": "Essai gratuit actif",
                "subtitle": f"{days} jours restants",
                "tier": tier,
            }
    if subscription.status == "active":
        return {
            "kind": "active",
            "title": "Abonnement actif",
            "subtitle": "Toutes les fonctionnalités débloquées",
            "tier": tier,
        }
    return {
        "kind": "none",
        "title": "Aucun abonnement",
        "subtitle": "Démarrez votre essai gratuit de 7 jours",
        "tier": None,
    }


def child_card(child: ChildWithStats) -> dict[str, Any]:
    stats = child.stats
    return {
        "id": child.id,
        "name": child.name,
        "schoolLevel": child.school_level or UNKNOWN_LEVEL,
        "exercises": stats.total_exercises,
        "successRate": f"{stats.success_rate}%",
        "videoTime": format_watch_time(stats.total_video_time),
    }


def build_dashboard_view(
    stats: DashboardStatsResponse, *, now: datetime | None = None
) -> dict[str, Any]:
    totals = stats.totals
    return {
        "greeting": f"Bonjour {stats.profile.first_name or ''}".rstrip(),
        "totals": {
            "exercises": totals.total_exercises,
            "successRate": f"{totals.success_rate}%",
            "videoTime": format_watch_time(totals.total_video_time),
        },
        "children": [child_card(child) for child in stats.children],
        "subscription": subscription_banner(stats.subscription, now=now),
    }


__all__ = [
    "build_dashboard_view",
    "child_card",
    "format_price",
    "format_watch_time",
    "subscription_banner",
    "trial_days_remaining",
    "yearly_savings",
]
