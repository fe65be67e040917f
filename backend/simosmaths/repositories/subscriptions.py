from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping

from psycopg import errors
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ..db import get_conn, pool

SubscriptionRow = dict[str, Any]

LIVE_STATUSES = ("active", "trial")

_SUBSCRIPTION_COLUMNS = """
    id,
    profile_id,
    stripe_subscription_id,
    stripe_customer_id,
    plan,
    period,
    status,
    current_period_start,
    current_period_end,
    trial_start,
    trial_end,
    cancel_at_period_end,
    amount,
    currency,
    created_at,
    updated_at
"""


async def get_active_subscription(profile_id: str) -> SubscriptionRow | None:
    """Most recent subscription of the profile whose status is active or trial."""
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_SUBSCRIPTION_COLUMNS}
              FROM public.subscriptions
             WHERE profile_id = %s
               AND status = ANY(%s)
             ORDER BY created_at DESC
             LIMIT 1
            """,
            (profile_id, list(LIVE_STATUSES)),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def get_by_stripe_id(stripe_subscription_id: str) -> SubscriptionRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_SUBSCRIPTION_COLUMNS}
              FROM public.subscriptions
             WHERE stripe_subscription_id = %s
             LIMIT 1
            """,
            (stripe_subscription_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def upsert_subscription(record: Mapping[str, Any]) -> SubscriptionRow:
    """
    Insert or refresh the snapshot of a gateway subscription, keyed by
    stripe_subscription_id. An incoming live subscription ends every other
    live row of the same profile (local trial or superseded gateway
    subscription) in the same transaction.
    """
    params = {
        "profile_id": record["profile_id"],
        "stripe_subscription_id": record["stripe_subscription_id"],
        "stripe_customer_id": record.get("stripe_customer_id"),
        "plan": record.get("plan"),
        "period": record.get("period"),
        "status": record["status"],
        "current_period_start": record.get("current_period_start"),
        "current_period_end": record.get("current_period_end"),
        "trial_start": record.get("trial_start"),
        "trial_end": record.get("trial_end"),
        "cancel_at_period_end": bool(record.get("cancel_at_period_end")),
        "amount": record.get("amount"),
        "currency": record.get("currency"),
    }
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            if params["status"] in LIVE_STATUSES:
                await cur.execute(
                    """
                    UPDATE public.subscriptions
                       SET status = 'ended',
                           updated_at = now()
                     WHERE profile_id = %(profile_id)s
                       AND status = ANY(%(live)s)
                       AND stripe_subscription_id IS DISTINCT FROM %(stripe_subscription_id)s
                    """,
                    {**params, "live": list(LIVE_STATUSES)},
                )
            await cur.execute(
                f"""
                INSERT INTO public.subscriptions (
                    profile_id,
                    stripe_subscription_id,
                    stripe_customer_id,
                    plan,
                    period,
                    status,
                    current_period_start,
                    current_period_end,
                    trial_start,
                    trial_end,
                    cancel_at_period_end,
                    amount,
                    currency
                )
                VALUES (
                    %(profile_id)s,
                    %(stripe_subscription_id)s,
                    %(stripe_customer_id)s,
                    %(plan)s,
                    %(period)s,
                    %(status)s,
                    %(current_period_start)s,
                    %(current_period_end)s,
                    %(trial_start)s,
                    %(trial_end)s,
                    %(cancel_at_period_end)s,
                    %(amount)s,
                    %(currency)s
                )
                ON CONFLICT (stripe_subscription_id) DO UPDATE
                SET profile_id = EXCLUDED.profile_id,
                    stripe_customer_id = COALESCE(
                        EXCLUDED.stripe_customer_id,
                        public.subscriptions.stripe_customer_id
                    ),
                    plan = COALESCE(EXCLUDED.plan, public.subscriptions.plan),
                    period = COALESCE(EXCLUDED.period, public.subscriptions.period),
                    status = EXCLUDED.status,
                    current_period_start = EXCLUDED.current_period_start,
                    current_period_end = EXCLUDED.current_period_end,
                    trial_start = EXCLUDED.trial_start,
                    trial_end = EXCLUDED.trial_end,
                    cancel_at_period_end = EXCLUDED.cancel_at_period_end,
                    amount = COALESCE(EXCLUDED.amount, public.subscriptions.amount),
                    currency = COALESCE(EXCLUDED.currency, public.subscriptions.currency),
                    updated_at = now()
                RETURNING {_SUBSCRIPTION_COLUMNS}
                """,
                params,
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row)


async def mark_canceled_by_stripe_id(stripe_subscription_id: str) -> SubscriptionRow | None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                f"""
                UPDATE public.subscriptions
                   SET status = 'canceled',
                       updated_at = now()
                 WHERE stripe_subscription_id = %s
                RETURNING {_SUBSCRIPTION_COLUMNS}
                """,
                (stripe_subscription_id,),
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row) if row else None


async def start_trial(
    profile_id: str,
    *,
    plan: str,
    started_at: datetime,
    trial_ends_at: datetime,
) -> SubscriptionRow | None:
    """
    Open a trial for the profile unless an active or trial subscription exists.

    The insert is conditional and backed by the partial unique index on
    (profile_id) for live statuses, so two concurrent calls cannot both
    succeed. Returns None when the profile already has a live subscription.
    """
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            try:
                await cur.execute(
                    f"""
                    INSERT INTO public.subscriptions (
                        profile_id, plan, status, trial_start, trial_end
                    )
                    SELECT %(profile_id)s, %(plan)s, 'trial', %(started_at)s, %(trial_ends_at)s
                     WHERE NOT EXISTS (
                           SELECT 1
                             FROM public.subscriptions
                            WHERE profile_id = %(profile_id)s
                              AND status = ANY(%(live)s)
                     )
                    RETURNING {_SUBSCRIPTION_COLUMNS}
                    """,
                    {
                        "profile_id": profile_id,
                        "plan": plan,
                        "started_at": started_at,
                        "trial_ends_at": trial_ends_at,
                        "live": list(LIVE_STATUSES),
                    },
                )
            except errors.UniqueViolation:
                await conn.rollback()
                return None
            row = await cur.fetchone()
            if row is None:
                await conn.rollback()
                return None
            await cur.execute(
                """
                UPDATE public.profiles
                   SET subscription_tier = %s,
                       subscription_status = 'trial',
                       trial_ends_at = %s,
                       updated_at = now()
                 WHERE id = %s
                """,
                (plan, trial_ends_at, profile_id),
            )
            await conn.commit()
    return dict(row)


async def cancel_subscription_record(
    subscription_row_id: str,
    profile_id: str,
    *,
    cancel_at_period_end: bool,
) -> SubscriptionRow | None:
    """Mark the subscription row and its profile canceled in one transaction."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                f"""
                UPDATE public.subscriptions
                   SET status = 'canceled',
                       cancel_at_period_end = %s,
                       updated_at = now()
                 WHERE id = %s
                   AND profile_id = %s
                RETURNING {_SUBSCRIPTION_COLUMNS}
                """,
                (cancel_at_period_end, subscription_row_id, profile_id),
            )
            row = await cur.fetchone()
            await cur.execute(
                """
                UPDATE public.profiles
                   SET subscription_status = 'canceled',
                       updated_at = now()
                 WHERE id = %s
                """,
                (profile_id,),
            )
            await conn.commit()
    return dict(row) if row else None


async def record_webhook_event(event_id: str, event_type: str, payload: Mapping[str, Any]) -> bool:
    """Store a received gateway event; False when the id was already recorded."""
    if not event_id:
        return False
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.webhook_events (event_id, event_type, payload)
                VALUES (%s, %s, %s)
                ON CONFLICT (event_id) DO NOTHING
                """,
                (event_id, event_type, Jsonb(dict(payload))),
            )
            inserted = cur.rowcount > 0
            await conn.commit()
    return inserted


__all__ = [
    "LIVE_STATUSES",
    "cancel_subscription_record",
    "get_active_subscription",
    "get_by_stripe_id",
    "mark_canceled_by_stripe_id",
    "record_webhook_event",
    "start_trial",
    "upsert_subscription",
]
