from __future__ import annotations

from typing import Any, Mapping

from ..db import get_conn, pool

PaymentRow = dict[str, Any]


async def insert_payment(record: Mapping[str, Any]) -> bool:
    """Append a payment; a repeated invoice id is ignored and reported as False."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.payments (
                    profile_id,
                    stripe_invoice_id,
                    stripe_payment_intent_id,
                    amount,
                    currency,
                    status,
                    receipt_url
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (stripe_invoice_id) DO NOTHING
                """,
                (
                    record.get("profile_id"),
                    record["stripe_invoice_id"],
                    record.get("stripe_payment_intent_id"),
                    int(record.get("amount") or 0),
                    record.get("currency"),
                    record.get("status") or "succeeded",
                    record.get("receipt_url"),
                ),
            )
            inserted = cur.rowcount > 0
            await conn.commit()
    return inserted


async def list_payments(profile_id: str) -> list[PaymentRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id,
                   profile_id,
                   stripe_invoice_id,
                   stripe_payment_intent_id,
                   amount,
                   currency,
                   status,
                   receipt_url,
                   created_at
              FROM public.payments
             WHERE profile_id = %s
             ORDER BY created_at DESC
            """,
            (profile_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


__all__ = ["insert_payment", "list_payments"]
