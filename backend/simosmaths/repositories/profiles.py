from __future__ import annotations

from typing import Any, Mapping

from psycopg import sql
from psycopg.rows import dict_row

from ..db import get_conn, pool

ProfileRow = dict[str, Any]

_PROFILE_COLUMNS = """
    id,
    email,
    first_name,
    last_name,
    role,
    subscription_tier,
    subscription_status,
    trial_ends_at,
    stripe_customer_id,
    created_at,
    updated_at
"""

UPDATABLE_PROFILE_FIELDS = frozenset(
    {
        "first_name",
        "last_name",
        "subscription_tier",
        "subscription_status",
        "trial_ends_at",
    }
)


async def get_profile(profile_id: str) -> ProfileRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_PROFILE_COLUMNS}
              FROM public.profiles
             WHERE id = %s
             LIMIT 1
            """,
            (profile_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def get_profile_by_customer(customer_id: str) -> ProfileRow | None:
    async with get_conn() as cur:
        await cur.execute(
            f"""
            SELECT {_PROFILE_COLUMNS}
              FROM public.profiles
             WHERE stripe_customer_id = %s
             LIMIT 1
            """,
            (customer_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def ensure_profile(
    profile_id: str,
    *,
    email: str,
    first_name: str | None = None,
    last_name: str | None = None,
) -> ProfileRow:
    """Return the profile, inserting it on first sign-in."""
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.profiles (id, email, first_name, last_name, role)
                VALUES (%s, %s, %s, %s, 'parent')
                ON CONFLICT (id) DO NOTHING
                """,
                (profile_id, email, first_name or email.split("@")[0], last_name or ""),
            )
            await cur.execute(
                f"""
                SELECT {_PROFILE_COLUMNS}
                  FROM public.profiles
                 WHERE id = %s
                """,
                (profile_id,),
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row)


async def update_profile(profile_id: str, fields: Mapping[str, Any]) -> ProfileRow | None:
    updates = {key: value for key, value in fields.items() if key in UPDATABLE_PROFILE_FIELDS}
    if not updates:
        return await get_profile(profile_id)

    assignments = sql.SQL(", ").join(
        sql.SQL("{} = {}").format(sql.Identifier(key), sql.Placeholder(key)) for key in updates
    )
    query = sql.SQL(
        "UPDATE public.profiles SET {assignments}, updated_at = now() "
        "WHERE id = {profile_id} RETURNING " + _PROFILE_COLUMNS
    ).format(assignments=assignments, profile_id=sql.Placeholder("profile_id"))

    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(query, {**updates, "profile_id": profile_id})
            row = await cur.fetchone()
            await conn.commit()
    return dict(row) if row else None


async def set_stripe_customer_id(profile_id: str, customer_id: str) -> None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE public.profiles
                   SET stripe_customer_id = %s,
                       updated_at = now()
                 WHERE id = %s
                """,
                (customer_id, profile_id),
            )
            await conn.commit()


__all__ = [
    "UPDATABLE_PROFILE_FIELDS",
    "ensure_profile",
    "get_profile",
    "get_profile_by_customer",
    "set_stripe_customer_id",
    "update_profile",
]
