from __future__ import annotations

from typing import Any, Mapping

from psycopg.rows import dict_row

from ..db import get_conn, pool

ChildRow = dict[str, Any]


async def list_children(parent_id: str) -> list[ChildRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, parent_id, name, school_level, created_at, updated_at
              FROM public.children
             WHERE parent_id = %s
             ORDER BY created_at ASC
            """,
            (parent_id,),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_child(child_id: str, parent_id: str) -> ChildRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, parent_id, name, school_level, created_at, updated_at
              FROM public.children
             WHERE id = %s
               AND parent_id = %s
             LIMIT 1
            """,
            (child_id, parent_id),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def create_child(parent_id: str, *, name: str, school_level: str | None) -> ChildRow:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.children (parent_id, name, school_level)
                VALUES (%s, %s, %s)
                RETURNING id, parent_id, name, school_level, created_at, updated_at
                """,
                (parent_id, name, school_level),
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row)


async def update_child(
    child_id: str, parent_id: str, fields: Mapping[str, Any]
) -> ChildRow | None:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                UPDATE public.children
                   SET name = COALESCE(%s, name),
                       school_level = COALESCE(%s, school_level),
                       updated_at = now()
                 WHERE id = %s
                   AND parent_id = %s
                RETURNING id, parent_id, name, school_level, created_at, updated_at
                """,
                (fields.get("name"), fields.get("school_level"), child_id, parent_id),
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row) if row else None


async def delete_child(child_id: str, parent_id: str) -> bool:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor() as cur:  # type: ignore[attr-defined]
            await cur.execute(
                "DELETE FROM public.children WHERE id = %s AND parent_id = %s",
                (child_id, parent_id),
            )
            deleted = cur.rowcount > 0
            await conn.commit()
    return deleted


__all__ = ["create_child", "delete_child", "get_child", "list_children", "update_child"]
