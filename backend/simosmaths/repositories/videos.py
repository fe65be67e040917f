from __future__ import annotations

from typing import Any, Mapping

from psycopg.rows import dict_row

from ..db import get_conn, pool

VideoRow = dict[str, Any]


async def list_videos(
    *,
    level: str | None = None,
    subject: str | None = None,
    limit: int = 10,
) -> list[VideoRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT v.id,
                   v.chapter_id,
                   v.title,
                   v.url,
                   v.duration_seconds,
                   c.title AS chapter_title,
                   s.name AS subject,
                   s.level
              FROM public.videos AS v
              JOIN public.chapters AS c ON c.id = v.chapter_id
              JOIN public.subjects AS s ON s.id = c.subject_id
             WHERE (%(level)s::text IS NULL OR s.level = %(level)s)
               AND (%(subject)s::text IS NULL OR s.name = %(subject)s)
             ORDER BY c.position ASC, v.created_at ASC
             LIMIT %(limit)s
            """,
            {"level": level, "subject": subject, "limit": limit},
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def upsert_watch_progress(record: Mapping[str, Any]) -> VideoRow:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.video_watch_history (
                    child_id,
                    video_id,
                    watched_seconds,
                    completed,
                    completed_at,
                    last_position
                )
                VALUES (
                    %(child_id)s,
                    %(video_id)s,
                    %(watched_seconds)s,
                    %(completed)s,
                    CASE WHEN %(completed)s THEN now() END,
                    %(last_position)s
                )
                ON CONFLICT (child_id, video_id) DO UPDATE
                SET watched_seconds = EXCLUDED.watched_seconds,
                    completed = EXCLUDED.completed,
                    completed_at = COALESCE(
                        public.video_watch_history.completed_at,
                        EXCLUDED.completed_at
                    ),
                    last_position = EXCLUDED.last_position,
                    updated_at = now()
                RETURNING id, child_id, video_id, watched_seconds, completed,
                          completed_at, last_position, updated_at
                """,
                {
                    "child_id": record["child_id"],
                    "video_id": record["video_id"],
                    "watched_seconds": int(record.get("watched_seconds") or 0),
                    "completed": bool(record.get("completed")),
                    "last_position": int(record.get("last_position") or 0),
                },
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row)


async def get_child_watched_seconds(child_id: str) -> int:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT COALESCE(sum(watched_seconds), 0) AS watched_seconds
              FROM public.video_watch_history
             WHERE child_id = %s
            """,
            (child_id,),
        )
        row = await cur.fetchone()
    return int(row["watched_seconds"]) if row else 0


__all__ = ["get_child_watched_seconds", "list_videos", "upsert_watch_progress"]
