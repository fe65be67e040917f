from __future__ import annotations

from typing import Any, Mapping

from psycopg.rows import dict_row

from ..db import get_conn, pool

ExerciseRow = dict[str, Any]


async def list_exercises(
    *,
    level: str | None = None,
    subject: str | None = None,
    limit: int = 10,
) -> list[ExerciseRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT e.id,
                   e.chapter_id,
                   e.title,
                   e.question,
                   e.solution,
                   e.difficulty,
                   c.title AS chapter_title,
                   s.name AS subject,
                   s.level
              FROM public.exercises AS e
              JOIN public.chapters AS c ON c.id = e.chapter_id
              JOIN public.subjects AS s ON s.id = c.subject_id
             WHERE (%(level)s::text IS NULL OR s.level = %(level)s)
               AND (%(subject)s::text IS NULL OR s.name = %(subject)s)
             ORDER BY c.position ASC, e.created_at ASC
             LIMIT %(limit)s
            """,
            {"level": level, "subject": subject, "limit": limit},
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_exercise(exercise_id: str) -> ExerciseRow | None:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT id, chapter_id, title, question, solution, difficulty
              FROM public.exercises
             WHERE id = %s
             LIMIT 1
            """,
            (exercise_id,),
        )
        row = await cur.fetchone()
    return dict(row) if row else None


async def insert_exercise_session(record: Mapping[str, Any]) -> ExerciseRow:
    async with pool.connection() as conn:  # type: ignore[attr-defined]
        async with conn.cursor(row_factory=dict_row) as cur:  # type: ignore[attr-defined]
            await cur.execute(
                """
                INSERT INTO public.exercise_sessions (
                    child_id, exercise_id, user_answer, correct, score, time_spent
                )
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id, child_id, exercise_id, user_answer, correct, score,
                          time_spent, created_at
                """,
                (
                    record["child_id"],
                    record["exercise_id"],
                    record.get("user_answer"),
                    bool(record.get("correct")),
                    int(record.get("score") or 0),
                    int(record.get("time_spent") or 0),
                ),
            )
            row = await cur.fetchone()
            await conn.commit()
    return dict(row)


async def list_child_sessions(child_id: str, *, limit: int = 20) -> list[ExerciseRow]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT es.id,
                   es.exercise_id,
                   e.title AS exercise_title,
                   es.user_answer,
                   es.correct,
                   es.score,
                   es.time_spent,
                   es.created_at
              FROM public.exercise_sessions AS es
              JOIN public.exercises AS e ON e.id = es.exercise_id
             WHERE es.child_id = %s
             ORDER BY es.created_at DESC
             LIMIT %s
            """,
            (child_id, limit),
        )
        rows = await cur.fetchall()
    return [dict(row) for row in rows]


async def get_child_exercise_summary(child_id: str) -> dict[str, int]:
    async with get_conn() as cur:
        await cur.execute(
            """
            SELECT count(*) AS total,
                   count(*) FILTER (WHERE correct) AS correct
              FROM public.exercise_sessions
             WHERE child_id = %s
            """,
            (child_id,),
        )
        row = await cur.fetchone()
    if not row:
        return {"total": 0, "correct": 0}
    return {"total": int(row["total"] or 0), "correct": int(row["correct"] or 0)}


__all__ = [
    "get_child_exercise_summary",
    "get_exercise",
    "insert_exercise_session",
    "list_child_sessions",
    "list_exercises",
]
