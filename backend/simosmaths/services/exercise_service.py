from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from fastapi.encoders import jsonable_encoder

from .. import metrics
from ..config import settings
from ..repositories import children as children_repo
from ..repositories import exercises as exercises_repo
from ..repositories import videos as videos_repo

logger = logging.getLogger(__name__)

MAX_SCORE = 20
_WHITESPACE = re.compile(r"\s+")


class ExerciseError(Exception):
    status_code = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


def clamp_limit(limit: int | None) -> int:
    if limit is None or limit < 1:
        return settings.catalog_default_limit
    return min(limit, settings.catalog_max_limit)


def normalize_answer(value: str | None) -> str:
    return _WHITESPACE.sub("", value or "").casefold()


def grade_answer(user_answer: str | None, solution: str | None, time_spent: int) -> dict[str, Any]:
    """Right answers score full marks; wrong ones lose a point per full minute spent."""
    correct = bool(solution) and normalize_answer(user_answer) == normalize_answer(solution)
    if correct:
        score = MAX_SCORE
        feedback = "Bonne réponse !"
    else:
        score = max(0, MAX_SCORE - max(0, int(time_spent)) // 60)
        feedback = "Réponse incorrecte"
    return {"correct": correct, "score": score, "feedback": feedback}


async def list_public_exercises(
    *, level: str | None, subject: str | None, limit: int | None
) -> list[dict[str, Any]]:
    rows = await exercises_repo.list_exercises(
        level=level, subject=subject, limit=clamp_limit(limit)
    )
    for row in rows:
        row.pop("solution", None)
    return rows


async def list_public_videos(
    *, level: str | None, subject: str | None, limit: int | None
) -> list[dict[str, Any]]:
    return await videos_repo.list_videos(level=level, subject=subject, limit=clamp_limit(limit))


async def _require_child(user: Mapping[str, Any], child_id: str) -> dict[str, Any]:
    child = await children_repo.get_child(child_id, str(user["id"]))
    if not child:
        raise ExerciseError("Child not found", status_code=404)
    return child


async def submit_answer(
    user: Mapping[str, Any],
    *,
    child_id: str,
    exercise_id: str,
    user_answer: str,
    time_spent: int,
) -> dict[str, Any]:
    await _require_child(user, child_id)
    exercise = await exercises_repo.get_exercise(exercise_id)
    if not exercise:
        raise ExerciseError("Exercise not found", status_code=404)

    correction = grade_answer(user_answer, exercise.get("solution"), time_spent)
    session = await exercises_repo.insert_exercise_session(
        {
            "child_id": child_id,
            "exercise_id": exercise_id,
            "user_answer": user_answer,
            "correct": correction["correct"],
            "score": correction["score"],
            "time_spent": time_spent,
        }
    )
    metrics.exercise_submissions_total.labels(correct=str(correction["correct"]).lower()).inc()
    logger.info(
        "Exercise %s answered by child %s (correct=%s score=%s)",
        exercise_id,
        child_id,
        correction["correct"],
        correction["score"],
    )
    return {**correction, "success": True, "data": jsonable_encoder(session)}


async def list_history(
    user: Mapping[str, Any], child_id: str, *, limit: int | None = None
) -> list[dict[str, Any]]:
    await _require_child(user, child_id)
    return await exercises_repo.list_child_sessions(child_id, limit=clamp_limit(limit))


async def save_video_progress(user: Mapping[str, Any], record: Mapping[str, Any]) -> dict[str, Any]:
    await _require_child(user, str(record["child_id"]))
    return await videos_repo.upsert_watch_progress(record)


__all__ = [
    "ExerciseError",
    "MAX_SCORE",
    "clamp_limit",
    "grade_answer",
    "list_history",
    "list_public_exercises",
    "list_public_videos",
    "normalize_answer",
    "save_video_progress",
    "submit_answer",
]
