from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query

from .. import schemas
from ..auth import CurrentUser
from ..services import exercise_service

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/exercises", response_model=list[schemas.Exercise])
async def list_exercises(
    level: str | None = None,
    subject: str | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[schemas.Exercise]:
    rows = await exercise_service.list_public_exercises(level=level, subject=subject, limit=limit)
    return [schemas.Exercise(**row) for row in rows]


@router.post("/exercises/submit", response_model=schemas.ExerciseSubmitResponse)
async def submit_exercise(
    payload: schemas.ExerciseSubmitRequest, current: CurrentUser
) -> schemas.ExerciseSubmitResponse:
    try:
        result = await exercise_service.submit_answer(
            current,
            child_id=str(payload.child_id),
            exercise_id=str(payload.exercise_id),
            user_answer=payload.user_answer,
            time_spent=payload.time_spent,
        )
    except exercise_service.ExerciseError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.ExerciseSubmitResponse(**result)


@router.get("/children/{child_id}/exercises", response_model=list[schemas.ExerciseHistoryItem])
async def exercise_history(
    child_id: UUID,
    current: CurrentUser,
    limit: int | None = Query(default=None, ge=1),
) -> list[schemas.ExerciseHistoryItem]:
    try:
        rows = await exercise_service.list_history(current, str(child_id), limit=limit)
    except exercise_service.ExerciseError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return [schemas.ExerciseHistoryItem(**row) for row in rows]


@router.get("/videos", response_model=list[schemas.Video])
async def list_videos(
    level: str | None = None,
    subject: str | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[schemas.Video]:
    rows = await exercise_service.list_public_videos(level=level, subject=subject, limit=limit)
    return [schemas.Video(**row) for row in rows]


@router.post("/videos/progress", response_model=schemas.VideoProgress)
async def save_video_progress(
    payload: schemas.VideoProgressRequest, current: CurrentUser
) -> schemas.VideoProgress:
    try:
        row = await exercise_service.save_video_progress(current, payload.model_dump(mode="json"))
    except exercise_service.ExerciseError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.VideoProgress(**row)
