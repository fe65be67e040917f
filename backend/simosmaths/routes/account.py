from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, HTTPException, Response, status

from .. import schemas
from ..auth import CurrentUser
from ..repositories import children as children_repo
from ..repositories import profiles as profiles_repo

router = APIRouter(prefix="/api", tags=["account"])


@router.get("/profile", response_model=schemas.Profile)
async def get_profile(current: CurrentUser) -> schemas.Profile:
    return schemas.Profile(**current)


@router.patch("/profile", response_model=schemas.Profile)
async def update_profile(
    payload: schemas.ProfileUpdateRequest, current: CurrentUser
) -> schemas.Profile:
    fields = payload.model_dump(exclude_unset=True)
    row = await profiles_repo.update_profile(str(current["id"]), fields)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    return schemas.Profile(**row)


@router.get("/children", response_model=list[schemas.Child])
async def list_children(current: CurrentUser) -> list[schemas.Child]:
    rows = await children_repo.list_children(str(current["id"]))
    return [schemas.Child(**row) for row in rows]


@router.post("/children", response_model=schemas.Child, status_code=status.HTTP_201_CREATED)
async def create_child(payload: schemas.ChildCreateRequest, current: CurrentUser) -> schemas.Child:
    row = await children_repo.create_child(
        str(current["id"]), name=payload.name, school_level=payload.school_level
    )
    return schemas.Child(**row)


@router.patch("/children/{child_id}", response_model=schemas.Child)
async def update_child(
    child_id: UUID, payload: schemas.ChildUpdateRequest, current: CurrentUser
) -> schemas.Child:
    fields = payload.model_dump(exclude_unset=True)
    row = await children_repo.update_child(str(child_id), str(current["id"]), fields)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Child not found")
    return schemas.Child(**row)


@router.delete("/children/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_child(child_id: UUID, current: CurrentUser) -> Response:
    deleted = await children_repo.delete_child(str(child_id), str(current["id"]))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Child not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
