from __future__ import annotations

import logging
from typing import Annotated, Any, Mapping

from fastapi import APIRouter, Depends, HTTPException, status

from .. import schemas
from ..auth import CurrentUser, oauth2_scheme
from ..dependencies import IdentityClient
from ..repositories import profiles as profiles_repo
from ..services.identity import IdentityError

router = APIRouter(prefix="/api/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _session_from_payload(payload: Mapping[str, Any]) -> schemas.AuthSession:
    user = payload.get("user")
    if not isinstance(user, Mapping):
        # Sign-up with email confirmation returns the bare user object.
        user = payload
    access_token = payload.get("access_token")
    return schemas.AuthSession(
        access_token=access_token,
        refresh_token=payload.get("refresh_token"),
        token_type=payload.get("token_type") or "bearer",
        expires_in=payload.get("expires_in"),
        user_id=user.get("id"),
        email=user.get("email"),
        confirmation_required=access_token is None,
    )


async def _ensure_profile(session: schemas.AuthSession, *, first_name=None, last_name=None) -> None:
    if not session.user_id or not session.email:
        return
    await profiles_repo.ensure_profile(
        session.user_id,
        email=session.email,
        first_name=first_name,
        last_name=last_name,
    )


@router.post("/signup", response_model=schemas.AuthSession, status_code=status.HTTP_201_CREATED)
async def signup(payload: schemas.SignUpRequest, identity: IdentityClient) -> schemas.AuthSession:
    try:
        result = await identity.sign_up(
            payload.email,
            payload.password,
            {"first_name": payload.first_name, "last_name": payload.last_name},
        )
    except IdentityError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)

    session = _session_from_payload(result)
    await _ensure_profile(session, first_name=payload.first_name, last_name=payload.last_name)
    logger.info("Signed up %s", session.user_id)
    return session


@router.post("/login", response_model=schemas.AuthSession)
async def login(payload: schemas.LoginRequest, identity: IdentityClient) -> schemas.AuthSession:
    try:
        result = await identity.sign_in(payload.email, payload.password)
    except IdentityError as exc:
        if exc.status_code in (400, 401):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
            )
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)

    session = _session_from_payload(result)
    await _ensure_profile(session)
    return session


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    token: Annotated[str, Depends(oauth2_scheme)], identity: IdentityClient
) -> None:
    try:
        await identity.sign_out(token)
    except IdentityError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.get("/me", response_model=schemas.Profile)
async def me(current: CurrentUser) -> schemas.Profile:
    return schemas.Profile(**current)
