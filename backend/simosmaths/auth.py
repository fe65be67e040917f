from __future__ import annotations

from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from .config import settings
from .logging_context import set_profile_context
from .repositories import profiles as profiles_repo
from .utils.supabase_jwt import SupabaseJwtError, verify_supabase_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Validate a Supabase access token and return its claims.

    Tokens signed with the shared project secret are checked locally; tokens
    using an asymmetric key are checked against the project's JWKS. Any
    failure surfaces as ``JWTError``.
    """
    header = jwt.get_unverified_header(token)
    jwks_url = settings.jwks_url
    if header.get("alg") == settings.jwt_algorithm or not jwks_url:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    try:
        return verify_supabase_access_token(token, jwks_url=jwks_url, issuer=settings.jwt_issuer)
    except SupabaseJwtError as exc:
        raise JWTError(str(exc)) from exc


def _metadata_names(claims: dict[str, Any]) -> tuple[str | None, str | None]:
    metadata = claims.get("user_metadata")
    if not isinstance(metadata, dict):
        return None, None
    names = (metadata.get("first_name"), metadata.get("last_name"))
    return tuple(name if isinstance(name, str) and name else None for name in names)  # type: ignore[return-value]


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> dict[str, Any]:
    """Resolve the bearer token to the caller's profile, creating it on first use."""
    unauthorized = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid token",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        claims = decode_access_token(token)
    except JWTError as exc:
        raise unauthorized from exc

    profile_id = claims.get("sub")
    if not isinstance(profile_id, str) or not profile_id:
        raise unauthorized

    profile = await profiles_repo.get_profile(profile_id)
    if profile is None:
        email = claims.get("email")
        if not isinstance(email, str) or not email:
            raise unauthorized
        first_name, last_name = _metadata_names(claims)
        profile = await profiles_repo.ensure_profile(
            profile_id, email=email, first_name=first_name, last_name=last_name
        )

    set_profile_context(str(profile["id"]))
    return profile


CurrentUser = Annotated[dict, Depends(get_current_user)]
