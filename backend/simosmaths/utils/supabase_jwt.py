"""Verification of asymmetric (RS256/ES256) Supabase access tokens via JWKS."""

from __future__ import annotations

import time
from typing import Any, Callable

import httpx
from jose import JWTError, jwk, jwt

SUPPORTED_ALGORITHMS = ("RS256", "ES256")


class SupabaseJwtError(Exception):
    pass


def fetch_jwks(url: str) -> list[dict[str, Any]]:
    try:
        resp = httpx.get(url, timeout=5)
        resp.raise_for_status()
        document = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise SupabaseJwtError(f"Failed to fetch JWKS: {exc}") from exc
    keys = document.get("keys") if isinstance(document, dict) else None
    if not isinstance(keys, list):
        raise SupabaseJwtError("JWKS response missing keys")
    return [entry for entry in keys if isinstance(entry, dict)]


class JwksKeyCache:
    """Signing keys by kid for one JWKS URL, refreshed on expiry or unknown kid."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        *,
        fetch: Callable[[str], list[dict[str, Any]]] = fetch_jwks,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._fetch = fetch
        self._clock = clock
        self._url: str | None = None
        self._keys: dict[str, dict[str, Any]] = {}
        self._expires_at = 0.0

    def get(self, url: str, kid: str) -> dict[str, Any] | None:
        fresh = self._url == url and self._clock() < self._expires_at
        if fresh and kid in self._keys:
            return self._keys[kid]
        self._refresh(url)
        return self._keys.get(kid)

    def _refresh(self, url: str) -> None:
        entries = self._fetch(url)
        self._keys = {entry["kid"]: entry for entry in entries if entry.get("kid")}
        self._url = url
        self._expires_at = self._clock() + self.ttl_seconds


key_cache = JwksKeyCache()


def verify_supabase_access_token(
    token: str,
    *,
    jwks_url: str,
    issuer: str | None = None,
) -> dict[str, Any]:
    try:
        header = jwt.get_unverified_header(token)
    except JWTError as exc:
        raise SupabaseJwtError("Invalid token header") from exc

    alg = header.get("alg")
    kid = header.get("kid")
    if alg not in SUPPORTED_ALGORITHMS:
        raise SupabaseJwtError(f"Unsupported JWT alg: {alg}")
    if not kid:
        raise SupabaseJwtError("JWT header missing kid")

    key_data = key_cache.get(jwks_url, kid)
    if key_data is None:
        raise SupabaseJwtError(f"Unknown signing key {kid}")

    try:
        return jwt.decode(
            token,
            jwk.construct(key_data, alg),
            algorithms=[alg],
            issuer=issuer,
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise SupabaseJwtError("JWT verification failed") from exc


__all__ = ["JwksKeyCache", "SupabaseJwtError", "key_cache", "verify_supabase_access_token"]
