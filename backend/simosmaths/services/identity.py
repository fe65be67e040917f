from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

logger = logging.getLogger(__name__)


class IdentityError(Exception):
    status_code = 502

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        if status_code is not None:
            self.status_code = status_code
        self.detail = detail


class SupabaseAuthClient:
    """Thin async wrapper over the Supabase Auth (GoTrue) REST API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self, access_token: str | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {access_token or self.api_key}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str | None = None,
        params: Mapping[str, str] | None = None,
        json: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/auth/v1{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers(access_token),
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as exc:
            logger.warning("Auth provider unreachable: %s", exc)
            raise IdentityError(f"Auth provider unreachable: {exc}") from exc

        if resp.status_code >= 400:
            detail = _error_message(resp)
            status_code = resp.status_code if resp.status_code < 500 else 502
            raise IdentityError(detail, status_code=status_code)
        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            raise IdentityError("Auth provider returned invalid JSON") from exc
        return data if isinstance(data, dict) else {}

    async def sign_up(
        self, email: str, password: str, metadata: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": dict(metadata or {})},
        )

    async def sign_in(self, email: str, password: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def get_user(self, access_token: str) -> dict[str, Any]:
        return await self._request("GET", "/user", access_token=access_token)

    async def sign_out(self, access_token: str) -> None:
        await self._request("POST", "/logout", access_token=access_token)


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text or f"Auth provider error ({resp.status_code})"
    if isinstance(data, dict):
        for key in ("error_description", "msg", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Auth provider error ({resp.status_code})"


__all__ = ["IdentityError", "SupabaseAuthClient"]
