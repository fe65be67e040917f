import json

import httpx
import pytest

from simosmaths.services.identity import IdentityError, SupabaseAuthClient

pytestmark = pytest.mark.anyio("asyncio")


def _client(handler) -> SupabaseAuthClient:
    return SupabaseAuthClient(
        "https://project.supabase.co/", "anon-key", transport=httpx.MockTransport(handler)
    )


async def test_sign_up_sends_metadata():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-1", "email": "a@example.com"})

    result = await _client(handler).sign_up("a@example.com", "secret123", {"first_name": "Ana"})

    assert result["id"] == "user-1"
    request = seen[0]
    assert str(request.url) == "https://project.supabase.co/auth/v1/signup"
    assert request.headers["apikey"] == "anon-key"
    assert json.loads(request.content)["data"] == {"first_name": "Ana"}


async def test_get_user_uses_access_token():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer user-token"
        return httpx.Response(200, json={"id": "user-1"})

    assert (await _client(handler).get_user("user-token"))["id"] == "user-1"


async def test_client_errors_keep_status_and_message():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"msg": "Password should be at least 6 characters"})

    with pytest.raises(IdentityError) as exc_info:
        await _client(handler).sign_up("a@example.com", "123")

    assert exc_info.value.status_code == 422
    assert exc_info.value.detail == "Password should be at least 6 characters"


async def test_server_errors_become_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream down")

    with pytest.raises(IdentityError) as exc_info:
        await _client(handler).sign_in("a@example.com", "secret123")

    assert exc_info.value.status_code == 502
    assert exc_info.value.detail == "upstream down"


async def test_transport_errors_become_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(IdentityError) as exc_info:
        await _client(handler).sign_out("user-token")

    assert exc_info.value.status_code == 502
