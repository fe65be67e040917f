import pytest
from jose import jwt

from simosmaths.utils.supabase_jwt import JwksKeyCache, SupabaseJwtError, verify_supabase_access_token


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_key_cache_reuses_keys_until_expiry():
    calls: list[str] = []
    clock = _Clock()

    def fetch(url):
        calls.append(url)
        return [{"kid": "k1", "kty": "RSA"}, {"kty": "RSA"}]

    cache = JwksKeyCache(ttl_seconds=60, fetch=fetch, clock=clock)

    assert cache.get("https://jwks.test", "k1") == {"kid": "k1", "kty": "RSA"}
    assert cache.get("https://jwks.test", "k1") is not None
    assert len(calls) == 1

    clock.now += 61
    cache.get("https://jwks.test", "k1")
    assert len(calls) == 2


def test_key_cache_refetches_unknown_kid():
    calls: list[str] = []

    def fetch(url):
        calls.append(url)
        return [{"kid": "k1"}]

    cache = JwksKeyCache(fetch=fetch, clock=_Clock())
    cache.get("https://jwks.test", "k1")

    assert cache.get("https://jwks.test", "rotated") is None
    assert len(calls) == 2


def test_symmetric_tokens_are_not_accepted():
    token = jwt.encode({"sub": "user-1"}, "secret", algorithm="HS256")

    with pytest.raises(SupabaseJwtError):
        verify_supabase_access_token(token, jwks_url="https://jwks.test")


def test_garbage_token_is_rejected():
    with pytest.raises(SupabaseJwtError):
        verify_supabase_access_token("garbage", jwks_url="https://jwks.test")
