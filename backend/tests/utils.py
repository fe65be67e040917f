import time
import uuid

from jose import jwt

from simosmaths.config import settings

WEBHOOK_SECRET = "whsec_test_secret"
TEST_PRICES = {
    ("decouverte", "monthly"): "price_decouverte_monthly",
    ("decouverte", "yearly"): "price_decouverte_yearly",
    ("excellence", "monthly"): "price_excellence_monthly",
    ("excellence", "yearly"): "price_excellence_yearly",
    ("famille", "monthly"): "price_famille_monthly",
}


def make_token(
    user_id: str | None = None,
    *,
    email: str | None = None,
    expires_in: int = 3600,
    **claims,
) -> str:
    user_id = user_id or str(uuid.uuid4())
    payload = {
        "sub": user_id,
        "email": email or f"parent_{user_id[:8]}@example.com",
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(time.time()) + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str, **claims) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **claims)}"}


def register_parent(store, **fields):
    """Seed a parent profile and return (headers, profile_id)."""
    profile = store.add_profile(**fields)
    return auth_headers(profile["id"], email=profile["email"]), profile["id"]
