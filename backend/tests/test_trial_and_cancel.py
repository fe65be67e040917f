from datetime import datetime, timedelta, timezone

import pytest

from simosmaths.services import subscription_service

from .utils import register_parent

pytestmark = pytest.mark.anyio("asyncio")


async def test_start_trial_sets_profile(async_client, store):
    headers, profile_id = register_parent(store)
    before = datetime.now(timezone.utc)

    resp = await async_client.post("/api/trial/start", headers=headers, json={"plan": "excellence"})

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    trial_ends_at = datetime.fromisoformat(body["trialEndsAt"].replace("Z", "+00:00"))
    assert timedelta(days=7) - timedelta(seconds=5) <= trial_ends_at - before <= timedelta(days=7, seconds=5)

    profile = store.profiles[profile_id]
    assert profile["subscription_status"] == "trial"
    assert profile["subscription_tier"] == "excellence"
    assert len(store.live_subscriptions(profile_id)) == 1


async def test_second_trial_conflicts(async_client, store):
    headers, profile_id = register_parent(store)

    first = await async_client.post("/api/trial/start", headers=headers, json={"plan": "excellence"})
    second = await async_client.post("/api/trial/start", headers=headers, json={"plan": "famille"})

    assert first.status_code == 200
    assert second.status_code == 409
    assert store.profiles[profile_id]["subscription_tier"] == "excellence"
    assert len(store.live_subscriptions(profile_id)) == 1


async def test_trial_refused_with_active_subscription(async_client, store):
    headers, profile_id = register_parent(store)
    store.add_subscription(profile_id, stripe_subscription_id="sub_live", status="active")

    resp = await async_client.post("/api/trial/start", headers=headers, json={"plan": "decouverte"})
    assert resp.status_code == 409


async def test_trial_with_unknown_plan(async_client, store):
    headers, _ = register_parent(store)
    resp = await async_client.post("/api/trial/start", headers=headers, json={"plan": "gold"})
    assert resp.status_code == 400
    assert store.subscriptions == []


async def test_start_trial_service_uses_given_clock(store):
    profile = store.add_profile()
    now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    trial_ends_at = await subscription_service.start_trial(profile, plan="famille", now=now)

    assert trial_ends_at == datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)


async def test_cancel_without_subscription(async_client, store, stripe_gateway):
    headers, _ = register_parent(store)
    resp = await async_client.post("/api/subscriptions/cancel", headers=headers)
    assert resp.status_code == 404


async def test_cancel_gateway_subscription(async_client, store, stripe_gateway, monkeypatch):
    headers, profile_id = register_parent(store, subscription_status="active")
    row = store.add_subscription(profile_id, stripe_subscription_id="sub_test", status="active")
    captured: dict[str, object] = {}

    def fake_modify(sub_id, **kwargs):
        captured.update({"sub_id": sub_id, "kwargs": kwargs})
        return {"id": sub_id, "status": "active", "cancel_at_period_end": True}

    monkeypatch.setattr("stripe.Subscription.modify", fake_modify)

    resp = await async_client.post("/api/subscriptions/cancel", headers=headers)

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["success"] is True
    assert body["subscriptionId"] == "sub_test"
    assert body["cancelAtPeriodEnd"] is True
    assert captured["sub_id"] == "sub_test"
    assert captured["kwargs"]["cancel_at_period_end"] is True
    assert row["status"] == "canceled"
    assert store.profiles[profile_id]["subscription_status"] == "canceled"


async def test_cancel_local_trial_skips_gateway(async_client, store, stripe_gateway, monkeypatch):
    headers, profile_id = register_parent(store)
    row = store.add_subscription(profile_id, status="trial", plan="excellence")

    def fail_modify(*args, **kwargs):
        raise AssertionError("trial has no gateway subscription")

    monkeypatch.setattr("stripe.Subscription.modify", fail_modify)

    resp = await async_client.post("/api/subscriptions/cancel", headers=headers)

    assert resp.status_code == 200, resp.text
    assert resp.json()["subscriptionId"] is None
    assert row["status"] == "canceled"


async def test_subscription_status_reports_premium_access(async_client, store):
    headers, profile_id = register_parent(store)
    store.add_subscription(
        profile_id,
        stripe_subscription_id="sub_live",
        status="active",
        plan="excellence",
        current_period_end=datetime.now(timezone.utc) + timedelta(days=20),
    )

    resp = await async_client.get("/api/subscriptions/status", headers=headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["hasPremiumAccess"] is True
    assert body["subscription"]["stripeSubscriptionId"] == "sub_live"


async def test_has_premium_access_rules():
    now = datetime(2026, 5, 1, tzinfo=timezone.utc)
    assert subscription_service.has_premium_access(None, now=now) is False
    assert subscription_service.has_premium_access(
        {"status": "trial", "trial_end": now + timedelta(days=1)}, now=now
    )
    assert not subscription_service.has_premium_access(
        {"status": "trial", "trial_end": now - timedelta(days=1)}, now=now
    )
    assert not subscription_service.has_premium_access(
        {"status": "active", "current_period_end": now - timedelta(seconds=1)}, now=now
    )
    assert subscription_service.has_premium_access({"status": "active"}, now=now)
