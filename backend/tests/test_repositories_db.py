import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from simosmaths.repositories import payments as payments_repo
from simosmaths.repositories import subscriptions as subscriptions_repo
from simosmaths.services import subscription_service, webhook_reconciliation

from .db_bootstrap import create_profile, drop_profiles

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
async def seeded(db_pool):
    created: dict[str, list[str]] = {"profiles": [], "invoices": []}

    async def new_profile() -> str:
        profile_id = await create_profile(db_pool)
        created["profiles"].append(profile_id)
        return profile_id

    try:
        yield new_profile, created
    finally:
        await drop_profiles(db_pool, created["profiles"], created["invoices"])


def _gateway_record(profile_id: str, subscription_id: str, **overrides):
    now = datetime.now(timezone.utc)
    record = {
        "profile_id": profile_id,
        "stripe_subscription_id": subscription_id,
        "stripe_customer_id": "cus_db",
        "plan": "excellence",
        "period": "monthly",
        "status": "active",
        "current_period_start": now,
        "current_period_end": now + timedelta(days=30),
        "cancel_at_period_end": False,
        "amount": 2490,
        "currency": "eur",
    }
    record.update(overrides)
    return record


async def _rows_for(profile_id: str):
    async with subscriptions_repo.get_conn() as cur:
        await cur.execute(
            "select stripe_subscription_id, status from public.subscriptions"
            " where profile_id = %s order by created_at",
            (profile_id,),
        )
        return [(row["stripe_subscription_id"], row["status"]) for row in await cur.fetchall()]


async def test_concurrent_trial_starts_open_one_trial(seeded):
    new_profile, _ = seeded
    profile_id = await new_profile()
    now = datetime.now(timezone.utc)

    results = await asyncio.gather(
        *(
            subscriptions_repo.start_trial(
                profile_id,
                plan="excellence",
                started_at=now,
                trial_ends_at=now + timedelta(days=7),
            )
            for _ in range(2)
        )
    )

    assert sum(row is not None for row in results) == 1
    assert await _rows_for(profile_id) == [(None, "trial")]


async def test_second_trial_maps_to_conflict(seeded):
    new_profile, _ = seeded
    profile_id = await new_profile()
    profile = {"id": profile_id}

    await subscription_service.start_trial(profile, plan="excellence")
    with pytest.raises(subscription_service.SubscriptionError) as exc_info:
        await subscription_service.start_trial(profile, plan="famille")

    assert exc_info.value.status_code == 409


async def test_replayed_subscription_upsert_keeps_one_row(seeded):
    new_profile, _ = seeded
    profile_id = await new_profile()
    record = _gateway_record(profile_id, f"sub_db_{profile_id[:8]}")

    first = await subscriptions_repo.upsert_subscription(record)
    second = await subscriptions_repo.upsert_subscription(record)

    assert first["id"] == second["id"]
    assert await _rows_for(profile_id) == [(record["stripe_subscription_id"], "active")]


async def test_new_gateway_subscription_supersedes_live_rows(seeded):
    new_profile, _ = seeded
    profile_id = await new_profile()
    now = datetime.now(timezone.utc)
    await subscriptions_repo.start_trial(
        profile_id, plan="excellence", started_at=now, trial_ends_at=now + timedelta(days=7)
    )
    old_id = f"sub_old_{profile_id[:8]}"
    new_id = f"sub_new_{profile_id[:8]}"

    await subscriptions_repo.upsert_subscription(_gateway_record(profile_id, old_id))
    await subscriptions_repo.upsert_subscription(_gateway_record(profile_id, new_id))

    assert await _rows_for(profile_id) == [(None, "ended"), (old_id, "ended"), (new_id, "active")]


async def test_cancel_then_gateway_echo_then_resubscribe(seeded):
    new_profile, _ = seeded
    profile_id = await new_profile()
    old_id = f"sub_old_{profile_id[:8]}"
    new_id = f"sub_new_{profile_id[:8]}"
    row = await subscriptions_repo.upsert_subscription(_gateway_record(profile_id, old_id))
    await subscriptions_repo.cancel_subscription_record(
        str(row["id"]), profile_id, cancel_at_period_end=True
    )

    period_end = int(time.time()) + 30 * 86400
    for event_id, subscription_id, cancel_at_period_end in (
        (f"evt_echo_{profile_id[:8]}", old_id, True),
        (f"evt_new_{profile_id[:8]}", new_id, False),
    ):
        await webhook_reconciliation.process_event(
            {
                "id": event_id,
                "type": "customer.subscription.updated",
                "data": {
                    "object": {
                        "id": subscription_id,
                        "customer": "cus_db",
                        "status": "active",
                        "cancel_at_period_end": cancel_at_period_end,
                        "current_period_end": period_end,
                        "metadata": {"userId": profile_id, "plan": "excellence", "period": "monthly"},
                    }
                },
            }
        )

    assert await _rows_for(profile_id) == [(old_id, "canceled"), (new_id, "active")]


async def test_duplicate_invoice_is_recorded_once(seeded):
    new_profile, created = seeded
    profile_id = await new_profile()
    invoice_id = f"in_db_{profile_id[:8]}"
    created["invoices"].append(invoice_id)
    record = {
        "profile_id": profile_id,
        "stripe_invoice_id": invoice_id,
        "amount": 2490,
        "currency": "eur",
        "status": "succeeded",
    }

    assert await payments_repo.insert_payment(record) is True
    assert await payments_repo.insert_payment(record) is False
    assert [row["stripe_invoice_id"] for row in await payments_repo.list_payments(profile_id)] == [
        invoice_id
    ]
