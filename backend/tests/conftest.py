import asyncio
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from psycopg_pool import AsyncConnectionPool  # noqa: E402
from simosmaths import db  # noqa: E402
from simosmaths.config import settings  # noqa: E402
from simosmaths.main import app  # noqa: E402
from simosmaths.repositories import (  # noqa: E402
    children,
    exercises,
    payments,
    profiles,
    subscriptions,
    videos,
)
from simosmaths.services.payment_gateway import SimulatedGateway, StripeGateway  # noqa: E402

from .db_bootstrap import apply_migrations, database_url_for_tests  # noqa: E402
from .fakes import FakeStore  # noqa: E402
from .utils import TEST_PRICES, WEBHOOK_SECRET  # noqa: E402


def _ensure_event_loop():
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)


_ensure_event_loop()


@pytest.fixture(scope="module")
def anyio_backend():
    # Limit tests to asyncio backend so local runs do not require the Trio extra.
    return "asyncio"


@pytest.fixture
def store(monkeypatch) -> FakeStore:
    fake = FakeStore()
    fake.install(monkeypatch)
    return fake


@pytest.fixture
def simulated_gateway(monkeypatch) -> SimulatedGateway:
    gateway = SimulatedGateway(webhook_secret=WEBHOOK_SECRET, prices={})
    monkeypatch.setattr(app.state, "payment_gateway", gateway)
    return gateway


@pytest.fixture
def stripe_gateway(monkeypatch) -> StripeGateway:
    gateway = StripeGateway(
        secret_key="sk_test_value",
        webhook_secret=WEBHOOK_SECRET,
        prices=TEST_PRICES,
    )
    monkeypatch.setattr(app.state, "payment_gateway", gateway)
    return gateway


@pytest.fixture(autouse=True)
def _frontend_urls(monkeypatch):
    monkeypatch.setattr(settings, "frontend_base_url", "https://simosmaths.test")
    monkeypatch.setattr(settings, "checkout_success_url", None)
    monkeypatch.setattr(settings, "checkout_cancel_url", None)


@pytest.fixture
async def async_client(anyio_backend, store) -> AsyncClient:
    if anyio_backend != "asyncio":
        pytest.skip("Backend tests require asyncio")

    # ASGITransport skips the lifespan, so the database pool stays closed and
    # every repository call goes through the in-memory store.
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
async def db_pool(anyio_backend, monkeypatch):
    """Pool on a local migrated Postgres, swapped in for the repositories."""
    url = database_url_for_tests()
    if url is None:
        pytest.skip("Set TEST_DATABASE_URL or DATABASE_URL to a local Postgres to run")

    await apply_migrations(url)
    test_pool = AsyncConnectionPool(
        conninfo=url,
        min_size=2,
        max_size=4,
        open=False,
        kwargs={"autocommit": False},
    )
    await test_pool.open(wait=True)
    monkeypatch.setattr(db, "pool", test_pool)
    for module in (children, exercises, payments, profiles, subscriptions, videos):
        monkeypatch.setattr(module, "pool", test_pool)
    try:
        yield url
    finally:
        await test_pool.close()
