"""Shared fixtures: the API wired to an in-memory platform."""

import httpx
import pytest
import pytest_asyncio

import api.system
import database
from api import app
from cache import review_count_cache, user_reviews_list_cache
from fake_platform import FakeBackend

BUYER_ID = "11111111-1111-4111-8111-111111111111"
SELLER_ID = "22222222-2222-4222-8222-222222222222"
ADMIN_ID = "33333333-3333-4333-8333-333333333333"

BUYER_TOKEN = "buyer-access-token"
BUYER_REFRESH = "buyer-refresh-token"
SELLER_TOKEN = "seller-access-token"
ADMIN_TOKEN = "admin-access-token"

def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}

@pytest.fixture
def backend() -> FakeBackend:
    """Fake platform seeded with a buyer, a seller and an admin."""
    backend = FakeBackend()
    backend.add_user(BUYER_ID, "buyer@example.com", BUYER_TOKEN, BUYER_REFRESH, username="buyer", full_name="Bea Buyer")
    backend.add_user(SELLER_ID, "seller@example.com", SELLER_TOKEN, username="seller", full_name="Sam Seller")
    backend.add_user(ADMIN_ID, "admin@example.com", ADMIN_TOKEN, role="admin", username="admin", full_name="Ada Admin")
    return backend

@pytest_asyncio.fixture
async def platform(backend):
    """Initialise the database module against the fake platform."""
    await database.init_db(
        "https://project.supabase.co",
        "anon-key",
        "service-role-key",
        client_factory=backend.factory
    )
    review_count_cache.clear()
    user_reviews_list_cache.clear()
    api.system.limiter.reset()
    yield backend
    await database.close()

@pytest_asyncio.fixture
async def client(platform):
    """HTTP client for the API."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client

@pytest.fixture
def listing(backend) -> dict:
    """An active listing owned by the seller, on the basic plan."""
    plan = backend.insert("plans", {"name": "Basic", "price": 0, "max_listings": 2})
    return backend.insert("listings", {
        "title": "Mountain bike",
        "user_id": SELLER_ID,
        "status": "active",
        "plan_id": plan["id"],
        "views": 0,
        "category_id": 1,
    })
