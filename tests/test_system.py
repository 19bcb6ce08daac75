"""Tests for health, rate limiting and error rendering."""

import time

import pytest

import api.system
from api.system import RateLimiter
from conftest import SELLER_ID, BUYER_TOKEN, bearer

def test_rate_limiter_window():
    """Test counting requests per caller within a window."""
    limiter = RateLimiter(60, 2)

    allowed, remaining, reset_time = limiter.check("1.2.3.4")
    assert (allowed, remaining) == (True, 1)
    assert limiter.check("1.2.3.4")[:2] == (True, 0)
    assert limiter.check("1.2.3.4")[:2] == (False, 0)
    assert limiter.check("5.6.7.8")[:2] == (True, 1)

    assert reset_time > time.time()
    assert 1 <= limiter.retry_after(reset_time) <= 60
    assert limiter.retry_after(time.time() - 5) == 1

def test_rate_limiter_reset():
    """Test forgetting all windows."""
    limiter = RateLimiter(60, 1)
    limiter.check("a")
    assert limiter.check("a")[0] is False

    limiter.reset()
    assert limiter.check("a")[0] is True

@pytest.mark.asyncio
async def test_health(client):
    """Test the liveness endpoint."""
    response = await client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["environment"]
    assert body["timestamp"]

@pytest.mark.asyncio
async def test_rate_limited_endpoint(client, listing, monkeypatch):
    """Test that limited endpoints answer 429 with retry headers."""
    monkeypatch.setattr(api.system, "limiter", RateLimiter(60, 2))
    headers = {"X-Forwarded-For": "203.0.113.9, 10.0.0.1"}

    for _ in range(2):
        response = await client.post(f"/api/listings/{listing['id']}/view", headers=headers)
        assert response.status_code == 200

    response = await client.post(f"/api/listings/{listing['id']}/view", headers=headers)
    assert response.status_code == 429
    assert response.json() == {"error": "Too many requests"}
    assert 1 <= int(response.headers["retry-after"]) <= 60
    assert response.headers["x-ratelimit-limit"] == "2"
    assert response.headers["x-ratelimit-remaining"] == "0"

    # Other callers have their own window
    response = await client.post(f"/api/listings/{listing['id']}/view", headers={"X-Real-IP": "198.51.100.7"})
    assert response.status_code == 200

@pytest.mark.asyncio
async def test_limit_applies_across_endpoints(client, monkeypatch):
    """Test that one caller shares a window between limited endpoints."""
    monkeypatch.setattr(api.system, "limiter", RateLimiter(60, 1))

    response = await client.post("/api/user/follow", json={"userIdToFollow": SELLER_ID}, headers=bearer(BUYER_TOKEN))
    assert response.status_code == 200

    response = await client.post("/api/user/unfollow", json={"userIdToUnfollow": SELLER_ID}, headers=bearer(BUYER_TOKEN))
    assert response.status_code == 429

@pytest.mark.asyncio
async def test_unhandled_platform_error(client, backend):
    """Test that unhandled query failures render as database errors."""
    backend.fail("followers")

    response = await client.post("/api/user/follow", json={"userIdToFollow": SELLER_ID}, headers=bearer(BUYER_TOKEN))
    assert response.status_code == 500
    assert response.json() == {"error": "Database error"}

@pytest.mark.asyncio
async def test_unknown_route(client):
    """Test that unknown routes use the error body."""
    response = await client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"error": "Not Found"}
