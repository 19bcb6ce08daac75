"""Tests for session handling and the OAuth callback."""

import pytest

from auth import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE
from api.auth import safe_next_path
from conftest import BUYER_ID, BUYER_TOKEN, BUYER_REFRESH, ADMIN_TOKEN, bearer

@pytest.mark.asyncio
async def test_bearer_token(client):
    """Test authenticating with an Authorization header."""
    response = await client.get("/api/auth/session", headers=bearer(BUYER_TOKEN))
    assert response.status_code == 200
    assert response.json() == {"id": BUYER_ID, "email": "buyer@example.com"}

@pytest.mark.asyncio
async def test_session_cookies(client):
    """Test authenticating with session cookies."""
    client.cookies.set(ACCESS_TOKEN_COOKIE, BUYER_TOKEN)
    client.cookies.set(REFRESH_TOKEN_COOKIE, BUYER_REFRESH)

    response = await client.get("/api/auth/session")
    assert response.status_code == 200
    assert response.json()["id"] == BUYER_ID

@pytest.mark.asyncio
async def test_missing_or_invalid_token(client):
    """Test that protected routes reject anonymous callers."""
    response = await client.get("/api/auth/session")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}

    response = await client.get("/api/auth/session", headers=bearer("forged"))
    assert response.status_code == 401

@pytest.mark.asyncio
async def test_admin_only(client):
    """Test that admin routes require the admin role."""
    response = await client.get("/api/admin/logs", headers=bearer(BUYER_TOKEN))
    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden"}

    response = await client.get("/api/admin/logs", headers=bearer(ADMIN_TOKEN))
    assert response.status_code == 200

@pytest.mark.asyncio
async def test_sync_session(client):
    """Test storing a client-side session as cookies."""
    response = await client.post("/auth/callback", json={
        "access_token": BUYER_TOKEN,
        "refresh_token": BUYER_REFRESH,
    })
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert response.cookies[ACCESS_TOKEN_COOKIE] == BUYER_TOKEN
    assert response.cookies[REFRESH_TOKEN_COOKIE] == BUYER_REFRESH

@pytest.mark.asyncio
async def test_sync_session_missing_tokens(client):
    """Test that both tokens are required."""
    response = await client.post("/auth/callback", json={"access_token": BUYER_TOKEN})
    assert response.status_code == 400
    assert response.json() == {"error": "Missing required session tokens"}

@pytest.mark.asyncio
async def test_sync_session_rejected(client):
    """Test that tokens rejected by the platform fail with 500."""
    response = await client.post("/auth/callback", json={
        "access_token": BUYER_TOKEN,
        "refresh_token": "stolen",
    })
    assert response.status_code == 500
    assert response.json() == {"error": "Failed to set session"}

@pytest.mark.asyncio
async def test_oauth_callback(client, backend):
    """Test exchanging an OAuth code and redirecting to the next page."""
    backend.auth_codes["good-code"] = backend.tokens[BUYER_TOKEN]

    response = await client.get("/auth/callback", params={"code": "good-code", "next": "/dashboard"})

    assert response.status_code == 307
    assert response.headers["location"] == "http://testserver/dashboard"
    assert response.cookies[ACCESS_TOKEN_COOKIE] == f"oauth-{BUYER_ID}"

@pytest.mark.asyncio
async def test_oauth_callback_failures(client):
    """Test that a missing or bad code redirects to the error page."""
    response = await client.get("/auth/callback")
    assert response.status_code == 307
    assert response.headers["location"] == "http://testserver/auth/auth-error"

    response = await client.get("/auth/callback", params={"code": "unknown"})
    assert response.headers["location"] == "http://testserver/auth/auth-error"

@pytest.mark.parametrize("next_path,expected", [
    (None, "/"),
    ("/listings/1", "/listings/1"),
    ("https://evil.example.com", "/"),
    ("//evil.example.com", "/"),
    ("/\\evil.example.com", "/"),
])
def test_safe_next_path(next_path, expected):
    """Test that redirects stay on this site."""
    assert safe_next_path(next_path) == expected
