"""Tests for the platform client lifecycle and remote procedures."""

import httpx
import pytest
import pytest_asyncio

import database
from config import settings_conf
from postgrest.exceptions import APIError
from rpc import PlatformRPC, RPCError, ProcedureNotFoundError, PlatformError
from fake_platform import FakeBackend

@pytest_asyncio.fixture
async def fake():
    backend = FakeBackend()
    yield backend
    await database.close()

@pytest.mark.asyncio
async def test_init_requires_url_and_key(fake, monkeypatch):
    """Test that initialisation fails without credentials."""
    monkeypatch.setitem(settings_conf, 'supabase_url', '')
    monkeypatch.setitem(settings_conf, 'supabase_anon_key', '')

    with pytest.raises(ValueError):
        await database.init_db(client_factory=fake.factory)

    with pytest.raises(ValueError):
        await database.init_db("https://project.supabase.co", client_factory=fake.factory)

@pytest.mark.asyncio
async def test_clients(fake):
    """Test shared, service-role and per-request clients."""
    await database.init_db("https://project.supabase.co", "anon", "service", client_factory=fake.factory)

    shared = await database.get_client()
    assert shared.key == "anon"
    assert await database.get_client() is shared

    service = await database.get_service_client()
    assert service.key == "service"

    per_request = await database.create_session_client()
    assert per_request.key == "anon"
    assert per_request is not shared

@pytest.mark.asyncio
async def test_clients_share_connection_pool(fake):
    """Test that every client uses one HTTP pool which close() shuts down."""
    await database.init_db("https://project.supabase.co", "anon", "service", client_factory=fake.factory)
    shared = await database.get_client()
    service = await database.get_service_client()
    first = await database.create_session_client()
    second = await database.create_session_client()

    pool = shared.options.httpx_client
    assert isinstance(pool, httpx.AsyncClient)
    assert all(c.options.httpx_client is pool for c in (service, first, second))
    assert shared.options.persist_session is False
    assert shared.options.auto_refresh_token is False

    await database.close()
    assert pool.is_closed

    await database.init_db("https://project.supabase.co", "anon", client_factory=fake.factory)
    reopened = (await database.get_client()).options.httpx_client
    assert reopened is not pool
    assert not reopened.is_closed

@pytest.mark.asyncio
async def test_service_client_requires_key(fake, monkeypatch):
    """Test that privileged access needs a service role key."""
    monkeypatch.setitem(settings_conf, 'supabase_service_role_key', '')
    await database.init_db("https://project.supabase.co", "anon", client_factory=fake.factory)

    with pytest.raises(RuntimeError):
        await database.get_service_client()

@pytest.mark.asyncio
async def test_rpc_returns_data(fake):
    """Test calling a remote procedure."""
    fake.procedures["handle_expired_listings"] = lambda params: {"expired": 3}
    client = await fake.factory("https://project.supabase.co", "anon")

    assert await PlatformRPC(client).handle_expired_listings() == {"expired": 3}
    assert fake.rpc_calls == [("handle_expired_listings", {})]

@pytest.mark.asyncio
async def test_rpc_missing_procedure(fake):
    """Test that an unknown procedure maps to ProcedureNotFoundError."""
    del fake.procedures["increment_listing_views"]
    client = await fake.factory("https://project.supabase.co", "anon")

    with pytest.raises(ProcedureNotFoundError) as exc:
        await PlatformRPC(client).increment_listing_views(listing_uuid="x")
    assert exc.value.code == "PGRST202"
    assert exc.value.method == "increment_listing_views"

@pytest.mark.asyncio
async def test_rpc_platform_error(fake):
    """Test that procedure failures keep the platform error code."""
    def fail(params):
        raise APIError({"message": "permission denied", "code": "42501", "hint": None, "details": None})

    fake.procedures["handle_expired_listings"] = fail
    client = await fake.factory("https://project.supabase.co", "anon")

    with pytest.raises(PlatformError) as exc:
        await PlatformRPC(client).handle_expired_listings()
    assert isinstance(exc.value, RPCError)
    assert exc.value.code == "42501"
    assert "Insufficient privilege" in str(exc.value)
