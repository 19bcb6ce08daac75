"""Database module for managing clients of the hosted Postgres platform.

This module handles:
- Shared anonymous and service-role client initialization
- Per-request clients that get bound to the caller's session
- One HTTP connection pool shared by every client
- Client lifecycle
"""

import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Awaitable[Any]]

_client: Optional[AsyncClient] = None
_service_client: Optional[AsyncClient] = None
_client_factory: ClientFactory = acreate_client
_url: Optional[str] = None
_anon_key: Optional[str] = None
_http_client: Optional[httpx.AsyncClient] = None

HTTP_TIMEOUT_SECONDS = 20.0

def _server_options() -> AsyncClientOptions:
    """Client options for server-side use.

    Sessions belong to the request that carried them, so nothing is persisted
    and no background refresh timers are started. Every client sends its
    requests through the shared connection pool.
    """
    return AsyncClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        httpx_client=_http_client,
    )

async def init_db(
    url: Optional[str] = None,
    anon_key: Optional[str] = None,
    service_role_key: Optional[str] = None,
    client_factory: Optional[ClientFactory] = None
) -> None:
    """Initialize the shared platform clients.

    Args:
        url: Optional project URL. If not provided, will use settings.
        anon_key: Optional public (anon) key. If not provided, will use settings.
        service_role_key: Optional service-role key for privileged jobs.
        client_factory: Optional coroutine creating clients, defaults to acreate_client

    Raises:
        ValueError: If the project URL or anon key is not provided
    """
    global _client, _service_client, _client_factory, _url, _anon_key, _http_client

    try:
        # Import here to avoid circular imports
        from config import settings_conf

        url = url or settings_conf.get('supabase_url')
        anon_key = anon_key or settings_conf.get('supabase_anon_key')
        service_role_key = service_role_key or settings_conf.get('supabase_service_role_key')

        if not url:
            raise ValueError("Platform URL not provided")
        if not anon_key:
            raise ValueError("Platform anon key not provided")

        if client_factory is not None:
            _client_factory = client_factory

        _url = url
        _anon_key = anon_key
        if _http_client is None or _http_client.is_closed:
            _http_client = httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)
        _client = await _client_factory(url, anon_key, options=_server_options())

        if service_role_key:
            _service_client = await _client_factory(url, service_role_key, options=_server_options())
        else:
            _service_client = None
            logger.warning("No service role key configured; privileged jobs are disabled")

        logger.info(f"Platform clients initialized for {url}")

    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

async def get_client() -> AsyncClient:
    """Get the shared anonymous client.

    Raises:
        RuntimeError: If the client hasn't been initialized
    """
    if not _client:
        await init_db()
    if not _client:
        raise RuntimeError("Failed to initialize platform client")
    return _client

async def get_service_client() -> AsyncClient:
    """Get the service-role client used by scheduled and admin jobs.

    Raises:
        RuntimeError: If no service role key is configured
    """
    if not _client:
        await init_db()
    if not _service_client:
        raise RuntimeError("Service role client is not configured")
    return _service_client

async def create_session_client() -> AsyncClient:
    """Create a fresh anonymous client for a single request.

    The caller binds it to the request's session (see auth.AuthManager), so
    row-level security applies to that user only.
    """
    if not _client:
        await init_db()
    return await _client_factory(_url, _anon_key, options=_server_options())

async def close() -> None:
    """Drop the shared clients and close the connection pool."""
    global _client, _service_client, _client_factory, _http_client

    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None
    _client = None
    _service_client = None
    _client_factory = acreate_client

# Export public interface
__all__ = ['init_db', 'get_client', 'get_service_client', 'create_session_client', 'close']
