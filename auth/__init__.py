"""Authentication module backed by the hosted platform's auth service.

This module provides:
1. Session resolution from bearer tokens or session cookies
2. OAuth code exchange and session synchronisation
3. Dependencies for protecting routes (authenticated and admin-only)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any
from fastapi import Request, Response, HTTPException, status, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from postgrest.exceptions import APIError
from supabase_auth.errors import AuthError as PlatformAuthError

import database
from config import is_production

# Configure logging
logger = logging.getLogger(__name__)

# Constants
ACCESS_TOKEN_COOKIE = "sb-access-token"
REFRESH_TOKEN_COOKIE = "sb-refresh-token"
CODE_VERIFIER_COOKIE = "sb-code-verifier"
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 7
ADMIN_ROLE = "admin"

class AuthError(Exception):
    """Base exception for authentication errors."""
    pass

class SessionMissingError(AuthError):
    """Raised when a request carries no usable session tokens."""
    pass

class InvalidSessionError(AuthError):
    """Raised when the platform rejects the session tokens."""
    pass

class CodeExchangeError(AuthError):
    """Raised when an OAuth authorization code cannot be exchanged."""
    pass

@dataclass
class Session:
    """Per-request platform client and the user bound to it (if any)."""
    client: Any
    user: Optional[Any] = None
    access_token: Optional[str] = None

    @property
    def user_id(self) -> Optional[str]:
        return self.user.id if self.user else None

class AuthManager:
    """Manages sessions against the platform auth service."""

    async def resolve_user(
        self,
        client,
        access_token: str,
        refresh_token: Optional[str] = None
    ) -> Optional[Any]:
        """Bind a session to the client and return its user.

        Args:
            client: Fresh per-request platform client
            access_token: The caller's access token
            refresh_token: Optional refresh token; when given the full session is
                restored so that session-bound calls (e.g. MFA) work

        Returns:
            The authenticated user, or None if the tokens were rejected
        """
        try:
            if refresh_token:
                response = await client.auth.set_session(access_token, refresh_token)
            else:
                response = await client.auth.get_user(access_token)
                client.postgrest.auth(access_token)
            return response.user if response else None
        except PlatformAuthError as e:
            logger.warning(f"Rejected session token: {e}")
            return None

    async def set_session(self, client, access_token: str, refresh_token: str) -> Any:
        """Restore a client-side session on the server.

        Raises:
            SessionMissingError: If either token is missing
            InvalidSessionError: If the platform rejects the tokens
        """
        if not access_token or not refresh_token:
            raise SessionMissingError("Missing required session tokens")

        try:
            response = await client.auth.set_session(access_token, refresh_token)
        except PlatformAuthError as e:
            logger.error(f"Error setting session: {e}")
            raise InvalidSessionError(f"Failed to set session: {str(e)}")

        if not response or not response.session:
            raise InvalidSessionError("Failed to set session")
        return response.session

    async def exchange_code(self, client, code: str, code_verifier: Optional[str] = None) -> Any:
        """Exchange an OAuth authorization code for a session.

        Raises:
            CodeExchangeError: If the exchange fails
        """
        params: Dict[str, Any] = {"auth_code": code}
        if code_verifier:
            params["code_verifier"] = code_verifier

        try:
            response = await client.auth.exchange_code_for_session(params)
        except PlatformAuthError as e:
            logger.error(f"Error exchanging auth code: {e}")
            raise CodeExchangeError(str(e))

        if not response or not response.session:
            raise CodeExchangeError("No session returned for auth code")
        return response.session

    async def get_role(self, client, user_id: str) -> Optional[str]:
        """Look up the role stored on the user's profile."""
        try:
            response = await (
                client.table("profiles")
                .select("role")
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except APIError as e:
            logger.error(f"Error fetching role for {user_id}: {e}")
            return None

        rows = response.data or []
        return rows[0].get("role") if rows else None

def set_session_cookies(response: Response, session: Any) -> None:
    """Store the session tokens as httpOnly cookies."""
    for name, value in (
        (ACCESS_TOKEN_COOKIE, session.access_token),
        (REFRESH_TOKEN_COOKIE, session.refresh_token),
    ):
        response.set_cookie(
            name,
            value,
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            secure=is_production(),
            samesite="lax",
            path="/",
        )

# Create global instance
manager = AuthManager()

# FastAPI security scheme; cookies are accepted too, so a missing header is not an error here
auth_scheme = HTTPBearer(
    auto_error=False,
    description="Platform access token (or sb-access-token cookie)"
)

async def get_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(auth_scheme)
) -> Session:
    """FastAPI dependency returning the request's platform session.

    The session may be anonymous; use get_current_user to require a user.
    """
    access_token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    refresh_token = request.cookies.get(REFRESH_TOKEN_COOKIE)

    client = await database.create_session_client()
    session = Session(client=client, access_token=access_token)

    if access_token:
        session.user = await manager.resolve_user(client, access_token, refresh_token)

    return session

async def get_current_user(session: Session = Depends(get_session)) -> Session:
    """FastAPI dependency requiring an authenticated user.

    Raises:
        HTTPException: 401 if the request is not authenticated
    """
    if not session.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )
    return session

async def require_admin(session: Session = Depends(get_current_user)) -> Session:
    """FastAPI dependency requiring an admin profile.

    Raises:
        HTTPException: 403 unless the user's profile role is admin
    """
    role = await manager.get_role(session.client, session.user_id)
    if role != ADMIN_ROLE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden"
        )
    return session

# Export public interface
__all__ = [
    'manager',
    'Session',
    'get_session',
    'get_current_user',
    'require_admin',
    'set_session_cookies',
    'AuthError',
    'SessionMissingError',
    'InvalidSessionError',
    'CodeExchangeError',
    'ACCESS_TOKEN_COOKIE',
    'REFRESH_TOKEN_COOKIE',
    'CODE_VERIFIER_COOKIE',
]
