"""Authentication API endpoints."""

from fastapi import APIRouter, HTTPException, Request, status, Depends
from fastapi.responses import RedirectResponse, JSONResponse
from typing import Optional
from pydantic import BaseModel

import database
from auth import (
    manager, get_current_user, set_session_cookies, Session,
    SessionMissingError, InvalidSessionError, CodeExchangeError,
    CODE_VERIFIER_COOKIE
)
from api.system import rate_limit

# OAuth callback lives outside /api so the provider redirect URL stays short
callback_router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"]
)

# Import two-factor endpoints
from .two_factor import router as two_factor_router

router.include_router(two_factor_router)

AUTH_ERROR_PATH = "/auth/auth-error"

class SessionTokens(BaseModel):
    """Request model for syncing a client-side session."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

def safe_next_path(next_path: Optional[str]) -> str:
    """Only allow relative redirect targets."""
    if not next_path or not next_path.startswith("/") or next_path.startswith("//") or "\\" in next_path:
        return "/"
    return next_path

@callback_router.get("/callback")
async def oauth_callback(
    request: Request,
    code: Optional[str] = None,
    next: Optional[str] = None
):
    """Exchange an OAuth code for a session and redirect back into the app."""
    origin = str(request.base_url).rstrip("/")

    if code:
        client = await database.create_session_client()
        try:
            session = await manager.exchange_code(
                client, code, request.cookies.get(CODE_VERIFIER_COOKIE)
            )
        except CodeExchangeError:
            return RedirectResponse(f"{origin}{AUTH_ERROR_PATH}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

        response = RedirectResponse(f"{origin}{safe_next_path(next)}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
        set_session_cookies(response, session)
        response.delete_cookie(CODE_VERIFIER_COOKIE, path="/")
        return response

    return RedirectResponse(f"{origin}{AUTH_ERROR_PATH}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)

@callback_router.post("/callback", dependencies=[Depends(rate_limit)])
async def sync_session(tokens: SessionTokens):
    """Set the session created on the client as server-side cookies."""
    try:
        client = await database.create_session_client()
        session = await manager.set_session(client, tokens.access_token, tokens.refresh_token)
    except SessionMissingError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except InvalidSessionError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to set session"
        )

    response = JSONResponse({"success": True})
    set_session_cookies(response, session)
    return response

@router.get("/session")
async def current_session(session: Session = Depends(get_current_user)):
    """Get the authenticated user."""
    return {
        "id": session.user.id,
        "email": getattr(session.user, "email", None),
    }
