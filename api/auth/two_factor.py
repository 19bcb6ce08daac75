"""Two-factor authentication endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Request, status, Depends
from fastapi.responses import JSONResponse
from typing import Any, Optional
from pydantic import BaseModel

from auth import Session, get_session, get_current_user, set_session_cookies
from auth.mfa import (
    TwoFactorManager, Enrollment, TwoFactorError, FactorNotFoundError,
    VerificationError, FACTOR_COOKIE, IN_PROGRESS_COOKIE
)
from config import is_production

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Two-Factor Authentication"])

class TwoFactorActionRequest(BaseModel):
    """Request model for managing 2FA; token is used by verify, code by disable."""
    action: Optional[str] = None
    token: Optional[str] = None
    code: Optional[str] = None

def _enrollment_response(enrollment: Enrollment) -> JSONResponse:
    response = JSONResponse({"qrCode": enrollment.qr_code, "secret": enrollment.secret})
    response.set_cookie(
        FACTOR_COOKIE,
        enrollment.factor_id,
        httponly=True,
        secure=is_production(),
        samesite="strict",
        path="/",
    )
    return response

def _verification_failed(message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    response = JSONResponse({"error": message}, status_code=status_code)
    response.delete_cookie(IN_PROGRESS_COOKIE, path="/")
    return response

def _dump(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value

@router.post("/2fa/setup")
async def setup(session: Session = Depends(get_current_user)):
    """Enroll a TOTP factor and return its QR code and secret."""
    try:
        enrollment = await TwoFactorManager(session.client).enroll()
    except TwoFactorError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    return _enrollment_response(enrollment)

@router.get("/2fa/retrieve")
async def retrieve(session: Session = Depends(get_current_user)):
    """Issue a fresh QR code and secret while setup is unfinished."""
    try:
        enrollment = await TwoFactorManager(session.client).reissue()
    except FactorNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No unverified 2FA factor found."
        )
    except TwoFactorError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    return _enrollment_response(enrollment)

@router.post("/verify-2fa")
async def verify(request: Request, session: Session = Depends(get_session)):
    """Verify a one-time code against the factor remembered in the 2FA cookie.

    Every failure ends the 2FA attempt by clearing the in-progress cookie.
    """
    if not session.user:
        return _verification_failed("Unauthorized", status.HTTP_401_UNAUTHORIZED)

    factor_id = request.cookies.get(FACTOR_COOKIE)
    if not factor_id:
        return _verification_failed("2FA factor ID not found. Please try again.")

    try:
        body = await request.json()
    except ValueError:
        body = None
    code = body.get("code") if isinstance(body, dict) else None
    if code is None or code == "":
        return _verification_failed("Code is required")
    if not isinstance(code, str):
        return _verification_failed("Code must be a string")

    try:
        verified = await TwoFactorManager(session.client).verify_code(factor_id, code)
        response = JSONResponse({"success": True, "session": _dump(verified)})
        if getattr(verified, "access_token", None) and getattr(verified, "refresh_token", None):
            set_session_cookies(response, verified)
    except VerificationError as e:
        return _verification_failed(str(e))
    except Exception as e:
        logger.error(f"Unexpected error during 2FA verification: {e}")
        return _verification_failed("An unexpected error occurred", status.HTTP_500_INTERNAL_SERVER_ERROR)

    response.delete_cookie(FACTOR_COOKIE, path="/")
    response.delete_cookie(IN_PROGRESS_COOKIE, path="/")
    return response

@router.post("/2fa")
async def manage(body: TwoFactorActionRequest, session: Session = Depends(get_current_user)):
    """Enable, confirm or disable 2FA for the current user."""
    mfa = TwoFactorManager(session.client)
    try:
        if body.action == "enable":
            enrollment = await mfa.enable()
            return {
                "success": True,
                "message": "Scan QR code to enable 2FA.",
                "qrCode": enrollment.qr_code,
            }
        if body.action == "verify":
            await mfa.confirm(body.token)
            return {"success": True, "message": "2FA enabled successfully."}
        if body.action == "disable":
            await mfa.disable(body.code)
            return {"success": True, "message": "2FA disabled successfully."}
    except (FactorNotFoundError, VerificationError) as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except TwoFactorError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Invalid action"
    )
