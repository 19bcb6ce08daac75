"""Scheduled job endpoints, called by the deployment's cron runner."""

import hmac
import logging
from fastapi import APIRouter, HTTPException, Request, status

from listings import ListingManager
from rpc import RPCError
from config import settings_conf

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/cron",
    tags=["Cron"]
)

def is_cron_request(request: Request) -> bool:
    """Whether the request carries the configured cron secret as a bearer token."""
    secret = settings_conf.get('cron_secret')
    if not secret:
        return False
    header = request.headers.get("authorization") or ""
    return hmac.compare_digest(header.encode(), f"Bearer {secret}".encode())

@router.get("/expire-listings")
async def expire_listings(request: Request):
    """Run the listing expiry sweep."""
    if not is_cron_request(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )

    try:
        await ListingManager().expire_listings()
    except RPCError as e:
        logger.error(f"Error handling expired listings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error"
        )

    return {
        "success": True,
        "message": "Expired listings processed successfully",
    }
