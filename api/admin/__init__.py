"""Admin moderation API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Request, Query, status, Depends
from typing import Optional
from pydantic import BaseModel

import audit
from listings import ListingManager, ListingNotFoundError, InvalidStatusError
from profiles import ProfileManager
from auth import Session, require_admin
from api.system import get_client_identifier

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"]
)

class StatusRequest(BaseModel):
    """Request model for moderating a listing."""
    status: str

@router.get("/users/search")
async def search_users(
    query: Optional[str] = None,
    session: Session = Depends(require_admin)
):
    """Search users by username, email or full name."""
    return await ProfileManager(session.client).search_users(query)

@router.post("/listings/{listing_id}/status")
async def moderate_listing(
    listing_id: str,
    body: StatusRequest,
    request: Request,
    session: Session = Depends(require_admin)
):
    """Move a listing to a new moderation status."""
    try:
        result = await ListingManager(session.client).update_status(listing_id, body.status)
    except InvalidStatusError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except ListingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found"
        )

    await audit.log_event(
        session.client,
        action="listing.status_changed",
        resource_type="listing",
        user_id=session.user_id,
        resource_id=listing_id,
        old_values={"status": result["old_status"]},
        new_values={"status": result["status"]},
        ip_address=get_client_identifier(request),
        user_agent=request.headers.get("user-agent"),
    )
    logger.info(f"Listing {listing_id} moved to {result['status']} by {session.user_id}")
    return {"success": True, **result}

@router.get("/logs")
async def audit_logs(
    limit: int = Query(50, ge=1, le=500),
    resource_type: Optional[str] = None,
    session: Session = Depends(require_admin)
):
    """Get the most recent audit entries."""
    return await audit.get_events(session.client, limit=limit, resource_type=resource_type)
