"""Notification API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Query, status, Depends
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field
from postgrest.exceptions import APIError

from notifications import (
    NotificationManager, NotificationError, NotificationNotFoundError,
    NOTIFICATION_TYPES, DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
)
from auth import Session, get_current_user
from api.system import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/notifications",
    tags=["Notifications"]
)

class CreateNotificationRequest(BaseModel):
    """Request model for creating a notification for the caller."""
    type: Literal[NOTIFICATION_TYPES]
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1, max_length=1000)
    data: Dict[str, Any] = {}

@router.get("")
async def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    notification_type: Optional[str] = Query(None, alias="type"),
    unread: bool = False,
    session: Session = Depends(get_current_user)
):
    """Get a page of the caller's notifications, newest first."""
    try:
        return await NotificationManager(session.client).list_notifications(
            session.user_id, page=page, limit=limit, notification_type=notification_type, unread_only=unread
        )
    except APIError as e:
        logger.error(f"Error fetching notifications: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch notifications"
        )

@router.post("", dependencies=[Depends(rate_limit)])
async def create_notification(
    request: CreateNotificationRequest,
    session: Session = Depends(get_current_user)
):
    """Create a notification addressed to the caller."""
    try:
        notification_id = await NotificationManager(session.client).create_notification(
            session.user_id, request.type, request.title, request.message, request.data
        )
    except NotificationError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    return {"success": True, "notificationId": notification_id}

@router.post("/read-all")
async def mark_all_read(session: Session = Depends(get_current_user)):
    """Mark every unread notification of the caller as read."""
    updated = await NotificationManager(session.client).mark_all_read(session.user_id)
    return {"success": True, "updated": updated}

@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, session: Session = Depends(get_current_user)):
    """Mark one of the caller's notifications as read."""
    try:
        await NotificationManager(session.client).mark_read(notification_id, session.user_id)
    except NotificationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )
    return {"success": True}
