"""User profile, social graph and account endpoints."""

import logging
from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional
from pydantic import BaseModel

from profiles import (
    ProfileManager, ProfileNotFoundError, InvalidFollowError,
    InvalidAvatarError, validate_avatar_url
)
from listings import ListingManager
from auth import Session, get_session, get_current_user
from api.system import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Profile"]
)

# Reviews must be registered before /profile/{seller_id}
from .reviews import router as reviews_router

router.include_router(reviews_router)

# Model definitions
class FollowRequest(BaseModel):
    """Request model for following a user."""
    userIdToFollow: str

class UnfollowRequest(BaseModel):
    """Request model for unfollowing a user."""
    userIdToUnfollow: str

class LikeRequest(BaseModel):
    """Request model for liking a listing."""
    listingId: str

class AvatarRequest(BaseModel):
    """Request model for changing the avatar."""
    userId: Optional[str] = None
    avatarUrl: Optional[str] = None

@router.post("/user/follow", dependencies=[Depends(rate_limit)])
async def follow(request: FollowRequest, session: Session = Depends(get_current_user)):
    """Follow a user."""
    try:
        await ProfileManager(session.client).follow(session.user_id, request.userIdToFollow)
    except InvalidFollowError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {"success": True}

@router.post("/user/unfollow", dependencies=[Depends(rate_limit)])
async def unfollow(request: UnfollowRequest, session: Session = Depends(get_current_user)):
    """Stop following a user."""
    await ProfileManager(session.client).unfollow(session.user_id, request.userIdToUnfollow)
    return {"success": True}

@router.post("/user/like", dependencies=[Depends(rate_limit)])
async def like(request: LikeRequest, session: Session = Depends(get_current_user)):
    """Like a listing, or remove an existing like."""
    liked = await ListingManager(session.client).toggle_like(session.user_id, request.listingId)
    return {"success": True, "liked": liked}

@router.get("/profile/{seller_id}")
async def seller_profile(seller_id: str, session: Session = Depends(get_session)):
    """Get a seller's public profile."""
    try:
        return await ProfileManager(session.client).get_seller_profile(seller_id)
    except ProfileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found"
        )

@router.put("/account/avatar")
async def update_avatar(request: AvatarRequest, session: Session = Depends(get_current_user)):
    """Change the caller's avatar."""
    try:
        if request.avatarUrl:
            validate_avatar_url(request.avatarUrl)
    except InvalidAvatarError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if not request.userId or not request.avatarUrl:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User ID and avatar URL are required"
        )

    if request.userId != session.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden. You can only update your own avatar."
        )

    await ProfileManager(session.client).update_avatar(session.user_id, request.avatarUrl)
    return {"message": "Avatar URL updated successfully"}
