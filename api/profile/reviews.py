"""Seller review endpoints."""

from fastapi import APIRouter, HTTPException, status, Depends
from typing import Optional
from pydantic import BaseModel

from listings.reviews import (
    ReviewManager, ReviewNotFoundError, InvalidReviewError, ReviewPermissionError
)
from auth import Session, get_session, get_current_user
from api.system import rate_limit

router = APIRouter(
    prefix="/profile/reviews",
    tags=["Reviews"]
)

class CreateReviewRequest(BaseModel):
    """Request model for reviewing a seller."""
    userId: Optional[str] = None
    reviewContent: Optional[str] = None
    rating: Optional[int] = None
    sellerId: Optional[str] = None

class UpdateReviewRequest(BaseModel):
    """Request model for editing a review."""
    reviewContent: Optional[str] = None
    userId: Optional[str] = None

def _require(value: Optional[str], message: str) -> str:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )
    return value

@router.get("")
async def review_count(userId: Optional[str] = None, session: Session = Depends(get_session)):
    """Get the number of reviews a seller received."""
    _require(userId, "User ID is required")
    count = await ReviewManager(session.client).get_review_count(userId)
    return {
        "message": "Review count fetched successfully.",
        "data": {"reviewsCount": count},
    }

@router.get("/list")
async def review_list(userId: Optional[str] = None, session: Session = Depends(get_session)):
    """Get the reviews a seller received."""
    _require(userId, "User ID is required")
    reviews = await ReviewManager(session.client).get_seller_reviews(userId)
    return {
        "message": "Reviews fetched successfully.",
        "data": {"reviews": reviews},
    }

@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(rate_limit)])
async def create_review(request: CreateReviewRequest, session: Session = Depends(get_session)):
    """Review a seller."""
    try:
        review = await ReviewManager(session.client).create_review(
            request.userId, request.sellerId, request.reviewContent, request.rating
        )
    except InvalidReviewError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    return {
        "message": "Review created successfully.",
        "data": {"reviewId": review.get("id"), "insertedReview": review or None},
    }

@router.put("")
async def update_review(
    request: UpdateReviewRequest,
    reviewId: Optional[str] = None,
    session: Session = Depends(get_current_user)
):
    """Edit the text of one of the caller's reviews."""
    if not reviewId or not request.reviewContent or not request.userId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Review ID, review content, and User ID are required."
        )

    try:
        review = await ReviewManager(session.client).update_review(
            reviewId, session.user_id, request.reviewContent
        )
    except ReviewNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReviewPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except InvalidReviewError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {
        "message": "Review updated successfully.",
        "data": {"updatedReview": review or None},
    }

@router.delete("")
async def delete_review(
    reviewId: Optional[str] = None,
    userId: Optional[str] = None,
    session: Session = Depends(get_current_user)
):
    """Delete one of the caller's reviews."""
    if not reviewId or not userId:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Review ID and User ID are required."
        )

    try:
        await ReviewManager(session.client).delete_review(reviewId, session.user_id)
    except ReviewNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ReviewPermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return {"message": "Review deleted successfully."}
