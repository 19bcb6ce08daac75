"""Listings API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Query, status, Depends
from typing import Optional, List
from pydantic import BaseModel, Field

from listings import (
    ListingManager, ListingError, ListingNotFoundError, APIError,
    DEFAULT_PAGE_SIZE, DEFAULT_NEARBY_RADIUS_KM
)
from listings.reviews import ReviewManager, InvalidReviewError
from auth import Session, get_session, get_current_user
from rpc import RPCError
from api.system import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/listings",
    tags=["Listings"]
)

# Model definitions
class UserLocation(BaseModel):
    """Model for the searcher's position."""
    lat: float
    lon: float

class PriceRange(BaseModel):
    """Model for a price filter; 0 means unbounded."""
    min: float = 0
    max: float = 0

class SearchFilters(BaseModel):
    """Model for search filters."""
    categories: List[int] = []
    subcategories: List[int] = []
    conditions: List[str] = []
    priceRange: PriceRange = PriceRange()
    maxDistance: float = 25
    searchQuery: Optional[str] = None

class SearchRequest(BaseModel):
    """Request model for searching listings."""
    page: int = Field(1, ge=1)
    pageSize: int = Field(DEFAULT_PAGE_SIZE, ge=1)
    sortBy: str = "newest"
    userLocation: Optional[UserLocation] = None
    filters: SearchFilters = SearchFilters()

class ReviewRequest(BaseModel):
    """Request model for reviewing a listing."""
    rating: Optional[int] = None
    comment: Optional[str] = None

@router.post("/search")
async def search(request: SearchRequest, session: Session = Depends(get_session)):
    """Search listings with filters, sorting and pagination."""
    filters = request.filters
    try:
        manager = ListingManager(session.client)
        return await manager.search_listings(
            page=request.page,
            page_size=request.pageSize,
            sort_by=request.sortBy,
            user_location=request.userLocation.model_dump() if request.userLocation else None,
            categories=filters.categories,
            subcategories=filters.subcategories,
            conditions=filters.conditions,
            min_price=filters.priceRange.min,
            max_price=filters.priceRange.max,
            max_distance=filters.maxDistance,
            search_query=filters.searchQuery
        )
    except ListingError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

@router.get("/nearby")
async def nearby(
    lat: float = Query(..., ge=-90, le=90, allow_inf_nan=False),
    lng: float = Query(..., ge=-180, le=180, allow_inf_nan=False),
    radius: float = Query(DEFAULT_NEARBY_RADIUS_KM, gt=0, allow_inf_nan=False),
    session: Session = Depends(get_session)
):
    """Get active listings within radius kilometres of a point, nearest first."""
    try:
        return {"listings": await ListingManager(session.client).get_nearby(lat, lng, radius)}
    except APIError as e:
        logger.error(f"Error fetching nearby listings: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch listings"
        )

@router.post("/{listing_id}/view", dependencies=[Depends(rate_limit)])
async def record_view(listing_id: str, session: Session = Depends(get_session)):
    """Count a view of a listing."""
    try:
        views = await ListingManager(session.client).increment_views(listing_id)
        return {"success": True, "views": views}
    except ListingNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Listing not found"
        )
    except RPCError as e:
        logger.error(f"Error incrementing views for {listing_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database Error"
        )

@router.get("/{listing_id}/reviews")
async def list_reviews(listing_id: str, session: Session = Depends(get_session)):
    """Get reviews of a listing, newest first."""
    return await ReviewManager(session.client).get_listing_reviews(listing_id)

@router.post("/{listing_id}/reviews", status_code=status.HTTP_201_CREATED)
async def create_review(
    listing_id: str,
    request: ReviewRequest,
    session: Session = Depends(get_current_user)
):
    """Review a listing."""
    try:
        return await ReviewManager(session.client).create_listing_review(
            listing_id, session.user_id, request.rating, request.comment
        )
    except InvalidReviewError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
