"""Category API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, Response, status, Depends
from typing import Optional

from listings import get_categories, get_subcategories, APIError
from auth import Session, get_session

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Categories"]
)

CATEGORIES_CACHE_CONTROL = "public, s-maxage=3600, stale-while-revalidate=59"

@router.get("/categories")
async def list_categories(response: Response, session: Session = Depends(get_session)):
    """Get all categories ordered by name."""
    try:
        categories = await get_categories(session.client)
    except APIError as e:
        logger.error(f"Error fetching categories: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch categories"
        )
    response.headers["Cache-Control"] = CATEGORIES_CACHE_CONTROL
    return categories

@router.get("/subcategories")
async def list_subcategories(
    category_id: Optional[str] = None,
    session: Session = Depends(get_session)
):
    """Get subcategories, optionally of one category."""
    parent_id = None
    if category_id:
        try:
            parent_id = int(category_id)
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="category_id must be an integer"
            )

    try:
        return await get_subcategories(parent_id, session.client)
    except APIError as e:
        logger.error(f"Error fetching subcategories: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch subcategories"
        )
