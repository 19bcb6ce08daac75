"""Reviews of listings and of sellers.

Seller review counts and review lists are memoised in the in-process caches
from the cache package; every write invalidates the seller's entries.
"""

import logging
from typing import Any, Dict, List, Optional

from cache import review_count_cache, user_reviews_list_cache
from database import get_client
from . import ListingError

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5

class ReviewError(ListingError):
    """Base exception for review operations."""
    pass

class ReviewNotFoundError(ReviewError):
    """Raised when a review is not found."""
    pass

class InvalidReviewError(ReviewError):
    """Raised when review input is missing or out of range."""
    pass

class ReviewPermissionError(ReviewError):
    """Raised when a user changes a review they did not write."""
    pass

def invalidate_seller_caches(seller_id: Optional[str]) -> None:
    """Drop the cached count and list of a seller's reviews."""
    if not seller_id:
        return
    review_count_cache.delete(seller_id)
    user_reviews_list_cache.delete(seller_id)
    logger.debug(f"Review caches invalidated for seller {seller_id}")

class ReviewManager:
    """Manager class for listing and seller reviews."""

    def __init__(self, client=None):
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def get_listing_reviews(self, listing_id: str) -> List[Dict[str, Any]]:
        """Get reviews of a listing with reviewer name and avatar, newest first."""
        await self.ensure_client()

        response = await (
            self.client.table("reviews")
            .select("*, profiles(full_name, avatar_url)")
            .eq("listing_id", listing_id)
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def create_listing_review(
        self,
        listing_id: str,
        user_id: str,
        rating: Optional[int],
        comment: Optional[str]
    ) -> Dict[str, Any]:
        """Review a listing.

        Raises:
            InvalidReviewError: If rating or comment is missing
        """
        if not rating or not comment:
            raise InvalidReviewError("Rating and comment are required")

        await self.ensure_client()

        response = await self.client.table("reviews").insert({
            "listing_id": listing_id,
            "user_id": user_id,
            "rating": rating,
            "comment": comment,
        }).execute()
        return response.data[0] if response.data else {}

    async def get_review(self, review_id: str) -> Dict[str, Any]:
        """Get the author and subject of a review.

        Raises:
            ReviewNotFoundError: If review doesn't exist
        """
        await self.ensure_client()

        response = await (
            self.client.table("reviews")
            .select("id, reviewer_id, seller_id")
            .eq("id", review_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ReviewNotFoundError("Review not found")
        return response.data[0]

    async def get_review_count(self, seller_id: str) -> int:
        """Count the reviews a seller received, using the count cache."""
        cached = review_count_cache.get(seller_id)
        if cached is not None:
            logger.debug(f"Cache hit for user {seller_id} review count")
            return cached

        await self.ensure_client()

        response = await (
            self.client.table("reviews")
            .select("id", count="exact")
            .eq("seller_id", seller_id)
            .execute()
        )
        count = response.count or 0

        review_count_cache.set(seller_id, count)
        logger.debug(f"Cache miss for user {seller_id} review count")
        return count

    async def get_seller_reviews(self, seller_id: str) -> List[Dict[str, Any]]:
        """List the reviews a seller received, newest first, using the list cache."""
        cached = user_reviews_list_cache.get(seller_id)
        if cached is not None:
            logger.debug(f"Cache hit for user {seller_id} review list")
            return cached

        await self.ensure_client()

        response = await (
            self.client.table("reviews")
            .select("*, profiles(full_name, avatar_url)")
            .eq("seller_id", seller_id)
            .order("created_at", desc=True)
            .execute()
        )
        reviews = response.data or []

        user_reviews_list_cache.set(seller_id, reviews)
        return reviews

    async def create_review(
        self,
        reviewer_id: str,
        seller_id: str,
        content: str,
        rating: int
    ) -> Dict[str, Any]:
        """Review a seller.

        Raises:
            InvalidReviewError: If a field is missing or the rating is out of range
        """
        if not reviewer_id or not content or not rating or not seller_id:
            raise InvalidReviewError("User ID, review content, rating, and seller ID are required.")
        if rating < MIN_RATING or rating > MAX_RATING:
            raise InvalidReviewError(f"Rating must be between {MIN_RATING} and {MAX_RATING}.")

        await self.ensure_client()

        response = await self.client.table("reviews").insert({
            "reviewer_id": reviewer_id,
            "seller_id": seller_id,
            "comment": content,
            "rating": rating,
        }).execute()

        invalidate_seller_caches(seller_id)
        return response.data[0] if response.data else {}

    async def update_review(self, review_id: str, user_id: str, content: str) -> Dict[str, Any]:
        """Change the text of a review written by user_id.

        Raises:
            InvalidReviewError: If content is empty
            ReviewNotFoundError: If review doesn't exist
            ReviewPermissionError: If user_id did not write the review
        """
        if not content:
            raise InvalidReviewError("Review content is required.")

        review = await self.get_review(review_id)
        if review.get("reviewer_id") != user_id:
            raise ReviewPermissionError("Forbidden: You can only update your own reviews")

        response = await (
            self.client.table("reviews")
            .update({"comment": content})
            .eq("id", review_id)
            .execute()
        )

        invalidate_seller_caches(review.get("seller_id"))
        return response.data[0] if response.data else {}

    async def delete_review(self, review_id: str, user_id: str) -> None:
        """Delete a review written by user_id.

        Raises:
            ReviewNotFoundError: If review doesn't exist
            ReviewPermissionError: If user_id did not write the review
        """
        review = await self.get_review(review_id)
        if review.get("reviewer_id") != user_id:
            raise ReviewPermissionError("Forbidden: You can only delete your own reviews")

        await self.client.table("reviews").delete().eq("id", review_id).execute()

        invalidate_seller_caches(review.get("seller_id"))

__all__ = [
    'ReviewManager',
    'ReviewError',
    'ReviewNotFoundError',
    'InvalidReviewError',
    'ReviewPermissionError',
    'invalidate_seller_caches',
]
