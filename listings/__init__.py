"""Listings module for marketplace listings.

This module provides functionality for:
- Counting listing views and sweeping expired listings (remote procedures)
- Searching and filtering listings, and finding listings near a point
- Likes, moderation status changes and plan limits
"""

import logging
from typing import Dict, List, Optional, Any

from postgrest.exceptions import APIError

from database import get_client
from rpc import PlatformRPC, RPCError
from .categories import get_categories, get_subcategories

logger = logging.getLogger(__name__)

# Statuses an admin may move a listing to
MODERATION_STATUSES = {
    'pending',
    'active',
    'approved',
    'rejected',
    'expired',
}

SORT_OPTIONS = {
    'newest',
    'oldest',
    'price_asc',
    'price_desc',
    'distance',
    'popular',
}

DEFAULT_PAGE_SIZE = 20
DEFAULT_MAX_DISTANCE_KM = 25
DEFAULT_NEARBY_RADIUS_KM = 3
NEARBY_FALLBACK_LIMIT = 10

# Fallbacks for fields the search procedure may leave empty
SEARCH_RESULT_DEFAULTS = {
    'title': "Untitled Listing",
    'description': None,
    'price': None,
    'location': None,
    'latitude': None,
    'longitude': None,
    'condition': None,
    'featured': False,
    'views': 0,
    'created_at': None,
    'updated_at': None,
    'category_id': None,
    'category_name': None,
    'subcategory_id': None,
    'subcategory_name': None,
    'user_id': None,
    'seller_name': None,
    'seller_username': None,
    'seller_avatar': None,
    'distance_km': None,
}

class ListingError(Exception):
    """Base exception for listing operations."""
    pass

class ListingNotFoundError(ListingError):
    """Raised when a listing is not found."""
    pass

class InvalidStatusError(ListingError):
    """Raised when a moderation status is not allowed."""
    pass

class PlanLimitError(ListingError):
    """Raised when the user's plan cannot be determined or is invalid."""
    pass

class PlanLimitExceededError(ListingError):
    """Raised when the user already has the maximum number of active listings."""
    pass

def _sanitize_listing(item: Dict[str, Any]) -> Dict[str, Any]:
    """Fill missing search result fields with their defaults."""
    listing = dict(item)
    listing['id'] = listing.get('id') or ''
    for field, default in SEARCH_RESULT_DEFAULTS.items():
        if not listing.get(field):
            listing[field] = default
    images = listing.get('images')
    listing['images'] = images if isinstance(images, list) else []
    return listing

class ListingManager:
    """Manager class for handling listing operations."""

    def __init__(self, client=None):
        """Initialize the listing manager.

        Args:
            client: Optional platform client. If not provided, will use the shared one.
        """
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def get_listing(self, listing_id: str) -> Dict[str, Any]:
        """Get the core fields of a listing.

        Raises:
            ListingNotFoundError: If listing doesn't exist
        """
        await self.ensure_client()

        response = await (
            self.client.table("listings")
            .select("id, user_id, title, status, plan_id, created_at")
            .eq("id", listing_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        return response.data[0]

    async def increment_views(self, listing_id: str) -> int:
        """Increment the view counter of a listing.

        Returns:
            The updated view count

        Raises:
            ListingNotFoundError: If the procedure returned no row
            RPCError: If the procedure failed
        """
        await self.ensure_client()

        data = await PlatformRPC(self.client).increment_listing_views(listing_uuid=listing_id)
        if isinstance(data, dict):
            data = [data]
        if not data:
            raise ListingNotFoundError(f"Listing {listing_id} not found")
        return data[0]['views']

    async def expire_listings(self) -> Any:
        """Run the server-side expiry sweep.

        Raises:
            RPCError: If the procedure failed
        """
        await self.ensure_client()

        result = await PlatformRPC(self.client).handle_expired_listings()
        logger.info("Expired listings processed")
        return result

    async def search_listings(
        self,
        page: int = 1,
        page_size: int = DEFAULT_PAGE_SIZE,
        sort_by: str = 'newest',
        user_location: Optional[Dict[str, float]] = None,
        categories: Optional[List[int]] = None,
        subcategories: Optional[List[int]] = None,
        conditions: Optional[List[str]] = None,
        min_price: float = 0,
        max_price: float = 0,
        max_distance: float = DEFAULT_MAX_DISTANCE_KM,
        search_query: Optional[str] = None
    ) -> Dict[str, Any]:
        """Search listings with various filters.

        Returns:
            Dict containing:
                - data: the page of listings
                - count: total number of matches
                - hasMore: whether later pages exist

        Raises:
            ListingError: If the search procedure fails
        """
        await self.ensure_client()

        try:
            result = await PlatformRPC(self.client).get_filtered_listings(
                p_page=page,
                p_page_size=page_size,
                p_categories=categories or None,
                p_subcategories=subcategories or None,
                p_conditions=conditions or None,
                p_min_price=min_price,
                p_max_price=max_price,
                p_radius_km=max_distance,
                p_search_query=search_query or None,
                p_sort_by=sort_by,
                p_user_latitude=user_location.get('lat') if user_location else None,
                p_user_longitude=user_location.get('lon') if user_location else None,
            )
        except RPCError as e:
            logger.error(f"Search failed: {e}")
            raise ListingError(f"Search failed: {e}")

        result = result or {}
        listings = [_sanitize_listing(item) for item in result.get('listings') or []]
        total_count = result.get('total_count') or 0

        return {
            'data': listings,
            'count': total_count,
            'hasMore': page * page_size < total_count,
        }

    async def get_nearby(
        self,
        latitude: float,
        longitude: float,
        radius_km: float = DEFAULT_NEARBY_RADIUS_KM
    ) -> List[Dict[str, Any]]:
        """Get active listings within radius_km of a point, nearest first.

        When the radius procedure is unavailable the most recent active
        listings are returned instead.
        """
        await self.ensure_client()

        try:
            listings = await PlatformRPC(self.client).get_listings_within_radius(
                user_latitude=latitude,
                user_longitude=longitude,
                radius_km=radius_km,
            )
            return listings or []
        except RPCError as e:
            logger.warning(f"Radius search failed, falling back to recent listings: {e}")

        response = await (
            self.client.table("listings")
            .select("*")
            .eq("status", "active")
            .order("created_at", desc=True)
            .limit(NEARBY_FALLBACK_LIMIT)
            .execute()
        )
        return response.data or []

    async def toggle_like(self, user_id: str, listing_id: str) -> bool:
        """Like a listing, or remove the like if it already exists.

        Returns:
            True if the listing is now liked
        """
        await self.ensure_client()

        existing = await (
            self.client.table("likes")
            .select("id")
            .eq("user_id", user_id)
            .eq("listing_id", listing_id)
            .limit(1)
            .execute()
        )

        if existing.data:
            await (
                self.client.table("likes")
                .delete()
                .match({"user_id": user_id, "listing_id": listing_id})
                .execute()
            )
            return False

        await self.client.table("likes").insert(
            {"user_id": user_id, "listing_id": listing_id}
        ).execute()
        return True

    async def update_status(self, listing_id: str, status: str) -> Dict[str, Any]:
        """Move a listing to a new moderation status.

        Returns:
            Dict with the listing id, old status and new status

        Raises:
            InvalidStatusError: If status is not a moderation status
            ListingNotFoundError: If listing doesn't exist
        """
        if status not in MODERATION_STATUSES:
            raise InvalidStatusError(f"Invalid status: {status}")

        listing = await self.get_listing(listing_id)

        await (
            self.client.table("listings")
            .update({"status": status})
            .eq("id", listing_id)
            .execute()
        )

        return {
            'id': listing_id,
            'old_status': listing.get('status'),
            'status': status,
        }

    async def check_plan_limit(self, user_id: str) -> Dict[str, int]:
        """Check the user's active listings against their plan's limit.

        Returns:
            Dict with maxListings and activeListings

        Raises:
            PlanLimitError: If no plan or an invalid plan is found
            PlanLimitExceededError: If the limit is already reached
        """
        await self.ensure_client()

        active = await (
            self.client.table("listings")
            .select("id", count="exact")
            .eq("user_id", user_id)
            .eq("status", "active")
            .execute()
        )
        active_listings = active.count or 0

        latest = await (
            self.client.table("listings")
            .select("plan_id")
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        plan_id = latest.data[0].get('plan_id') if latest.data else None
        if not plan_id:
            raise PlanLimitError("Could not determine active plan")

        plan = await (
            self.client.table("plans")
            .select("max_listings")
            .eq("id", plan_id)
            .limit(1)
            .execute()
        )
        max_listings = plan.data[0].get('max_listings') if plan.data else None
        if max_listings is None:
            raise PlanLimitError("Plan is invalid or missing max listing count")

        if active_listings >= max_listings:
            raise PlanLimitExceededError(
                f"You have reached your limit of {max_listings} active listings for your plan."
            )

        return {
            'maxListings': max_listings,
            'activeListings': active_listings,
        }

__all__ = [
    'ListingManager',
    'ListingError',
    'ListingNotFoundError',
    'InvalidStatusError',
    'PlanLimitError',
    'PlanLimitExceededError',
    'MODERATION_STATUSES',
    'SORT_OPTIONS',
    'DEFAULT_NEARBY_RADIUS_KM',
    'get_categories',
    'get_subcategories',
    'APIError',
]
