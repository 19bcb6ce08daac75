"""Profiles module for user profiles and the follower graph.

This module provides functionality for:
- Following and unfollowing sellers
- Public seller profiles with follower and rating summaries
- Avatar updates restricted to trusted hosts
- Admin user search
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse

from database import get_client
from config import settings_conf

logger = logging.getLogger(__name__)

SELLER_LISTINGS_LIMIT = 20
USER_SEARCH_LIMIT = 10
MIN_SEARCH_LENGTH = 2

# Characters with meaning inside a PostgREST or= filter
FILTER_RESERVED = re.compile(r'[,()"\\]')

class ProfileError(Exception):
    """Base exception for profile operations."""
    pass

class ProfileNotFoundError(ProfileError):
    """Raised when a profile is not found."""
    pass

class InvalidFollowError(ProfileError):
    """Raised when a user tries to follow themselves."""
    pass

class InvalidAvatarError(ProfileError):
    """Raised when an avatar URL is malformed or from an untrusted host."""
    pass

def validate_avatar_url(avatar_url: str, allowed_domains: Optional[Iterable[str]] = None) -> str:
    """Check that avatar_url is an absolute URL on an allowed host.

    Args:
        avatar_url: URL to validate
        allowed_domains: Hosts to accept, defaults to the allowed_avatar_domains setting

    Returns:
        The URL unchanged

    Raises:
        InvalidAvatarError: If the URL does not parse or its host is not allowed
    """
    if allowed_domains is None:
        allowed_domains = settings_conf['allowed_avatar_domains']

    try:
        parsed = urlparse(avatar_url)
    except (TypeError, ValueError):
        raise InvalidAvatarError("Invalid avatar URL format")

    if not parsed.scheme or not parsed.netloc:
        raise InvalidAvatarError("Invalid avatar URL format")

    if parsed.hostname not in set(allowed_domains):
        raise InvalidAvatarError("Avatar URL must be from an allowed domain")

    return avatar_url

class ProfileManager:
    """Manager class for profiles and follows."""

    def __init__(self, client=None):
        """Initialize the profile manager.

        Args:
            client: Optional platform client. If not provided, will use the shared one.
        """
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def follow(self, follower_id: str, following_id: str) -> None:
        """Follow a user; following twice is a no-op.

        Raises:
            InvalidFollowError: If a user tries to follow themselves
        """
        if follower_id == following_id:
            raise InvalidFollowError("You cannot follow yourself.")

        await self.ensure_client()

        await self.client.table("followers").upsert(
            [{"follower_id": follower_id, "following_id": following_id}],
            on_conflict="follower_id,following_id"
        ).execute()

    async def unfollow(self, follower_id: str, following_id: str) -> None:
        """Stop following a user."""
        await self.ensure_client()

        await (
            self.client.table("followers")
            .delete()
            .match({"follower_id": follower_id, "following_id": following_id})
            .execute()
        )

    async def get_seller_profile(self, seller_id: str) -> Dict[str, Any]:
        """Get a seller's profile with their newest active listings.

        Returns:
            Dict containing:
                - profile: the profile row plus its active listings
                - followersCount: number of followers
                - averageRating: mean review rating (0 without reviews)
                - ratingCount: number of reviews

        Raises:
            ProfileNotFoundError: If seller doesn't exist
        """
        await self.ensure_client()

        response = await (
            self.client.table("profiles")
            .select("*")
            .eq("id", seller_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ProfileNotFoundError(f"Profile {seller_id} not found")
        profile = dict(response.data[0])

        listings = await (
            self.client.table("listings")
            .select("*")
            .eq("user_id", seller_id)
            .eq("status", "active")
            .order("created_at", desc=True)
            .limit(SELLER_LISTINGS_LIMIT)
            .execute()
        )
        profile['listings'] = listings.data or []

        followers = await (
            self.client.table("followers")
            .select("id", count="exact")
            .eq("following_id", seller_id)
            .execute()
        )

        reviews = await (
            self.client.table("reviews")
            .select("rating")
            .eq("seller_id", seller_id)
            .execute()
        )
        ratings = [row.get('rating') or 0 for row in reviews.data or []]

        return {
            'profile': profile,
            'followersCount': followers.count or 0,
            'averageRating': sum(ratings) / len(ratings) if ratings else 0,
            'ratingCount': len(ratings),
        }

    async def update_avatar(self, user_id: str, avatar_url: str) -> None:
        """Point the user's profile at a new avatar image.

        Raises:
            InvalidAvatarError: If the URL is not acceptable
        """
        validate_avatar_url(avatar_url)

        await self.ensure_client()

        await (
            self.client.table("profiles")
            .update({"avatar_url": avatar_url})
            .eq("id", user_id)
            .execute()
        )
        logger.info(f"Avatar updated for user {user_id}")

    async def search_users(self, query: Optional[str]) -> List[Dict[str, Any]]:
        """Case-insensitive search over username, email and full name.

        Filter syntax characters are dropped from the query; queries shorter
        than two characters after that return no users.
        """
        term = FILTER_RESERVED.sub("", query or "").strip().lower()
        if len(term) < MIN_SEARCH_LENGTH:
            return []

        await self.ensure_client()

        pattern = f"%{term}%"
        response = await (
            self.client.table("profiles")
            .select("id, username, email, full_name")
            .or_(f"username.ilike.{pattern},email.ilike.{pattern},full_name.ilike.{pattern}")
            .limit(USER_SEARCH_LIMIT)
            .execute()
        )
        return response.data or []

__all__ = [
    'ProfileManager',
    'ProfileError',
    'ProfileNotFoundError',
    'InvalidFollowError',
    'InvalidAvatarError',
    'validate_avatar_url',
]
