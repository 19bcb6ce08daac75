"""Notifications module for in-app user notifications.

Notifications are rows of the notifications table owned by one user. New
ones are written by the create_notification procedure so the platform can
fan them out; reading and marking them read are plain table queries.
"""

import logging
import math
from typing import Any, Dict, Optional

from database import get_client
from rpc import PlatformRPC, RPCError

logger = logging.getLogger(__name__)

# Types a client may create; server-side jobs write their own
NOTIFICATION_TYPES = (
    'listing',
    'account',
    'marketing',
    'message',
)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

class NotificationError(Exception):
    """Base exception for notification operations."""
    pass

class NotificationNotFoundError(NotificationError):
    """Raised when a notification is not found for the user."""
    pass

class NotificationManager:
    """Manager class for a user's notifications."""

    def __init__(self, client=None):
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def list_notifications(
        self,
        user_id: str,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
        notification_type: Optional[str] = None,
        unread_only: bool = False
    ) -> Dict[str, Any]:
        """Get one page of the user's notifications, newest first.

        Returns:
            Dict containing:
                - notifications: the page of notifications
                - pagination: page, limit, total and totalPages
        """
        await self.ensure_client()

        query = (
            self.client.table("notifications")
            .select("*", count="exact")
            .eq("user_id", user_id)
        )
        if notification_type:
            query = query.eq("type", notification_type)
        if unread_only:
            query = query.eq("read", False)

        start = (page - 1) * limit
        response = await query.order("created_at", desc=True).range(start, start + limit - 1).execute()

        total = response.count or 0
        return {
            'notifications': response.data or [],
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'totalPages': math.ceil(total / limit),
            },
        }

    async def create_notification(
        self,
        user_id: str,
        notification_type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Create a notification for the user.

        Returns:
            The new notification's ID

        Raises:
            NotificationError: If the procedure failed
        """
        await self.ensure_client()

        try:
            notification_id = await PlatformRPC(self.client).create_notification(
                target_user_id=user_id,
                notification_type=notification_type,
                notification_title=title,
                notification_message=message,
                notification_data=data or {},
            )
        except RPCError as e:
            logger.error(f"Failed to create notification for {user_id}: {e}")
            raise NotificationError("Failed to create notification")

        logger.info(f"Notification {notification_id} created for {user_id}")
        return notification_id

    async def mark_read(self, notification_id: str, user_id: str) -> Dict[str, Any]:
        """Mark one of the user's notifications as read.

        Raises:
            NotificationNotFoundError: If the user has no such notification
        """
        await self.ensure_client()

        response = await (
            self.client.table("notifications")
            .update({"read": True})
            .eq("id", notification_id)
            .eq("user_id", user_id)
            .execute()
        )
        if not response.data:
            raise NotificationNotFoundError("Notification not found")
        return response.data[0]

    async def mark_all_read(self, user_id: str) -> int:
        """Mark all of the user's unread notifications as read.

        Returns:
            The number of notifications updated
        """
        await self.ensure_client()

        response = await (
            self.client.table("notifications")
            .update({"read": True})
            .eq("user_id", user_id)
            .eq("read", False)
            .execute()
        )
        return len(response.data or [])

__all__ = [
    'NotificationManager',
    'NotificationError',
    'NotificationNotFoundError',
    'NOTIFICATION_TYPES',
    'DEFAULT_PAGE_SIZE',
    'MAX_PAGE_SIZE',
]
