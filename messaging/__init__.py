"""Messaging module for buyer/seller conversations about a listing.

Message bodies are stored encrypted (see messaging.encryption); only the
participants of a conversation can read them back through this module.
"""

import logging
from typing import Any, Dict, List

from database import get_client
from . import encryption
from .encryption import EncryptionError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1000

class ConversationError(Exception):
    """Base exception for messaging operations."""
    pass

class ConversationNotFoundError(ConversationError):
    """Raised when a conversation is not found."""
    pass

class ListingNotFoundError(ConversationError):
    """Raised when the listing a message refers to is not found."""
    pass

class InvalidConversationError(ConversationError):
    """Raised when a user tries to open a conversation with themselves."""
    pass

class NotParticipantError(ConversationError):
    """Raised when a user is neither the buyer nor the seller of a conversation."""
    pass

class ConversationManager:
    """Manager class for conversations and encrypted messages."""

    def __init__(self, client=None):
        """Initialize the conversation manager.

        Args:
            client: Optional platform client. If not provided, will use the shared one.
        """
        self.client = client

    async def ensure_client(self):
        """Ensure we have a platform client."""
        if not self.client:
            self.client = await get_client()

    async def get_or_create_conversation(
        self,
        listing_id: str,
        buyer_id: str,
        seller_id: str
    ) -> Dict[str, Any]:
        """Find the conversation for (listing, buyer, seller) or start one.

        A new conversation gets a fresh encryption key.

        Raises:
            InvalidConversationError: If buyer and seller are the same user
        """
        if buyer_id == seller_id:
            raise InvalidConversationError("Cannot create a conversation with yourself")

        await self.ensure_client()

        existing = await (
            self.client.table("conversations")
            .select("*")
            .eq("listing_id", listing_id)
            .eq("buyer_id", buyer_id)
            .eq("seller_id", seller_id)
            .limit(1)
            .execute()
        )
        if existing.data:
            return existing.data[0]

        created = await self.client.table("conversations").insert({
            "listing_id": listing_id,
            "buyer_id": buyer_id,
            "seller_id": seller_id,
            "encryption_key": encryption.generate_key(),
        }).execute()
        if not created.data:
            raise ConversationError("Failed to create conversation")

        logger.info(f"Conversation {created.data[0]['id']} started for listing {listing_id}")
        return created.data[0]

    async def get_conversation(self, conversation_id: str, user_id: str) -> Dict[str, Any]:
        """Get a conversation the user takes part in.

        Raises:
            ConversationNotFoundError: If conversation doesn't exist
            NotParticipantError: If the user is not buyer or seller
        """
        await self.ensure_client()

        response = await (
            self.client.table("conversations")
            .select("id, encryption_key, buyer_id, seller_id")
            .eq("id", conversation_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ConversationNotFoundError("Conversation not found")

        conversation = response.data[0]
        if user_id not in (conversation['buyer_id'], conversation['seller_id']):
            raise NotParticipantError("You are not a part of this conversation")
        return conversation

    async def list_conversations(self, user_id: str) -> List[Dict[str, Any]]:
        """Get the user's conversations as buyer or seller, newest first.

        Rows embed both parties under 'buyer' and 'seller' and the listing
        under 'listing'. Encryption keys are not selected.
        """
        await self.ensure_client()

        response = await (
            self.client.table("conversations")
            .select(
                "id, listing_id, buyer_id, seller_id, created_at, "
                "seller:seller_id(id, username, avatar_url), "
                "buyer:buyer_id(id, username, avatar_url), "
                "listing:listing_id(id, title)"
            )
            .or_(f"buyer_id.eq.{user_id},seller_id.eq.{user_id}")
            .order("created_at", desc=True)
            .execute()
        )
        return response.data or []

    async def delete_conversation(self, conversation_id: str, user_id: str) -> None:
        """Delete a conversation the user takes part in.

        Raises:
            ConversationNotFoundError: If conversation doesn't exist
            NotParticipantError: If the user is not a participant
        """
        await self.get_conversation(conversation_id, user_id)

        await self.client.table("conversations").delete().eq("id", conversation_id).execute()
        logger.info(f"Conversation {conversation_id} deleted by {user_id}")

    async def _store_message(self, conversation: Dict[str, Any], sender_id: str, content: str) -> Dict[str, Any]:
        encrypted, iv = encryption.encrypt(content, conversation['encryption_key'])
        response = await self.client.table("encrypted_messages").insert({
            "conversation_id": conversation['id'],
            "sender_id": sender_id,
            "encrypted_content": encrypted,
            "iv": iv,
        }).execute()
        if not response.data:
            raise ConversationError("Failed to send message")
        return response.data[0]

    async def send_message(
        self,
        sender_id: str,
        listing_id: str,
        recipient_id: str,
        content: str
    ) -> Dict[str, Any]:
        """Send a message about a listing, starting the conversation if needed.

        The listing owner is the seller; the other party is the buyer.

        Returns:
            The stored message row

        Raises:
            ListingNotFoundError: If listing doesn't exist
            InvalidConversationError: If sender and recipient are the same user
        """
        await self.ensure_client()

        listing = await (
            self.client.table("listings")
            .select("user_id")
            .eq("id", listing_id)
            .limit(1)
            .execute()
        )
        if not listing.data:
            raise ListingNotFoundError("Listing not found")

        is_seller = listing.data[0]['user_id'] == sender_id
        buyer_id = recipient_id if is_seller else sender_id
        seller_id = sender_id if is_seller else recipient_id

        conversation = await self.get_or_create_conversation(listing_id, buyer_id, seller_id)
        return await self._store_message(conversation, sender_id, content)

    async def reply(self, conversation_id: str, sender_id: str, content: str) -> Dict[str, Any]:
        """Send a message to an existing conversation.

        Raises:
            ConversationNotFoundError: If conversation doesn't exist
            NotParticipantError: If the sender is not a participant
        """
        conversation = await self.get_conversation(conversation_id, sender_id)
        return await self._store_message(conversation, sender_id, content)

    async def get_messages(self, conversation_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Get the decrypted messages of a conversation, oldest first.

        Messages that fail to decrypt are returned with content None.

        Raises:
            ConversationNotFoundError: If conversation doesn't exist
            NotParticipantError: If the user is not a participant
        """
        conversation = await self.get_conversation(conversation_id, user_id)

        response = await (
            self.client.table("encrypted_messages")
            .select("*")
            .eq("conversation_id", conversation_id)
            .order("created_at")
            .execute()
        )

        messages = []
        for row in response.data or []:
            try:
                content = encryption.decrypt(row['encrypted_content'], row['iv'], conversation['encryption_key'])
            except EncryptionError as e:
                logger.error(f"Message {row.get('id')} could not be decrypted: {e}")
                content = None
            messages.append({
                'id': row.get('id'),
                'senderId': row.get('sender_id'),
                'content': content,
                'createdAt': row.get('created_at'),
                'readAt': row.get('read_at'),
            })
        return messages

__all__ = [
    'ConversationManager',
    'ConversationError',
    'ConversationNotFoundError',
    'ListingNotFoundError',
    'InvalidConversationError',
    'NotParticipantError',
    'EncryptionError',
    'MAX_MESSAGE_LENGTH',
]
