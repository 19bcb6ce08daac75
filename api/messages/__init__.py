"""Conversation and messaging API endpoints."""

import logging
from fastapi import APIRouter, HTTPException, status, Depends
from uuid import UUID
from pydantic import BaseModel, Field

from messaging import (
    ConversationManager, ConversationError, ConversationNotFoundError,
    ListingNotFoundError, InvalidConversationError, NotParticipantError,
    MAX_MESSAGE_LENGTH
)
from auth import Session, get_current_user
from api.system import rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Messaging"]
)

class CreateConversationRequest(BaseModel):
    """Request model for starting a conversation with a seller."""
    listingId: UUID
    sellerId: UUID

class SendMessageRequest(BaseModel):
    """Request model for messaging about a listing."""
    listingId: UUID
    recipientId: UUID
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

class ReplyRequest(BaseModel):
    """Request model for messaging an existing conversation."""
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

def _raise_for(e: ConversationError) -> None:
    if isinstance(e, (ConversationNotFoundError, ListingNotFoundError)):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, NotParticipantError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    if isinstance(e, InvalidConversationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    logger.error(f"Messaging error: {e}")
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

@router.post("/conversations", dependencies=[Depends(rate_limit)])
async def create_conversation(
    request: CreateConversationRequest,
    session: Session = Depends(get_current_user)
):
    """Find or start the caller's conversation with a seller about a listing."""
    try:
        conversation = await ConversationManager(session.client).get_or_create_conversation(
            str(request.listingId), session.user_id, str(request.sellerId)
        )
    except ConversationError as e:
        _raise_for(e)
    return {"success": True, "conversationId": conversation["id"]}

@router.post("/messages", dependencies=[Depends(rate_limit)])
async def send_message(
    request: SendMessageRequest,
    session: Session = Depends(get_current_user)
):
    """Send an encrypted message about a listing."""
    try:
        message = await ConversationManager(session.client).send_message(
            session.user_id, str(request.listingId), str(request.recipientId), request.content
        )
    except ConversationError as e:
        _raise_for(e)
    return {"success": True, "messageId": message["id"]}

@router.get("/messages/conversations")
async def list_conversations(session: Session = Depends(get_current_user)):
    """Get the caller's conversations, newest first."""
    return {"conversations": await ConversationManager(session.client).list_conversations(session.user_id)}

@router.delete("/messages/conversations/{conversation_id}")
async def delete_conversation(conversation_id: str, session: Session = Depends(get_current_user)):
    """Delete one of the caller's conversations."""
    try:
        await ConversationManager(session.client).delete_conversation(conversation_id, session.user_id)
    except ConversationError as e:
        _raise_for(e)
    return {"message": "Conversation deleted successfully"}

@router.get("/messages/{conversation_id}")
async def get_messages(conversation_id: str, session: Session = Depends(get_current_user)):
    """Get the decrypted messages of a conversation, oldest first."""
    try:
        messages = await ConversationManager(session.client).get_messages(
            conversation_id, session.user_id
        )
    except ConversationError as e:
        _raise_for(e)
    return {"messages": messages}

@router.post("/messages/{conversation_id}", dependencies=[Depends(rate_limit)])
async def reply(
    conversation_id: str,
    request: ReplyRequest,
    session: Session = Depends(get_current_user)
):
    """Send an encrypted message to an existing conversation."""
    try:
        message = await ConversationManager(session.client).reply(
            conversation_id, session.user_id, request.content
        )
    except ConversationError as e:
        _raise_for(e)
    return {
        "success": True,
        "message": {
            "id": message["id"],
            "content": request.content,
            "sender_id": session.user_id,
            "created_at": message.get("created_at"),
        },
    }
