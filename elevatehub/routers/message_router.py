# elevatehub/routers/message_router.py

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from elevatehub.core.database import get_db
from elevatehub.core.security import get_current_user
from elevatehub.models.user import User
from elevatehub.schemas.common_schema import ApiResponse
from elevatehub.schemas.message_schema import (
    ConversationOut, ConversationThreadOut, MarkReadOut, MessageCreate, MessageOut
)
from elevatehub.services.message_service import MessageService

router = APIRouter(prefix="/messages", tags=["Messaging"])


@router.get("/conversations", response_model=ApiResponse[List[ConversationOut]])
async def list_conversations(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Caller's conversations, most recent activity first, with unread counts."""
    service = MessageService(db)
    conversations = await service.list_conversations(user)
    return ApiResponse[List[ConversationOut]](data=conversations)


@router.get("/job/{job_id}/user/{other_user_id}", response_model=ApiResponse[ConversationThreadOut])
async def get_thread(
    job_id: str,
    other_user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    All messages with `other_user_id` about `job_id`, oldest first.
    Opening the thread marks the other party's messages as read.
    """
    service = MessageService(db)
    thread = await service.list_messages(job_id, other_user_id, user)
    return ApiResponse[ConversationThreadOut](data=thread)


@router.post("", response_model=ApiResponse[MessageOut], status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Persist a message. Clients then emit `message.send {message_id}` on the
    realtime socket to deliver it live.
    """
    service = MessageService(db)
    message = await service.send_message(user, message_data)
    return ApiResponse[MessageOut](message="Message sent", data=MessageOut.model_validate(message))


@router.patch("/conversations/{conversation_id}/read", response_model=ApiResponse[MarkReadOut])
async def mark_conversation_read(
    conversation_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = MessageService(db)
    result = await service.mark_read(conversation_id, user)
    return ApiResponse[MarkReadOut](data=result)
