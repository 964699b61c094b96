# elevatehub/schemas/message_schema.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Any, Dict, List, Optional
from elevatehub.schemas.job_schema import JobSummary
from elevatehub.schemas.user_schema import UserSummary


class MessageCreate(BaseModel):
    receiver_id: str
    job_id: str
    # Trimmed and length-checked by the service
    content: str = Field(..., min_length=1)


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message_id: str
    conversation_id: str
    job_id: str
    sender_id: str
    receiver_id: str
    content: str
    sequence: int
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class ConversationOut(BaseModel):
    """A conversation as seen by one participant."""
    conversation_id: str
    job: Optional[JobSummary] = None
    other_participant: Optional[UserSummary] = None
    last_message: Optional[MessageOut] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    message_count: int = 0
    created_at: datetime


class ConversationThreadOut(BaseModel):
    conversation_id: str
    job_id: str
    participant_ids: List[str]
    messages: List[MessageOut]


class MarkReadOut(BaseModel):
    conversation_id: str
    marked: int


# Realtime envelope, both directions
class WsEvent(BaseModel):
    event: str
    data: Dict[str, Any] = {}
