# elevatehub/services/message_service.py

import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.config import settings
from elevatehub.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from elevatehub.models.job import Job
from elevatehub.models.message import Conversation, Message
from elevatehub.models.user import User
from elevatehub.repositories.application_repo import ApplicationRepository
from elevatehub.repositories.job_repo import JobRepository
from elevatehub.repositories.message_repo import MessageRepository
from elevatehub.repositories.user_repo import UserRepository
from elevatehub.schemas.job_schema import JobSummary
from elevatehub.schemas.message_schema import (
    ConversationOut, ConversationThreadOut, MarkReadOut, MessageCreate, MessageOut
)
from elevatehub.schemas.user_schema import UserSummary
from elevatehub.utils.time import utcnow

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 200


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.message_repo = MessageRepository(db)
        self.job_repo = JobRepository(db)
        self.application_repo = ApplicationRepository(db)
        self.user_repo = UserRepository(db)

    async def ensure_can_converse(self, job_id: str, user_id: str, other_user_id: str) -> Job:
        """
        A conversation on a job pairs the job's client with a freelancer who
        applied to it (or was accepted for it). Raises otherwise.
        """
        if user_id == other_user_id:
            raise ValidationError.for_field("receiver_id", "You cannot message yourself")
        job = await self.job_repo.get_job_by_id(job_id)
        if not job:
            raise NotFoundError("Job not found")

        if job.client_id == user_id:
            freelancer_id = other_user_id
        elif job.client_id == other_user_id:
            freelancer_id = user_id
        else:
            raise ForbiddenError("Conversations on a job must include its client")

        if job.accepted_freelancer_id != freelancer_id and not await self.application_repo.has_active_application(
            job_id, freelancer_id
        ):
            raise ForbiddenError("Messaging is only open between the client and freelancers who applied to this job")

        if not await self.user_repo.get_user_by_id(other_user_id):
            raise NotFoundError("User not found")
        return job

    async def get_or_create_conversation(self, job_id: str, user_a: str, user_b: str) -> Conversation:
        """
        Idempotent and order-insensitive. Two concurrent creators converge on
        the same row through the (job, a, b) unique constraint.
        """
        conversation = await self.message_repo.find_conversation(job_id, user_a, user_b)
        if conversation:
            return conversation
        try:
            conversation = await self.message_repo.create_conversation(job_id, user_a, user_b)
            await self.db.commit()
            logger.info(f"Opened conversation {conversation.conversation_id} on job {job_id}")
            return conversation
        except IntegrityError:
            await self.db.rollback()
            conversation = await self.message_repo.find_conversation(job_id, user_a, user_b)
            if conversation is None:
                raise
            return conversation

    async def list_conversations(self, user: User) -> List[ConversationOut]:
        conversations = await self.message_repo.list_conversations_for_user(user.user_id)
        return [self._conversation_view(c, user.user_id) for c in conversations]

    def _conversation_view(self, conversation: Conversation, user_id: str) -> ConversationOut:
        other = (
            conversation.participant_b
            if conversation.participant_a_id == user_id
            else conversation.participant_a
        )
        return ConversationOut(
            conversation_id=conversation.conversation_id,
            job=JobSummary.model_validate(conversation.job) if conversation.job else None,
            other_participant=UserSummary.model_validate(other) if other else None,
            last_message=MessageOut.model_validate(conversation.last_message) if conversation.last_message else None,
            last_message_at=conversation.last_message_at,
            unread_count=conversation.unread_for(user_id),
            message_count=conversation.message_count,
            created_at=conversation.created_at,
        )

    async def list_messages(self, job_id: str, other_user_id: str, user: User) -> ConversationThreadOut:
        """Full thread with the other party; reading it marks their messages read."""
        await self.ensure_can_converse(job_id, user.user_id, other_user_id)
        conversation = await self.get_or_create_conversation(job_id, user.user_id, other_user_id)
        await self._mark_read(conversation, user.user_id)
        await self.db.commit()

        messages = await self.message_repo.list_messages(conversation.conversation_id)
        return ConversationThreadOut(
            conversation_id=conversation.conversation_id,
            job_id=conversation.job_id,
            participant_ids=[conversation.participant_a_id, conversation.participant_b_id],
            messages=[MessageOut.model_validate(m) for m in messages],
        )

    async def send_message(self, sender: User, data: MessageCreate) -> Message:
        content = data.content.strip()
        if not content:
            raise ValidationError.for_field("content", "Message content cannot be empty")
        if len(content) > settings.MESSAGE_MAX_LENGTH:
            raise ValidationError.for_field(
                "content", f"Message cannot exceed {settings.MESSAGE_MAX_LENGTH} characters"
            )

        await self.ensure_can_converse(data.job_id, sender.user_id, data.receiver_id)
        conversation = await self.get_or_create_conversation(data.job_id, sender.user_id, data.receiver_id)

        sequence = await self.message_repo.reserve_sequence(conversation.conversation_id)
        message = Message(
            conversation_id=conversation.conversation_id,
            job_id=data.job_id,
            sender_id=sender.user_id,
            receiver_id=data.receiver_id,
            content=content,
            sequence=sequence,
            is_read=False,
            created_at=utcnow(),
        )
        await self.message_repo.add_message(message)
        await self.message_repo.record_last_message(
            conversation.conversation_id,
            message,
            preview=content[:PREVIEW_LENGTH],
            receiver_is_a=data.receiver_id == conversation.participant_a_id,
        )
        await self.db.commit()
        logger.debug(f"Message {message.message_id} (#{sequence}) in conversation {conversation.conversation_id}")
        return message

    async def mark_read(self, conversation_id: str, user: User) -> MarkReadOut:
        conversation = await self.message_repo.get_conversation_by_id(conversation_id)
        if not conversation:
            raise NotFoundError("Conversation not found")
        if not conversation.has_participant(user.user_id):
            raise ForbiddenError("You are not part of this conversation")
        marked = await self._mark_read(conversation, user.user_id)
        await self.db.commit()
        return MarkReadOut(conversation_id=conversation_id, marked=marked)

    async def _mark_read(self, conversation: Conversation, reader_id: str) -> int:
        marked = await self.message_repo.mark_read(conversation.conversation_id, reader_id, utcnow())
        await self.message_repo.reset_unread(
            conversation.conversation_id, reader_is_a=reader_id == conversation.participant_a_id
        )
        return marked

    async def get_message_for_sender(self, message_id: str, user_id: str) -> Message:
        """Used by the realtime gateway before fanning a persisted message out."""
        message = await self.message_repo.get_message_by_id(message_id)
        if not message:
            raise NotFoundError("Message not found")
        if message.sender_id != user_id:
            raise ForbiddenError("You can only relay your own messages")
        return message
