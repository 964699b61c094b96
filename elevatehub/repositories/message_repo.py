# elevatehub/repositories/message_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import joinedload
from typing import List, Optional

from elevatehub.models.message import Conversation, Message
from elevatehub.utils.rooms import ordered_pair


class MessageRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    # --- Conversation ---

    async def find_conversation(self, job_id: str, user_a: str, user_b: str) -> Optional[Conversation]:
        lo, hi = ordered_pair(user_a, user_b)
        stmt = (
            select(Conversation)
            .where(
                Conversation.job_id == job_id,
                Conversation.participant_a_id == lo,
                Conversation.participant_b_id == hi,
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_conversation_by_id(self, conversation_id: str) -> Optional[Conversation]:
        stmt = (
            select(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_conversation(self, job_id: str, user_a: str, user_b: str) -> Conversation:
        """May raise IntegrityError when a concurrent creator won the race."""
        lo, hi = ordered_pair(user_a, user_b)
        conversation = Conversation(job_id=job_id, participant_a_id=lo, participant_b_id=hi)
        self.db.add(conversation)
        await self.db.flush()
        return conversation

    async def list_conversations_for_user(self, user_id: str) -> List[Conversation]:
        stmt = (
            select(Conversation)
            .where(or_(Conversation.participant_a_id == user_id, Conversation.participant_b_id == user_id))
            .options(
                joinedload(Conversation.job),
                joinedload(Conversation.participant_a),
                joinedload(Conversation.participant_b),
                joinedload(Conversation.last_message),
            )
            .order_by(func.coalesce(Conversation.last_message_at, Conversation.created_at).desc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().unique().all())

    async def reserve_sequence(self, conversation_id: str) -> int:
        """
        Bump message_count on the database side and return the new value,
        which is the sequence number of the message being written.
        """
        await self.db.execute(
            update(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .values(message_count=Conversation.message_count + 1)
            .execution_options(synchronize_session=False)
        )
        return await self.db.scalar(
            select(Conversation.message_count).where(Conversation.conversation_id == conversation_id)
        )

    async def record_last_message(
        self, conversation_id: str, message: Message, preview: str, receiver_is_a: bool
    ) -> None:
        unread_column = "unread_a" if receiver_is_a else "unread_b"
        values = {
            "last_message_id": message.message_id,
            "last_message_preview": preview,
            "last_message_at": message.created_at,
            unread_column: getattr(Conversation, unread_column) + 1,
        }
        await self.db.execute(
            update(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def reset_unread(self, conversation_id: str, reader_is_a: bool) -> None:
        unread_column = "unread_a" if reader_is_a else "unread_b"
        await self.db.execute(
            update(Conversation)
            .where(Conversation.conversation_id == conversation_id)
            .values(**{unread_column: 0})
            .execution_options(synchronize_session=False)
        )

    # --- Message ---

    async def add_message(self, message: Message) -> Message:
        self.db.add(message)
        await self.db.flush()
        return message

    async def get_message_by_id(self, message_id: str) -> Optional[Message]:
        stmt = select(Message).where(Message.message_id == message_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_messages(self, conversation_id: str) -> List[Message]:
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.sequence.asc())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def mark_read(self, conversation_id: str, reader_id: str, read_at) -> int:
        """Flip every unread message addressed to `reader_id`. Returns how many."""
        stmt = (
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.receiver_id == reader_id,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=read_at)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
