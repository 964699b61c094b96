# models/message.py
import uuid
from sqlalchemy import (
    Column, String, TEXT, INT, Boolean, DateTime, ForeignKey, CHAR, UniqueConstraint, Index
)
from sqlalchemy.orm import relationship
from elevatehub.core.database import Base
from elevatehub.utils.time import utcnow


class Conversation(Base):
    __tablename__ = "conversations"
    __table_args__ = (
        # participant_a_id < participant_b_id, so the pair is order-insensitive
        UniqueConstraint("job_id", "participant_a_id", "participant_b_id", name="uq_conversation_job_pair"),
        Index("ix_conversations_a_last", "participant_a_id", "last_message_at"),
        Index("ix_conversations_b_last", "participant_b_id", "last_message_at"),
    )

    conversation_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(CHAR(36), ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
    participant_a_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    participant_b_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)

    # Plain column, no FK: messages already point back at the conversation
    last_message_id = Column(CHAR(36), nullable=True)
    last_message_preview = Column(String(200), nullable=True)
    last_message_at = Column(DateTime, nullable=True)

    unread_a = Column(INT, nullable=False, default=0)
    unread_b = Column(INT, nullable=False, default=0)
    message_count = Column(INT, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    job = relationship("Job")
    participant_a = relationship("User", foreign_keys=[participant_a_id])
    participant_b = relationship("User", foreign_keys=[participant_b_id])
    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.sequence",
        cascade="all, delete-orphan",
    )
    last_message = relationship(
        "Message",
        primaryjoin="foreign(Conversation.last_message_id) == Message.message_id",
        viewonly=True,
        uselist=False,
    )

    def has_participant(self, user_id: str) -> bool:
        return user_id in (self.participant_a_id, self.participant_b_id)

    def unread_for(self, user_id: str) -> int:
        if user_id == self.participant_a_id:
            return self.unread_a
        if user_id == self.participant_b_id:
            return self.unread_b
        return 0


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "sequence", name="uq_message_conversation_sequence"),
        Index("ix_messages_receiver_read", "receiver_id", "is_read"),
    )

    message_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    conversation_id = Column(CHAR(36), ForeignKey("conversations.conversation_id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(CHAR(36), ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    receiver_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)

    content = Column(TEXT, nullable=False)
    # Position within the conversation, 1-based
    sequence = Column(INT, nullable=False)

    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)

    conversation = relationship("Conversation", back_populates="messages")
    sender = relationship("User", foreign_keys=[sender_id])
    receiver = relationship("User", foreign_keys=[receiver_id])
