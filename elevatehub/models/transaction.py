# models/transaction.py
import enum
import uuid
from sqlalchemy import Column, String, DECIMAL, Float, DateTime, ForeignKey, Enum, CHAR, Index
from sqlalchemy.orm import relationship
from elevatehub.core.database import Base
from elevatehub.utils.time import utcnow


class TransactionStatusEnum(str, enum.Enum):
    in_escrow = "in_escrow"
    released = "released"
    refunded = "refunded"
    disputed = "disputed"


class Transaction(Base):
    """
    Escrow bookkeeping record for one job.

    `active_job_id` carries the job id only while the money is held and is
    NULL afterwards; its unique index is what stops a second escrow from
    being opened for the same job.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        Index("ix_transactions_client_status", "client_id", "status"),
        Index("ix_transactions_freelancer_status", "freelancer_id", "status"),
    )

    transaction_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(CHAR(36), ForeignKey("jobs.job_id", ondelete="RESTRICT"), nullable=False, index=True)
    active_job_id = Column(CHAR(36), nullable=True, unique=True)
    application_id = Column(CHAR(36), ForeignKey("applications.application_id", ondelete="RESTRICT"), nullable=False)
    client_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)
    freelancer_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)

    amount = Column(DECIMAL(12, 2, asdecimal=False), nullable=False)
    currency = Column(String(3), nullable=False, default="KES")
    platform_fee_percentage = Column(Float, nullable=False, default=10.0)
    platform_fee = Column(DECIMAL(12, 2, asdecimal=False), nullable=False, default=0)

    status = Column(
        Enum(TransactionStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="transaction_status_enum"),
        nullable=False,
        default=TransactionStatusEnum.in_escrow,
    )
    notes = Column(String(500), nullable=True)
    refund_reason = Column(String(500), nullable=True)

    held_at = Column(DateTime, default=utcnow)
    released_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    job = relationship("Job", back_populates="transactions")
    application = relationship("Application")
    client = relationship("User", foreign_keys=[client_id])
    freelancer = relationship("User", foreign_keys=[freelancer_id])

    @property
    def net_amount(self) -> float:
        return round((self.amount or 0) - (self.platform_fee or 0), 2)
