# models/job.py
import enum
import uuid
from sqlalchemy import (
    Column, String, TEXT, DECIMAL, INT, Boolean, JSON, DateTime, ForeignKey, Enum, CHAR, Index
)
from sqlalchemy.orm import relationship
from elevatehub.core.database import Base
from elevatehub.utils.time import utcnow


class JobStatusEnum(str, enum.Enum):
    open = "open"
    in_progress = "in_progress"
    under_review = "under_review"
    completed = "completed"
    cancelled = "cancelled"


class PaymentStatusEnum(str, enum.Enum):
    unpaid = "unpaid"
    in_escrow = "in_escrow"
    released = "released"
    refunded = "refunded"


class BudgetTypeEnum(str, enum.Enum):
    fixed = "fixed"
    hourly = "hourly"


class SubmissionStatusEnum(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


JOB_CATEGORIES = (
    "Web Development",
    "Mobile Development",
    "Design",
    "Writing",
    "Marketing",
    "Data Entry",
    "Virtual Assistant",
    "Other",
)

# Statuses in which a freelancer has been assigned
ASSIGNED_STATUSES = (
    JobStatusEnum.in_progress,
    JobStatusEnum.under_review,
    JobStatusEnum.completed,
)


def _values(enum_cls):
    return [e.value for e in enum_cls]


class Job(Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_status_active_created", "status", "is_active", "created_at"),
        Index("ix_jobs_client_status", "client_id", "status"),
    )

    job_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    client_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False, index=True)

    title = Column(String(100), nullable=False)
    description = Column(TEXT, nullable=False)
    category = Column(Enum(*JOB_CATEGORIES, name="job_category_enum"), nullable=False, index=True)
    budget_amount = Column(DECIMAL(12, 2, asdecimal=False), nullable=False)
    budget_type = Column(
        Enum(BudgetTypeEnum, values_callable=_values, name="budget_type_enum"),
        nullable=False,
        default=BudgetTypeEnum.fixed,
    )
    currency = Column(String(3), nullable=False, default="KES")
    deadline = Column(DateTime, nullable=False)
    skills = Column(JSON, default=list)

    # --- Lifecycle ---
    status = Column(
        Enum(JobStatusEnum, values_callable=_values, name="job_status_enum"),
        nullable=False,
        default=JobStatusEnum.open,
    )
    accepted_freelancer_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True, index=True)
    # Denormalised; only ever changed with an SQL-side increment
    applications_count = Column(INT, nullable=False, default=0)
    view_count = Column(INT, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    # --- Payment (mirrors the escrow ledger) ---
    payment_status = Column(
        Enum(PaymentStatusEnum, values_callable=_values, name="payment_status_enum"),
        nullable=False,
        default=PaymentStatusEnum.unpaid,
    )
    escrow_amount = Column(DECIMAL(12, 2, asdecimal=False), nullable=True)

    # --- Work review ---
    revision_count = Column(INT, nullable=False, default=0)
    max_revisions = Column(INT, nullable=False, default=3)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # --- Relationships ---
    client = relationship("User", foreign_keys=[client_id], back_populates="jobs_posted")
    accepted_freelancer = relationship("User", foreign_keys=[accepted_freelancer_id])
    applications = relationship("Application", back_populates="job")
    submissions = relationship(
        "JobSubmission",
        back_populates="job",
        cascade="all, delete-orphan",
        order_by="JobSubmission.revision_number",
    )
    transactions = relationship("Transaction", back_populates="job")


class JobSubmission(Base):
    __tablename__ = "job_submissions"

    submission_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(CHAR(36), ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
    submitted_by = Column(CHAR(36), ForeignKey("users.user_id", ondelete="RESTRICT"), nullable=False)

    description = Column(TEXT, nullable=False)
    attachment_url = Column(String(500), nullable=True)
    status = Column(
        Enum(SubmissionStatusEnum, values_callable=_values, name="submission_status_enum"),
        nullable=False,
        default=SubmissionStatusEnum.pending,
    )
    revision_number = Column(INT, nullable=False, default=0)

    review_notes = Column(TEXT, nullable=True)
    reviewed_by = Column(CHAR(36), ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, default=utcnow)

    job = relationship("Job", back_populates="submissions")
    submitter = relationship("User", foreign_keys=[submitted_by])
