# models/application.py
import enum
import uuid
from sqlalchemy import Column, String, TEXT, DECIMAL, DateTime, ForeignKey, Enum, CHAR, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from elevatehub.core.database import Base
from elevatehub.utils.time import utcnow


class ApplicationStatusEnum(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    withdrawn = "withdrawn"


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        # One application per (job, freelancer)
        UniqueConstraint("job_id", "freelancer_id", name="uq_application_job_freelancer"),
        Index("ix_applications_job_status", "job_id", "status"),
        Index("ix_applications_freelancer_status", "freelancer_id", "status"),
    )

    application_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    job_id = Column(CHAR(36), ForeignKey("jobs.job_id", ondelete="CASCADE"), nullable=False, index=True)
    freelancer_id = Column(CHAR(36), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)

    cover_letter = Column(TEXT, nullable=False)
    proposed_rate = Column(DECIMAL(12, 2, asdecimal=False), nullable=False)
    proposed_deadline = Column(DateTime, nullable=True)

    status = Column(
        Enum(ApplicationStatusEnum, values_callable=lambda obj: [e.value for e in obj], name="application_status_enum"),
        nullable=False,
        default=ApplicationStatusEnum.pending,
    )
    rejection_reason = Column(String(500), nullable=True)
    status_changed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    job = relationship("Job", back_populates="applications")
    freelancer = relationship("User", back_populates="applications")
