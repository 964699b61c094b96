# models/user.py
import enum
import uuid
from sqlalchemy import Column, String, Boolean, Enum, TEXT, JSON, INT, Float, DateTime, CHAR
from sqlalchemy.orm import relationship
from elevatehub.core.database import Base
from elevatehub.utils.time import utcnow


class UserRoleEnum(str, enum.Enum):
    freelancer = "freelancer"
    client = "client"
    admin = "admin"


class User(Base):
    __tablename__ = "users"

    user_id = Column(CHAR(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Subject ID issued by the external identity provider
    external_id = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    profile_image = Column(String(500), default="")
    role = Column(
        Enum(UserRoleEnum, values_callable=lambda obj: [e.value for e in obj], name="user_role_enum"),
        nullable=False,
        default=UserRoleEnum.freelancer,
        index=True,
    )

    # Profile completion
    bio = Column(TEXT, default="")
    skills = Column(JSON, default=list)
    hourly_rate = Column(Float, nullable=True)
    location = Column(String(255), default="")
    phone = Column(String(50), default="")

    # Soft delete by an admin
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    deleted_at = Column(DateTime, nullable=True)

    # Suspension
    is_suspended = Column(Boolean, default=False, nullable=False)
    suspended_at = Column(DateTime, nullable=True)
    suspension_reason = Column(String(500), nullable=True)
    suspended_by = Column(CHAR(36), nullable=True)

    # Reputation (running average over approved jobs)
    rating = Column(Float, default=0.0, nullable=False)
    rating_count = Column(INT, default=0, nullable=False)
    completed_jobs = Column(INT, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    jobs_posted = relationship(
        "Job",
        foreign_keys="[Job.client_id]",
        back_populates="client",
    )
    applications = relationship(
        "Application",
        back_populates="freelancer",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
