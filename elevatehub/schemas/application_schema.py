# elevatehub/schemas/application_schema.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional
from elevatehub.models.application import ApplicationStatusEnum
from elevatehub.schemas.job_schema import JobSummaryWithClient
from elevatehub.schemas.user_schema import UserSummary


class ApplicationCreate(BaseModel):
    cover_letter: str = Field(..., min_length=50, max_length=2000)
    proposed_rate: float = Field(..., gt=0)
    proposed_deadline: Optional[datetime] = None


class ApplicationStatusUpdate(BaseModel):
    """Body for the job owner's accept/reject decision."""
    status: str  # "accepted" or "rejected"
    rejection_reason: Optional[str] = Field(None, max_length=500)


class ApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    application_id: str
    job_id: str
    freelancer_id: str
    cover_letter: str
    proposed_rate: float
    proposed_deadline: Optional[datetime] = None
    status: ApplicationStatusEnum
    rejection_reason: Optional[str] = None
    status_changed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


# Freelancer's view: which job, posted by whom
class ApplicationWithJobOut(ApplicationOut):
    job: Optional[JobSummaryWithClient] = None


# Client's view: who applied
class ApplicationWithFreelancerOut(ApplicationOut):
    freelancer: Optional[UserSummary] = None


class ApplicationDetailOut(ApplicationOut):
    job: Optional[JobSummaryWithClient] = None
    freelancer: Optional[UserSummary] = None
