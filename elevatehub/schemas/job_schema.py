# elevatehub/schemas/job_schema.py
from pydantic import BaseModel, Field, field_validator, ConfigDict
from datetime import datetime
from typing import List, Literal, Optional
from elevatehub.models.job import (
    JOB_CATEGORIES, BudgetTypeEnum, JobStatusEnum, PaymentStatusEnum, SubmissionStatusEnum
)
from elevatehub.schemas.user_schema import UserSummary


def _check_category(v: Optional[str]) -> Optional[str]:
    if v is not None and v not in JOB_CATEGORIES:
        raise ValueError(f"category must be one of: {', '.join(JOB_CATEGORIES)}")
    return v


def _clean_skills(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    return [s.strip() for s in v if s and s.strip()]


# --- Input ---
class JobCreate(BaseModel):
    title: str = Field(..., min_length=10, max_length=100)
    description: str = Field(..., min_length=50, max_length=5000)
    category: str
    budget_amount: float = Field(..., gt=0)
    budget_type: BudgetTypeEnum = BudgetTypeEnum.fixed
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    deadline: datetime
    skills: List[str] = []

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        return _check_category(v)

    @field_validator("skills")
    @classmethod
    def validate_skills(cls, v: List[str]) -> List[str]:
        return _clean_skills(v)


# All fields optional; which ones may change depends on the job status
class JobUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=10, max_length=100)
    description: Optional[str] = Field(None, min_length=50, max_length=5000)
    category: Optional[str] = None
    budget_amount: Optional[float] = Field(None, gt=0)
    budget_type: Optional[BudgetTypeEnum] = None
    deadline: Optional[datetime] = None
    skills: Optional[List[str]] = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: Optional[str]) -> Optional[str]:
        return _check_category(v)

    @field_validator("skills")
    @classmethod
    def validate_skills(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_skills(v)


class JobCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class WorkReview(BaseModel):
    action: Literal["approve", "reject"]
    review_notes: Optional[str] = Field(None, max_length=1000)
    rating: Optional[int] = Field(None, ge=1, le=5)


# --- Output ---
class SubmissionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    submission_id: str
    job_id: str
    submitted_by: str
    description: str
    attachment_url: Optional[str] = None
    status: SubmissionStatusEnum
    revision_number: int
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    submitted_at: datetime


class JobSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: str
    client_id: str
    title: str
    category: str
    budget_amount: float
    budget_type: BudgetTypeEnum
    currency: str
    deadline: datetime
    status: JobStatusEnum


class JobSummaryWithClient(JobSummary):
    client: Optional[UserSummary] = None


class JobOut(JobSummary):
    description: str
    skills: List[str] = []
    accepted_freelancer_id: Optional[str] = None
    applications_count: int
    view_count: int
    payment_status: PaymentStatusEnum
    escrow_amount: Optional[float] = None
    revision_count: int
    max_revisions: int
    is_active: bool
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    client: Optional[UserSummary] = None
    accepted_freelancer: Optional[UserSummary] = None


class JobDetailOut(JobOut):
    submissions: List[SubmissionOut] = []
