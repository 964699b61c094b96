# elevatehub/schemas/user_schema.py
from pydantic import BaseModel, EmailStr, Field, field_validator, ConfigDict
from datetime import datetime
from typing import List, Optional
from elevatehub.models.user import UserRoleEnum


# Claims extracted from a verified identity-provider token
class IdentityClaims(BaseModel):
    sub: str
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    picture: str = ""


# Compact form used when a user is nested inside another resource
class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    first_name: str
    last_name: str
    profile_image: Optional[str] = None
    role: UserRoleEnum
    rating: float = 0.0


class UserPublicProfile(UserSummary):
    bio: Optional[str] = None
    skills: List[str] = []
    hourly_rate: Optional[float] = None
    location: Optional[str] = None
    rating_count: int = 0
    completed_jobs: int = 0
    created_at: datetime


# The caller's own record
class UserOut(UserPublicProfile):
    email: EmailStr
    phone: Optional[str] = None
    is_active: bool = True
    deleted_at: Optional[datetime] = None
    is_suspended: bool
    suspended_at: Optional[datetime] = None
    suspension_reason: Optional[str] = None
    updated_at: datetime


class UserProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    profile_image: Optional[str] = Field(None, max_length=500)
    role: Optional[UserRoleEnum] = None
    bio: Optional[str] = Field(None, max_length=1000)
    skills: Optional[List[str]] = None
    hourly_rate: Optional[float] = Field(None, ge=0)
    location: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator("role")
    @classmethod
    def no_self_promotion(cls, v: Optional[UserRoleEnum]) -> Optional[UserRoleEnum]:
        if v == UserRoleEnum.admin:
            raise ValueError("role must be either freelancer or client")
        return v

    @field_validator("skills")
    @classmethod
    def clean_skills(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is None:
            return v
        # drop blanks and duplicates, keep first-seen order
        seen = []
        for skill in (s.strip() for s in v):
            if skill and skill not in seen:
                seen.append(skill)
        return seen


class SuspendRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=500)
