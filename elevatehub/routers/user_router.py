# elevatehub/routers/user_router.py

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.database import get_db
from elevatehub.core.security import get_current_user
from elevatehub.models.user import User
from elevatehub.schemas.common_schema import ApiResponse
from elevatehub.schemas.user_schema import UserOut, UserProfileUpdate, UserPublicProfile
from elevatehub.services.user_service import UserService

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)


@router.get("/me", response_model=ApiResponse[UserOut])
async def read_current_user(current_user: User = Depends(get_current_user)):
    """The caller's own record; created on first sight of a new identity."""
    return ApiResponse[UserOut](data=UserOut.model_validate(current_user))


@router.put("/me", response_model=ApiResponse[UserOut])
async def update_current_user(
    update_data: UserProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Profile completion. `role` may be set to freelancer or client, never admin.
    """
    service = UserService(db)
    user = await service.update_me(current_user, update_data)
    return ApiResponse[UserOut](message="Profile updated", data=UserOut.model_validate(user))


@router.get("/{user_id}", response_model=ApiResponse[UserPublicProfile])
async def read_public_profile(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = UserService(db)
    user = await service.get_public_profile(user_id)
    return ApiResponse[UserPublicProfile](data=UserPublicProfile.model_validate(user))
