# elevatehub/routers/admin_router.py

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from elevatehub.core.database import get_db
from elevatehub.core.security import require_roles
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.routers.deps import PageParams, page_params
from elevatehub.schemas.common_schema import ApiResponse, Pagination
from elevatehub.schemas.user_schema import SuspendRequest, UserOut
from elevatehub.services.user_service import UserService

router = APIRouter(prefix="/admin", tags=["Admin"])

admin_only = require_roles(UserRoleEnum.admin)


@router.get("/users", response_model=ApiResponse[List[UserOut]])
async def list_users(
    role: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=100),
    is_suspended: Optional[bool] = None,
    is_active: Optional[bool] = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    """Every account, deleted ones included unless `is_active` says otherwise."""
    service = UserService(db)
    users, total = await service.list_users(
        admin,
        paging.page,
        paging.limit,
        role=role,
        search=search,
        is_suspended=is_suspended,
        is_active=is_active,
    )
    return ApiResponse[List[UserOut]](
        data=[UserOut.model_validate(u) for u in users],
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


@router.get("/users/{user_id}", response_model=ApiResponse[UserOut])
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = UserService(db)
    user = await service.get_user_for_admin(admin, user_id)
    return ApiResponse[UserOut](data=UserOut.model_validate(user))


@router.delete("/users/{user_id}", response_model=ApiResponse[UserOut])
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = UserService(db)
    user = await service.delete_user(admin, user_id)
    return ApiResponse[UserOut](message="User deleted", data=UserOut.model_validate(user))


@router.patch("/users/{user_id}/suspend", response_model=ApiResponse[UserOut])
async def suspend_user(
    user_id: str,
    body: SuspendRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = UserService(db)
    user = await service.suspend_user(admin, user_id, body.reason)
    return ApiResponse[UserOut](message="User suspended", data=UserOut.model_validate(user))


@router.patch("/users/{user_id}/unsuspend", response_model=ApiResponse[UserOut])
async def unsuspend_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(admin_only),
):
    service = UserService(db)
    user = await service.unsuspend_user(admin, user_id)
    return ApiResponse[UserOut](message="User unsuspended", data=UserOut.model_validate(user))
