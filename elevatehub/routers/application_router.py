# elevatehub/routers/application_router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from elevatehub.core.database import get_db
from elevatehub.core.security import get_current_user
from elevatehub.models.user import User
from elevatehub.routers.deps import PageParams, page_params
from elevatehub.schemas.application_schema import (
    ApplicationCreate,
    ApplicationDetailOut,
    ApplicationStatusUpdate,
    ApplicationWithFreelancerOut,
    ApplicationWithJobOut,
)
from elevatehub.schemas.common_schema import ApiResponse, Pagination
from elevatehub.services.application_service import ApplicationService

router = APIRouter(
    prefix="/applications",
    tags=["Applications"],
    dependencies=[Depends(get_current_user)],
)

# Applying and listing a job's applications hang off /jobs/{job_id}
job_application_router = APIRouter(
    prefix="/jobs",
    tags=["Applications"],
    dependencies=[Depends(get_current_user)],
)


@job_application_router.post(
    "/{job_id}/applications",
    response_model=ApiResponse[ApplicationDetailOut],
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_job(
    job_id: str,
    application_data: ApplicationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ApplicationService(db)
    application = await service.apply(job_id, current_user, application_data)
    return ApiResponse[ApplicationDetailOut](
        message="Application submitted",
        data=ApplicationDetailOut.model_validate(application),
    )


@job_application_router.get(
    "/{job_id}/applications",
    response_model=ApiResponse[List[ApplicationWithFreelancerOut]],
)
async def list_job_applications(
    job_id: str,
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Job owner: every application received, with the applicant."""
    service = ApplicationService(db)
    applications, total = await service.list_job_applications(
        job_id, current_user, paging.page, paging.limit, status=status_filter
    )
    return ApiResponse[List[ApplicationWithFreelancerOut]](
        data=[ApplicationWithFreelancerOut.model_validate(a) for a in applications],
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


@router.get("/my", response_model=ApiResponse[List[ApplicationWithJobOut]])
async def list_my_applications(
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ApplicationService(db)
    applications, total = await service.list_my_applications(
        current_user, paging.page, paging.limit, status=status_filter
    )
    return ApiResponse[List[ApplicationWithJobOut]](
        data=[ApplicationWithJobOut.model_validate(a) for a in applications],
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


@router.get("/{application_id}", response_model=ApiResponse[ApplicationDetailOut])
async def get_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ApplicationService(db)
    application = await service.get_application(application_id, current_user)
    return ApiResponse[ApplicationDetailOut](data=ApplicationDetailOut.model_validate(application))


@router.put("/{application_id}/status", response_model=ApiResponse[ApplicationDetailOut])
async def update_application_status(
    application_id: str,
    update_data: ApplicationStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Job owner accepts or rejects a pending application.

    Accepting starts the job and rejects every other pending application.
    """
    service = ApplicationService(db)
    application = await service.update_status(
        application_id, current_user, update_data.status, update_data.rejection_reason
    )
    return ApiResponse[ApplicationDetailOut](
        message=f"Application {application.status.value}",
        data=ApplicationDetailOut.model_validate(application),
    )


@router.patch("/{application_id}/withdraw", response_model=ApiResponse[ApplicationDetailOut])
async def withdraw_application(
    application_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = ApplicationService(db)
    application = await service.withdraw(application_id, current_user)
    return ApiResponse[ApplicationDetailOut](
        message="Application withdrawn",
        data=ApplicationDetailOut.model_validate(application),
    )
