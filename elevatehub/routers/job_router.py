# elevatehub/routers/job_router.py

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from elevatehub.core.database import get_db
from elevatehub.core.security import get_current_user
from elevatehub.models.user import User
from elevatehub.routers.deps import PageParams, page_params
from elevatehub.schemas.common_schema import ApiResponse, Pagination
from elevatehub.schemas.job_schema import JobCancel, JobCreate, JobDetailOut, JobOut, JobUpdate, WorkReview
from elevatehub.services.job_service import JobService

router = APIRouter(prefix="/jobs", tags=["Jobs"])


# -----------------------------------------------------------------
# Public
# -----------------------------------------------------------------
@router.get("", response_model=ApiResponse[List[JobOut]])
async def list_jobs(
    category: Optional[str] = None,
    budget_min: Optional[float] = Query(None, ge=0),
    budget_max: Optional[float] = Query(None, ge=0),
    search: Optional[str] = Query(None, max_length=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
):
    """
    Active jobs, newest first. `status` defaults to open; `status=all`
    lists every status.
    """
    service = JobService(db)
    jobs, total = await service.list_jobs(
        paging.page,
        paging.limit,
        category=category,
        budget_min=budget_min,
        budget_max=budget_max,
        search=search,
        status=status_filter,
    )
    return ApiResponse[List[JobOut]](
        data=[JobOut.model_validate(j) for j in jobs],
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


# -----------------------------------------------------------------
# Client: own jobs (declared before /{job_id})
# -----------------------------------------------------------------
@router.get("/my", response_model=ApiResponse[List[JobOut]])
async def list_my_jobs(
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = JobService(db)
    jobs, total = await service.list_my_jobs(current_user, paging.page, paging.limit, status=status_filter)
    return ApiResponse[List[JobOut]](
        data=[JobOut.model_validate(j) for j in jobs],
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


@router.get("/{job_id}", response_model=ApiResponse[JobDetailOut])
async def get_job(job_id: str, db: AsyncSession = Depends(get_db)):
    service = JobService(db)
    job = await service.get_job(job_id)
    return ApiResponse[JobDetailOut](data=JobDetailOut.model_validate(job))


@router.post("", response_model=ApiResponse[JobDetailOut], status_code=status.HTTP_201_CREATED)
async def create_job(
    job_data: JobCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = JobService(db)
    job = await service.create_job(current_user, job_data)
    return ApiResponse[JobDetailOut](message="Job posted", data=JobDetailOut.model_validate(job))


@router.put("/{job_id}", response_model=ApiResponse[JobDetailOut])
async def update_job(
    job_id: str,
    job_data: JobUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Budget and category are frozen once the job has started."""
    service = JobService(db)
    job = await service.update_job(job_id, current_user, job_data)
    return ApiResponse[JobDetailOut](message="Job updated", data=JobDetailOut.model_validate(job))


@router.delete("/{job_id}", response_model=ApiResponse[None])
async def delete_job(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = JobService(db)
    await service.delete_job(job_id, current_user)
    return ApiResponse[None](message="Job deleted")


@router.post("/{job_id}/cancel", response_model=ApiResponse[JobDetailOut])
async def cancel_job(
    job_id: str,
    body: Optional[JobCancel] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = JobService(db)
    job = await service.cancel_job(job_id, current_user, reason=body.reason if body else None)
    return ApiResponse[JobDetailOut](message="Job cancelled", data=JobDetailOut.model_validate(job))


# -----------------------------------------------------------------
# Work submission and review
# -----------------------------------------------------------------
@router.post(
    "/{job_id}/submissions",
    response_model=ApiResponse[JobDetailOut],
    status_code=status.HTTP_201_CREATED,
)
async def submit_work(
    job_id: str,
    description: str = Form(...),
    attachment: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Assigned freelancer hands in work (form-data, optional attachment).
    Moves the job to under_review.
    """
    service = JobService(db)
    job = await service.submit_work(job_id, current_user, description, attachment)
    return ApiResponse[JobDetailOut](message="Work submitted", data=JobDetailOut.model_validate(job))


@router.patch("/{job_id}/submissions/{submission_id}/review", response_model=ApiResponse[JobDetailOut])
async def review_work(
    job_id: str,
    submission_id: str,
    review: WorkReview,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = JobService(db)
    job = await service.review_work(job_id, submission_id, current_user, review)
    message = "Work approved" if review.action == "approve" else "Revision requested"
    return ApiResponse[JobDetailOut](message=message, data=JobDetailOut.model_validate(job))
