# elevatehub/services/job_service.py

import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import aiofiles
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.config import settings
from elevatehub.core.exceptions import (
    ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from elevatehub.core.permissions import ensure_role
from elevatehub.models.job import (
    Job, JobSubmission, JobStatusEnum, PaymentStatusEnum, SubmissionStatusEnum
)
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.job_repo import JobRepository
from elevatehub.repositories.user_repo import UserRepository
from elevatehub.schemas.job_schema import JobCreate, JobUpdate, WorkReview
from elevatehub.services.notification_service import NotificationService
from elevatehub.utils.time import is_future, to_naive_utc, utcnow

logger = logging.getLogger(__name__)

# Fields that carry money or scope; frozen once a freelancer is working
FINANCIAL_FIELDS = {"budget_amount", "budget_type", "category"}

ALLOWED_ATTACHMENT_TYPES = {
    "application/pdf": ".pdf",
    "application/zip": ".zip",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "text/plain": ".txt",
}

SUBMISSION_MIN_LENGTH = 20
SUBMISSION_MAX_LENGTH = 2000


def parse_job_status(value: Optional[str], default: Optional[JobStatusEnum] = None) -> Optional[JobStatusEnum]:
    """Query-string status filter; "all" disables filtering."""
    if value is None:
        return default
    if value == "all":
        return None
    try:
        return JobStatusEnum(value)
    except ValueError:
        raise ValidationError.for_field("status", f"Unknown job status '{value}'")


class JobService:
    def __init__(self, db: AsyncSession, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.job_repo = JobRepository(db)
        self.user_repo = UserRepository(db)
        self.notification_service = notification_service or NotificationService()

    async def _get_job(self, job_id: str) -> Job:
        job = await self.job_repo.get_job_by_id(job_id)
        if not job or not job.is_active:
            raise NotFoundError("Job not found")
        return job

    async def _get_owned_job(self, job_id: str, client: User) -> Job:
        job = await self._get_job(job_id)
        if job.client_id != client.user_id:
            raise ForbiddenError("You do not own this job")
        return job

    # --- Create / read ---

    async def create_job(self, client: User, data: JobCreate) -> Job:
        ensure_role(client, UserRoleEnum.client)
        deadline = to_naive_utc(data.deadline)
        if not is_future(deadline):
            raise ValidationError.for_field("deadline", "Deadline must be in the future")

        job = Job(
            client_id=client.user_id,
            title=data.title.strip(),
            description=data.description.strip(),
            category=data.category,
            budget_amount=data.budget_amount,
            budget_type=data.budget_type,
            currency=(data.currency or settings.DEFAULT_CURRENCY).upper(),
            deadline=deadline,
            skills=data.skills,
            max_revisions=settings.MAX_REVISIONS,
        )
        await self.job_repo.create_job(job)
        await self.db.commit()
        logger.info(f"Client {client.user_id} posted job {job.job_id}")
        return await self.job_repo.get_job_detail(job.job_id)

    async def get_job(self, job_id: str) -> Job:
        """Public job page; every read counts as a view."""
        await self.job_repo.increment_view_count(job_id)
        await self.db.commit()
        job = await self.job_repo.get_job_detail(job_id)
        if not job or not job.is_active:
            raise NotFoundError("Job not found")
        return job

    async def list_jobs(
        self,
        page: int,
        limit: int,
        category: Optional[str] = None,
        budget_min: Optional[float] = None,
        budget_max: Optional[float] = None,
        search: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Tuple[List[Job], int]:
        if budget_min is not None and budget_max is not None and budget_min > budget_max:
            raise ValidationError.for_field("budget_min", "budget_min cannot exceed budget_max")
        return await self.job_repo.list_jobs(
            page,
            limit,
            category=category,
            budget_min=budget_min,
            budget_max=budget_max,
            search=search,
            status=parse_job_status(status, default=JobStatusEnum.open),
        )

    async def list_my_jobs(
        self, client: User, page: int, limit: int, status: Optional[str] = None
    ) -> Tuple[List[Job], int]:
        ensure_role(client, UserRoleEnum.client)
        return await self.job_repo.list_jobs_by_client(
            client.user_id, page, limit, status=parse_job_status(status)
        )

    # --- Owner edits ---

    async def update_job(self, job_id: str, client: User, data: JobUpdate) -> Job:
        ensure_role(client, UserRoleEnum.client)
        job = await self._get_owned_job(job_id, client)

        changes = data.model_dump(exclude_unset=True)
        if not changes:
            raise ValidationError("No fields to update")
        if job.status in (JobStatusEnum.completed, JobStatusEnum.cancelled):
            raise InvalidStateError(f"A {job.status.value} job cannot be edited")
        if job.status != JobStatusEnum.open and FINANCIAL_FIELDS & changes.keys():
            raise InvalidStateError("Budget and category cannot be changed once work has started")

        for field in ("title", "description", "category", "budget_amount", "budget_type"):
            if field in changes and changes[field] is None:
                raise ValidationError.for_field(field, f"{field} cannot be empty")
        if "deadline" in changes:
            if changes["deadline"] is None:
                raise ValidationError.for_field("deadline", "deadline cannot be empty")
            changes["deadline"] = to_naive_utc(changes["deadline"])
            if not is_future(changes["deadline"]):
                raise ValidationError.for_field("deadline", "Deadline must be in the future")
        if changes.get("skills") is None:
            changes.pop("skills", None)

        # Only applies if nobody moved the job on since we read it
        touched = await self.job_repo.compare_and_set(job.job_id, job.status, **changes)
        if not touched:
            await self.db.rollback()
            raise InvalidStateError("The job changed while it was being edited, please retry")
        await self.db.commit()
        return await self.job_repo.get_job_detail(job.job_id)

    async def delete_job(self, job_id: str, client: User) -> None:
        """Soft delete: hidden from listings and closed for applications."""
        ensure_role(client, UserRoleEnum.client)
        job = await self._get_owned_job(job_id, client)
        if job.status != JobStatusEnum.open or job.payment_status == PaymentStatusEnum.in_escrow:
            raise InvalidStateError("Only open jobs without an escrow can be deleted")

        touched = await self.job_repo.compare_and_set(
            job.job_id,
            JobStatusEnum.open,
            extra_where=(Job.payment_status != PaymentStatusEnum.in_escrow,),
            is_active=False,
            status=JobStatusEnum.cancelled,
            cancelled_at=utcnow(),
            cancellation_reason="Deleted by client",
        )
        if not touched:
            await self.db.rollback()
            raise InvalidStateError("Only open jobs without an escrow can be deleted")
        await self.db.commit()
        logger.info(f"Client {client.user_id} deleted job {job.job_id}")

    async def cancel_job(self, job_id: str, client: User, reason: Optional[str] = None) -> Job:
        ensure_role(client, UserRoleEnum.client)
        job = await self._get_owned_job(job_id, client)
        if job.status not in (JobStatusEnum.open, JobStatusEnum.in_progress):
            raise InvalidStateError(f"A job that is {job.status.value} cannot be cancelled")
        if job.payment_status == PaymentStatusEnum.in_escrow:
            raise InvalidStateError("This job has funds in escrow; refund the escrow instead")

        touched = await self.job_repo.compare_and_set(
            job.job_id,
            (JobStatusEnum.open, JobStatusEnum.in_progress),
            extra_where=(Job.payment_status != PaymentStatusEnum.in_escrow,),
            status=JobStatusEnum.cancelled,
            cancelled_at=utcnow(),
            cancellation_reason=reason or "Cancelled by client",
        )
        if not touched:
            await self.db.rollback()
            raise InvalidStateError("The job can no longer be cancelled")
        await self.db.commit()
        logger.info(f"Client {client.user_id} cancelled job {job.job_id}")
        return await self.job_repo.get_job_detail(job.job_id)

    # --- Work submission / review ---

    async def _save_attachment(self, file: UploadFile) -> str:
        extension = ALLOWED_ATTACHMENT_TYPES.get(file.content_type)
        if extension is None:
            raise ValidationError.for_field(
                "attachment", "Attachment must be a PDF, ZIP, PNG, JPEG or plain-text file"
            )
        upload_dir = Path(settings.UPLOAD_DIR)
        os.makedirs(upload_dir, exist_ok=True)
        filename = f"{uuid.uuid4()}{extension}"
        async with aiofiles.open(upload_dir / filename, "wb") as f:
            content = await file.read()
            await f.write(content)
        return f"{settings.UPLOAD_URL_PREFIX}{filename}"

    async def submit_work(
        self,
        job_id: str,
        freelancer: User,
        description: str,
        attachment: Optional[UploadFile] = None,
    ) -> Job:
        ensure_role(freelancer, UserRoleEnum.freelancer)
        description = (description or "").strip()
        if not SUBMISSION_MIN_LENGTH <= len(description) <= SUBMISSION_MAX_LENGTH:
            raise ValidationError.for_field(
                "description",
                f"Description must be between {SUBMISSION_MIN_LENGTH} and {SUBMISSION_MAX_LENGTH} characters",
            )

        job = await self._get_job(job_id)
        if job.accepted_freelancer_id != freelancer.user_id:
            raise ForbiddenError("Only the assigned freelancer can submit work for this job")
        if job.status != JobStatusEnum.in_progress:
            raise InvalidStateError("Work can only be submitted while the job is in progress")
        if job.revision_count >= job.max_revisions:
            raise InvalidStateError("The maximum number of revisions has been reached")

        touched = await self.job_repo.compare_and_set(
            job.job_id,
            JobStatusEnum.in_progress,
            extra_where=(
                Job.accepted_freelancer_id == freelancer.user_id,
                Job.revision_count < Job.max_revisions,
            ),
            status=JobStatusEnum.under_review,
        )
        if not touched:
            await self.db.rollback()
            raise InvalidStateError("Work can only be submitted while the job is in progress")

        attachment_url = None
        if attachment is not None and attachment.filename:
            attachment_url = await self._save_attachment(attachment)

        submission = JobSubmission(
            job_id=job.job_id,
            submitted_by=freelancer.user_id,
            description=description,
            attachment_url=attachment_url,
            status=SubmissionStatusEnum.pending,
            revision_number=job.revision_count,
            submitted_at=utcnow(),
        )
        await self.job_repo.add_submission(submission)
        await self.db.commit()
        logger.info(f"Freelancer {freelancer.user_id} submitted work for job {job.job_id}")

        await self.notification_service.notify_user(
            job.client_id,
            "work.submitted",
            {"job_id": job.job_id, "submission_id": submission.submission_id, "title": job.title},
        )
        return await self.job_repo.get_job_detail(job.job_id)

    async def review_work(self, job_id: str, submission_id: str, client: User, review: WorkReview) -> Job:
        ensure_role(client, UserRoleEnum.client)
        job = await self._get_owned_job(job_id, client)
        if job.status != JobStatusEnum.under_review:
            raise InvalidStateError("There is no work under review for this job")
        submission = await self.job_repo.get_submission(job.job_id, submission_id)
        if not submission:
            raise NotFoundError("Submission not found")
        if submission.status != SubmissionStatusEnum.pending:
            raise InvalidStateError("This submission has already been reviewed")

        now = utcnow()
        approved = review.action == "approve"
        resolved = await self.job_repo.resolve_submission(
            submission.submission_id,
            status=SubmissionStatusEnum.approved if approved else SubmissionStatusEnum.rejected,
            review_notes=review.review_notes,
            reviewed_by=client.user_id,
            reviewed_at=now,
        )
        if approved:
            moved = await self.job_repo.compare_and_set(
                job.job_id, JobStatusEnum.under_review,
                status=JobStatusEnum.completed,
                completed_at=now,
            )
        else:
            moved = await self.job_repo.compare_and_set(
                job.job_id, JobStatusEnum.under_review,
                status=JobStatusEnum.in_progress,
                revision_count=Job.revision_count + 1,
            )
        if not (resolved and moved):
            await self.db.rollback()
            raise InvalidStateError("This submission has already been reviewed")

        if approved:
            await self.user_repo.record_completed_job(job.accepted_freelancer_id, review.rating)
        await self.db.commit()
        logger.info(f"Client {client.user_id} {review.action}d submission {submission.submission_id} on job {job.job_id}")

        await self.notification_service.notify_user(
            job.accepted_freelancer_id,
            "work.reviewed",
            {
                "job_id": job.job_id,
                "submission_id": submission.submission_id,
                "action": review.action,
                "review_notes": review.review_notes,
            },
        )
        return await self.job_repo.get_job_detail(job.job_id)
