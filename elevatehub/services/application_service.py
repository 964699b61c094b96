# elevatehub/services/application_service.py

import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from elevatehub.core.locks import job_locks
from elevatehub.core.permissions import ensure_role
from elevatehub.models.application import Application, ApplicationStatusEnum
from elevatehub.models.job import Job, JobStatusEnum
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.application_repo import ApplicationRepository
from elevatehub.repositories.job_repo import JobRepository
from elevatehub.schemas.application_schema import ApplicationCreate
from elevatehub.services.notification_service import NotificationService
from elevatehub.utils.time import is_future, to_naive_utc, utcnow

logger = logging.getLogger(__name__)

AUTO_REJECT_REASON = "Another freelancer was accepted for this job"
DUPLICATE_MESSAGE = "You have already applied to this job"


def parse_application_status(value: Optional[str]) -> Optional[ApplicationStatusEnum]:
    if value is None or value == "all":
        return None
    try:
        return ApplicationStatusEnum(value)
    except ValueError:
        raise ValidationError.for_field("status", f"Unknown application status '{value}'")


class ApplicationService:
    def __init__(self, db: AsyncSession, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.application_repo = ApplicationRepository(db)
        self.job_repo = JobRepository(db)
        self.notification_service = notification_service or NotificationService()

    async def apply(self, job_id: str, freelancer: User, data: ApplicationCreate) -> Application:
        ensure_role(freelancer, UserRoleEnum.freelancer)

        job = await self.job_repo.get_job_by_id(job_id)
        if not job or not job.is_active:
            raise NotFoundError("Job not found")
        if job.status != JobStatusEnum.open:
            raise InvalidStateError("This job is no longer accepting applications")
        if job.client_id == freelancer.user_id:
            raise ForbiddenError("You cannot apply to your own job")
        if await self.application_repo.find_by_job_and_freelancer(job_id, freelancer.user_id):
            raise ConflictError(DUPLICATE_MESSAGE)

        proposed_deadline = to_naive_utc(data.proposed_deadline)
        if proposed_deadline is not None and not is_future(proposed_deadline):
            raise ValidationError.for_field("proposed_deadline", "Proposed deadline must be in the future")

        application = Application(
            job_id=job_id,
            freelancer_id=freelancer.user_id,
            cover_letter=data.cover_letter.strip(),
            proposed_rate=data.proposed_rate,
            proposed_deadline=proposed_deadline,
            status=ApplicationStatusEnum.pending,
        )
        try:
            await self.application_repo.create_application(application)
            # Counted only if the job is still open at write time
            if not await self.job_repo.increment_applications_count(job_id):
                await self.db.rollback()
                raise InvalidStateError("This job is no longer accepting applications")
            await self.db.commit()
        except IntegrityError:
            # Unique (job_id, freelancer_id): a concurrent duplicate got in first
            await self.db.rollback()
            raise ConflictError(DUPLICATE_MESSAGE)

        logger.info(f"Freelancer {freelancer.user_id} applied to job {job_id} ({application.application_id})")
        return await self.application_repo.get_application_detail(application.application_id)

    async def list_my_applications(
        self, freelancer: User, page: int, limit: int, status: Optional[str] = None
    ) -> Tuple[List[Application], int]:
        ensure_role(freelancer, UserRoleEnum.freelancer)
        return await self.application_repo.list_by_freelancer(
            freelancer.user_id, page, limit, status=parse_application_status(status)
        )

    async def list_job_applications(
        self, job_id: str, client: User, page: int, limit: int, status: Optional[str] = None
    ) -> Tuple[List[Application], int]:
        ensure_role(client, UserRoleEnum.client)
        job = await self.job_repo.get_job_by_id(job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.client_id != client.user_id:
            raise ForbiddenError("You do not own this job")
        return await self.application_repo.list_by_job(
            job_id, page, limit, status=parse_application_status(status)
        )

    async def get_application(self, application_id: str, user: User) -> Application:
        application = await self.application_repo.get_application_detail(application_id)
        if not application:
            raise NotFoundError("Application not found")
        allowed = {application.freelancer_id, application.job.client_id}
        if user.user_id not in allowed and user.role != UserRoleEnum.admin:
            raise ForbiddenError("You cannot view this application")
        return application

    async def update_status(
        self,
        application_id: str,
        client: User,
        new_status: str,
        rejection_reason: Optional[str] = None,
    ) -> Application:
        """Job owner accepts or rejects a pending application."""
        ensure_role(client, UserRoleEnum.client)
        if new_status not in (ApplicationStatusEnum.accepted.value, ApplicationStatusEnum.rejected.value):
            raise ValidationError.for_field("status", "Status must be either 'accepted' or 'rejected'")

        application = await self.application_repo.get_application_by_id(application_id)
        if not application:
            raise NotFoundError("Application not found")
        job = await self.job_repo.get_job_by_id(application.job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.client_id != client.user_id:
            raise ForbiddenError("You do not own this job")
        if application.status != ApplicationStatusEnum.pending:
            raise InvalidStateError("This application has already been processed")

        if new_status == ApplicationStatusEnum.accepted.value:
            return await self._accept(job, application)
        return await self._reject(job, application, rejection_reason)

    async def _accept(self, job: Job, application: Application) -> Application:
        """
        Accept one application, all in one transaction:
          1. job open -> in_progress with the accepted freelancer (conditional)
          2. application pending -> accepted (conditional)
          3. every other pending application of the job -> rejected
        The per-job lock orders accepts inside this process; the conditional
        updates decide the winner across processes.
        """
        async with job_locks.hold(job.job_id):
            now = utcnow()
            started = await self.job_repo.compare_and_set(
                job.job_id,
                JobStatusEnum.open,
                extra_where=(Job.is_active.is_(True),),
                status=JobStatusEnum.in_progress,
                accepted_freelancer_id=application.freelancer_id,
                started_at=now,
            )
            if not started:
                await self.db.rollback()
                raise InvalidStateError("This job is no longer open")

            accepted = await self.application_repo.compare_and_set_status(
                application.application_id,
                ApplicationStatusEnum.pending,
                status=ApplicationStatusEnum.accepted,
                status_changed_at=now,
            )
            if not accepted:
                await self.db.rollback()
                raise InvalidStateError("This application has already been processed")

            rejected_ids = await self.application_repo.reject_other_pending(
                job.job_id, application.application_id, AUTO_REJECT_REASON, now
            )
            await self.db.commit()

        logger.info(
            f"Job {job.job_id}: accepted application {application.application_id} "
            f"(freelancer {application.freelancer_id}), auto-rejected {len(rejected_ids)}"
        )
        await self.notification_service.notify_user(
            application.freelancer_id,
            "application.accepted",
            {"application_id": application.application_id, "job_id": job.job_id, "title": job.title},
        )
        for freelancer_id in rejected_ids:
            await self.notification_service.notify_user(
                freelancer_id,
                "application.rejected",
                {"job_id": job.job_id, "title": job.title, "reason": AUTO_REJECT_REASON},
            )
        return await self.application_repo.get_application_detail(application.application_id)

    async def _reject(self, job: Job, application: Application, reason: Optional[str]) -> Application:
        rejected = await self.application_repo.compare_and_set_status(
            application.application_id,
            ApplicationStatusEnum.pending,
            status=ApplicationStatusEnum.rejected,
            rejection_reason=reason,
            status_changed_at=utcnow(),
        )
        if not rejected:
            await self.db.rollback()
            raise InvalidStateError("This application has already been processed")
        await self.db.commit()
        logger.info(f"Job {job.job_id}: rejected application {application.application_id}")

        await self.notification_service.notify_user(
            application.freelancer_id,
            "application.rejected",
            {"application_id": application.application_id, "job_id": job.job_id, "title": job.title, "reason": reason},
        )
        return await self.application_repo.get_application_detail(application.application_id)

    async def withdraw(self, application_id: str, freelancer: User) -> Application:
        ensure_role(freelancer, UserRoleEnum.freelancer)
        application = await self.application_repo.get_application_by_id(application_id)
        if not application:
            raise NotFoundError("Application not found")
        if application.freelancer_id != freelancer.user_id:
            raise ForbiddenError("You can only withdraw your own applications")
        if application.status != ApplicationStatusEnum.pending:
            raise InvalidStateError("Only pending applications can be withdrawn")

        withdrawn = await self.application_repo.compare_and_set_status(
            application.application_id,
            ApplicationStatusEnum.pending,
            status=ApplicationStatusEnum.withdrawn,
            status_changed_at=utcnow(),
        )
        if not withdrawn:
            await self.db.rollback()
            raise InvalidStateError("Only pending applications can be withdrawn")
        await self.db.commit()
        logger.info(f"Freelancer {freelancer.user_id} withdrew application {application.application_id}")
        return await self.application_repo.get_application_detail(application.application_id)
