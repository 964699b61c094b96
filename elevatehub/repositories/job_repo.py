# elevatehub/repositories/job_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import joinedload, selectinload
from typing import Iterable, List, Optional, Tuple, Union

from elevatehub.models.job import Job, JobSubmission, JobStatusEnum, SubmissionStatusEnum
from elevatehub.repositories.pagination import paginate


class JobRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _with_people():
        return (joinedload(Job.client), joinedload(Job.accepted_freelancer))

    async def get_job_by_id(self, job_id: str) -> Optional[Job]:
        stmt = select(Job).where(Job.job_id == job_id).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_job_detail(self, job_id: str) -> Optional[Job]:
        """
        Job with its client, accepted freelancer and submissions loaded.
        Always re-reads the row so conditional updates made earlier in the
        same session are visible.
        """
        stmt = (
            select(Job)
            .where(Job.job_id == job_id)
            .options(*self._with_people(), selectinload(Job.submissions))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def list_jobs(
        self,
        page: int,
        limit: int,
        category: Optional[str] = None,
        budget_min: Optional[float] = None,
        budget_max: Optional[float] = None,
        search: Optional[str] = None,
        status: Optional[JobStatusEnum] = JobStatusEnum.open,
    ) -> Tuple[List[Job], int]:
        stmt = select(Job).where(Job.is_active.is_(True))
        if status is not None:
            stmt = stmt.where(Job.status == status)
        if category:
            stmt = stmt.where(Job.category == category)
        if budget_min is not None:
            stmt = stmt.where(Job.budget_amount >= budget_min)
        if budget_max is not None:
            stmt = stmt.where(Job.budget_amount <= budget_max)
        if search:
            term = search.strip().lower()
            stmt = stmt.where(or_(
                func.lower(Job.title).contains(term, autoescape=True),
                func.lower(Job.description).contains(term, autoescape=True),
            ))
        return await paginate(
            self.db, stmt, page, limit,
            options=self._with_people(),
            order_by=(Job.created_at.desc(),),
        )

    async def list_jobs_by_client(
        self, client_id: str, page: int, limit: int, status: Optional[JobStatusEnum] = None
    ) -> Tuple[List[Job], int]:
        stmt = select(Job).where(Job.client_id == client_id)
        if status is not None:
            stmt = stmt.where(Job.status == status)
        return await paginate(
            self.db, stmt, page, limit,
            options=self._with_people(),
            order_by=(Job.created_at.desc(),),
        )

    async def create_job(self, job: Job) -> Job:
        self.db.add(job)
        await self.db.flush()
        return job

    async def increment_view_count(self, job_id: str) -> None:
        stmt = (
            update(Job)
            .where(Job.job_id == job_id)
            .values(view_count=Job.view_count + 1)
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)

    async def increment_applications_count(self, job_id: str) -> int:
        """
        Count one more application, but only while the job still takes them.
        Returns the number of rows touched (0 means the job closed meanwhile).
        """
        stmt = (
            update(Job)
            .where(
                Job.job_id == job_id,
                Job.status == JobStatusEnum.open,
                Job.is_active.is_(True),
            )
            .values(applications_count=Job.applications_count + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def compare_and_set(
        self,
        job_id: str,
        expected: Union[JobStatusEnum, Iterable[JobStatusEnum]],
        extra_where: Iterable = (),
        **values,
    ) -> int:
        """
        Conditional update: apply `values` only if the job is currently in one
        of the `expected` statuses (and matches `extra_where`).
        Returns the rowcount; 0 means somebody else got there first.
        """
        if isinstance(expected, JobStatusEnum):
            expected = (expected,)
        stmt = (
            update(Job)
            .where(Job.job_id == job_id, Job.status.in_(list(expected)), *extra_where)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    # --- Submissions ---

    async def add_submission(self, submission: JobSubmission) -> JobSubmission:
        self.db.add(submission)
        await self.db.flush()
        return submission

    async def get_submission(self, job_id: str, submission_id: str) -> Optional[JobSubmission]:
        stmt = (
            select(JobSubmission)
            .where(JobSubmission.submission_id == submission_id, JobSubmission.job_id == job_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def resolve_submission(self, submission_id: str, **values) -> int:
        """pending -> approved/rejected, only once."""
        stmt = (
            update(JobSubmission)
            .where(
                JobSubmission.submission_id == submission_id,
                JobSubmission.status == SubmissionStatusEnum.pending,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
