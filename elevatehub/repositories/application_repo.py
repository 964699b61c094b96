# elevatehub/repositories/application_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import joinedload, selectinload
from typing import List, Optional, Tuple

from elevatehub.models.application import Application, ApplicationStatusEnum
from elevatehub.models.job import Job
from elevatehub.repositories.pagination import paginate


class ApplicationRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_application_by_id(self, application_id: str) -> Optional[Application]:
        stmt = (
            select(Application)
            .where(Application.application_id == application_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_application_detail(self, application_id: str) -> Optional[Application]:
        """Application with its job (and the job's client) and the freelancer."""
        stmt = (
            select(Application)
            .where(Application.application_id == application_id)
            .options(
                joinedload(Application.job).joinedload(Job.client),
                joinedload(Application.freelancer),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def find_by_job_and_freelancer(self, job_id: str, freelancer_id: str) -> Optional[Application]:
        """Uniqueness pre-check for (job, freelancer)."""
        stmt = select(Application).where(
            Application.job_id == job_id,
            Application.freelancer_id == freelancer_id,
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_application(self, application: Application) -> Application:
        self.db.add(application)
        await self.db.flush()
        return application

    async def list_by_freelancer(
        self,
        freelancer_id: str,
        page: int,
        limit: int,
        status: Optional[ApplicationStatusEnum] = None,
    ) -> Tuple[List[Application], int]:
        stmt = select(Application).where(Application.freelancer_id == freelancer_id)
        if status is not None:
            stmt = stmt.where(Application.status == status)
        return await paginate(
            self.db, stmt, page, limit,
            options=(selectinload(Application.job).selectinload(Job.client),),
            order_by=(Application.created_at.desc(),),
        )

    async def list_by_job(
        self,
        job_id: str,
        page: int,
        limit: int,
        status: Optional[ApplicationStatusEnum] = None,
    ) -> Tuple[List[Application], int]:
        stmt = select(Application).where(Application.job_id == job_id)
        if status is not None:
            stmt = stmt.where(Application.status == status)
        return await paginate(
            self.db, stmt, page, limit,
            options=(selectinload(Application.freelancer),),
            order_by=(Application.created_at.desc(),),
        )

    async def compare_and_set_status(
        self,
        application_id: str,
        expected: ApplicationStatusEnum,
        **values,
    ) -> int:
        stmt = (
            update(Application)
            .where(
                Application.application_id == application_id,
                Application.status == expected,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def reject_other_pending(
        self, job_id: str, accepted_id: str, reason: str, changed_at
    ) -> List[str]:
        """
        Reject every other pending application of the job.
        Returns the freelancer ids that were rejected.
        """
        conditions = (
            Application.job_id == job_id,
            Application.application_id != accepted_id,
            Application.status == ApplicationStatusEnum.pending,
        )
        result = await self.db.execute(select(Application.freelancer_id).where(*conditions))
        freelancer_ids = list(result.scalars().all())
        if not freelancer_ids:
            return []
        stmt = (
            update(Application)
            .where(*conditions)
            .values(
                status=ApplicationStatusEnum.rejected,
                rejection_reason=reason,
                status_changed_at=changed_at,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(stmt)
        return freelancer_ids

    async def has_active_application(self, job_id: str, freelancer_id: str) -> bool:
        """True when the freelancer applied to the job and has not withdrawn."""
        stmt = select(Application.application_id).where(
            Application.job_id == job_id,
            Application.freelancer_id == freelancer_id,
            Application.status != ApplicationStatusEnum.withdrawn,
        )
        result = await self.db.execute(stmt)
        return result.first() is not None
