from datetime import timedelta

import pytest

from elevatehub.core.exceptions import ForbiddenError, InvalidStateError, NotFoundError, ValidationError
from elevatehub.models.job import JobStatusEnum, PaymentStatusEnum, SubmissionStatusEnum
from elevatehub.models.user import UserRoleEnum
from elevatehub.repositories.user_repo import UserRepository
from elevatehub.schemas.job_schema import JobCreate, JobUpdate, WorkReview
from elevatehub.services.job_service import JobService
from elevatehub.utils.time import utcnow
from tests.factories import JOB_DESCRIPTION, create_job, create_user

WORK_NOTES = "First full draft of the site, see the staging link."


def job_create(**overrides):
    values = dict(
        title="Build a marketing website",
        description=JOB_DESCRIPTION,
        category="Web Development",
        budget_amount=50000,
        deadline=utcnow() + timedelta(days=30),
    )
    values.update(overrides)
    return JobCreate(**values)


@pytest.mark.asyncio
async def test_create_job_defaults(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)

        job = await JobService(db).create_job(client, job_create())

        assert job.status == JobStatusEnum.open
        assert job.payment_status == PaymentStatusEnum.unpaid
        assert job.currency == "KES"
        assert job.max_revisions == 3
        assert job.applications_count == 0
        assert job.client.user_id == client.user_id
        assert job.accepted_freelancer is None


@pytest.mark.asyncio
async def test_create_job_rules(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        service = JobService(db)

        with pytest.raises(ForbiddenError):
            await service.create_job(freelancer, job_create())
        with pytest.raises(ValidationError) as exc:
            await service.create_job(client, job_create(deadline=utcnow() - timedelta(hours=1)))
        assert exc.value.errors[0]["field"] == "deadline"


def test_job_create_schema_rejects_unknown_category():
    with pytest.raises(ValueError):
        job_create(category="Plumbing")


@pytest.mark.asyncio
async def test_get_job_counts_views_and_hides_deleted(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        job = await create_job(db, client)
        hidden = await create_job(db, client, is_active=False)
        service = JobService(db)

        await service.get_job(job.job_id)
        seen = await service.get_job(job.job_id)
        assert seen.view_count == 2

        with pytest.raises(NotFoundError):
            await service.get_job(hidden.job_id)


@pytest.mark.asyncio
async def test_list_jobs_filters(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        await create_job(db, client, title="Design a company logo", category="Design", budget_amount=8000)
        await create_job(db, client, title="Write product copy", category="Writing", budget_amount=12000)
        await create_job(db, client, title="Old started gig here", status=JobStatusEnum.in_progress)
        service = JobService(db)

        jobs, total = await service.list_jobs(1, 10)
        assert total == 2

        jobs, total = await service.list_jobs(1, 10, search="LOGO")
        assert [j.title for j in jobs] == ["Design a company logo"]

        jobs, total = await service.list_jobs(1, 10, budget_min=10000)
        assert [j.title for j in jobs] == ["Write product copy"]

        jobs, total = await service.list_jobs(1, 10, status="all")
        assert total == 3

        with pytest.raises(ValidationError):
            await service.list_jobs(1, 10, status="archived")


@pytest.mark.asyncio
async def test_update_freezes_budget_once_started(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(
            db, client, status=JobStatusEnum.in_progress, accepted_freelancer_id=freelancer.user_id
        )
        service = JobService(db)

        with pytest.raises(InvalidStateError):
            await service.update_job(job.job_id, client, JobUpdate(budget_amount=1000))

        updated = await service.update_job(job.job_id, client, JobUpdate(title="Build a marketing website v2"))
        assert updated.title == "Build a marketing website v2"
        assert updated.budget_amount == 50000


@pytest.mark.asyncio
async def test_update_requires_owner_and_live_job(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        stranger = await create_user(db, UserRoleEnum.client)
        job = await create_job(db, client)
        done = await create_job(db, client, status=JobStatusEnum.completed)
        service = JobService(db)

        with pytest.raises(ForbiddenError):
            await service.update_job(job.job_id, stranger, JobUpdate(budget_amount=100))
        with pytest.raises(InvalidStateError):
            await service.update_job(done.job_id, client, JobUpdate(title="Changed after the fact"))

        updated = await service.update_job(job.job_id, client, JobUpdate(budget_amount=60000, category="Design"))
        assert updated.budget_amount == 60000
        assert updated.category == "Design"


@pytest.mark.asyncio
async def test_cancel_and_delete(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        job = await create_job(db, client)
        escrowed = await create_job(
            db, client, status=JobStatusEnum.in_progress, payment_status=PaymentStatusEnum.in_escrow
        )
        to_delete = await create_job(db, client)
        service = JobService(db)

        cancelled = await service.cancel_job(job.job_id, client, "No longer needed")
        assert cancelled.status == JobStatusEnum.cancelled
        assert cancelled.cancellation_reason == "No longer needed"
        assert cancelled.cancelled_at is not None

        with pytest.raises(InvalidStateError):
            await service.cancel_job(escrowed.job_id, client)
        with pytest.raises(InvalidStateError):
            await service.delete_job(escrowed.job_id, client)

        await service.delete_job(to_delete.job_id, client)
        with pytest.raises(NotFoundError):
            await service.get_job(to_delete.job_id)


@pytest.mark.asyncio
async def test_submit_and_approve_work_updates_reputation(session_factory, upload_dir):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db, rating=4.0, rating_count=1)
        job = await create_job(
            db, client, status=JobStatusEnum.in_progress, accepted_freelancer_id=freelancer.user_id
        )
        service = JobService(db)

        submitted = await service.submit_work(job.job_id, freelancer, WORK_NOTES)
        assert submitted.status == JobStatusEnum.under_review
        assert len(submitted.submissions) == 1
        submission = submitted.submissions[0]
        assert submission.status == SubmissionStatusEnum.pending

        reviewed = await service.review_work(
            job.job_id, submission.submission_id, client, WorkReview(action="approve", rating=5)
        )
        assert reviewed.status == JobStatusEnum.completed
        assert reviewed.completed_at is not None
        assert reviewed.submissions[0].status == SubmissionStatusEnum.approved

        worker = await UserRepository(db).get_user_by_id(freelancer.user_id)
        assert worker.completed_jobs == 1
        assert worker.rating_count == 2
        assert worker.rating == pytest.approx(4.5)


@pytest.mark.asyncio
async def test_rejected_work_goes_back_and_revisions_are_capped(session_factory, upload_dir):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(
            db, client, status=JobStatusEnum.in_progress,
            accepted_freelancer_id=freelancer.user_id, max_revisions=1,
        )
        service = JobService(db)

        submitted = await service.submit_work(job.job_id, freelancer, WORK_NOTES)
        reviewed = await service.review_work(
            job.job_id, submitted.submissions[0].submission_id, client,
            WorkReview(action="reject", review_notes="Please fix the footer"),
        )
        assert reviewed.status == JobStatusEnum.in_progress
        assert reviewed.revision_count == 1
        assert reviewed.submissions[0].status == SubmissionStatusEnum.rejected

        with pytest.raises(InvalidStateError):
            await service.submit_work(job.job_id, freelancer, WORK_NOTES)


@pytest.mark.asyncio
async def test_submit_work_guards(session_factory, upload_dir):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        outsider = await create_user(db)
        job = await create_job(
            db, client, status=JobStatusEnum.in_progress, accepted_freelancer_id=freelancer.user_id
        )
        open_job = await create_job(db, client)
        service = JobService(db)

        with pytest.raises(ValidationError):
            await service.submit_work(job.job_id, freelancer, "too short")
        with pytest.raises(ForbiddenError):
            await service.submit_work(job.job_id, outsider, WORK_NOTES)
        with pytest.raises(ForbiddenError):
            await service.submit_work(open_job.job_id, freelancer, WORK_NOTES)
