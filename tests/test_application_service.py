import asyncio

import pytest
from sqlalchemy import func, select

from elevatehub.core.exceptions import ConflictError, ForbiddenError, InvalidStateError, ValidationError
from elevatehub.models.application import Application, ApplicationStatusEnum
from elevatehub.models.job import JobStatusEnum
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.job_repo import JobRepository
from elevatehub.schemas.application_schema import ApplicationCreate
from elevatehub.services.application_service import AUTO_REJECT_REASON, ApplicationService
from tests.factories import COVER_LETTER, create_application, create_job, create_user


def application_data(rate=45000):
    return ApplicationCreate(cover_letter=COVER_LETTER, proposed_rate=rate)


@pytest.mark.asyncio
async def test_apply_creates_pending_application_and_counts_it(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(db, client)

        application = await ApplicationService(db).apply(job.job_id, freelancer, application_data())

        assert application.status == ApplicationStatusEnum.pending
        assert application.proposed_rate == 45000
        refreshed = await JobRepository(db).get_job_by_id(job.job_id)
        assert refreshed.applications_count == 1


@pytest.mark.asyncio
async def test_duplicate_application_is_a_conflict(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(db, client)
        service = ApplicationService(db)
        await service.apply(job.job_id, freelancer, application_data())

        with pytest.raises(ConflictError) as exc:
            await service.apply(job.job_id, freelancer, application_data())
        assert exc.value.detail == "You have already applied to this job"

        refreshed = await JobRepository(db).get_job_by_id(job.job_id)
        assert refreshed.applications_count == 1


@pytest.mark.asyncio
async def test_only_freelancers_apply_and_only_to_open_jobs(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        other_client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        open_job = await create_job(db, client)
        started_job = await create_job(db, client, status=JobStatusEnum.in_progress)
        service = ApplicationService(db)

        with pytest.raises(ForbiddenError):
            await service.apply(open_job.job_id, other_client, application_data())
        with pytest.raises(InvalidStateError):
            await service.apply(started_job.job_id, freelancer, application_data())


@pytest.mark.asyncio
async def test_accept_starts_job_and_rejects_other_pending(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        f, g, h = [await create_user(db) for _ in range(3)]
        job = await create_job(db, client)
        a1 = await create_application(db, job, f)
        a2 = await create_application(db, job, g)
        a3 = await create_application(db, job, h, status=ApplicationStatusEnum.withdrawn)
        service = ApplicationService(db)

        accepted = await service.update_status(a1.application_id, client, "accepted")

        assert accepted.status == ApplicationStatusEnum.accepted
        assert accepted.job.status == JobStatusEnum.in_progress
        assert accepted.job.accepted_freelancer_id == f.user_id

        rejected = await service.application_repo.get_application_by_id(a2.application_id)
        assert rejected.status == ApplicationStatusEnum.rejected
        assert rejected.rejection_reason == AUTO_REJECT_REASON
        untouched = await service.application_repo.get_application_by_id(a3.application_id)
        assert untouched.status == ApplicationStatusEnum.withdrawn

        job_after = await JobRepository(db).get_job_by_id(job.job_id)
        assert job_after.started_at is not None


@pytest.mark.asyncio
async def test_concurrent_accepts_have_exactly_one_winner(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        f = await create_user(db)
        g = await create_user(db)
        job = await create_job(db, client)
        a1 = await create_application(db, job, f)
        a2 = await create_application(db, job, g)

    async def accept(application_id):
        async with session_factory() as db:
            owner = await db.get(type(client), client.user_id)
            try:
                await ApplicationService(db).update_status(application_id, owner, "accepted")
                return "accepted"
            except InvalidStateError:
                return "invalid"

    outcomes = await asyncio.gather(accept(a1.application_id), accept(a2.application_id))
    assert sorted(outcomes) == ["accepted", "invalid"]

    async with session_factory() as db:
        job_after = await JobRepository(db).get_job_by_id(job.job_id)
        service = ApplicationService(db)
        statuses = {
            a.application_id: (await service.application_repo.get_application_by_id(a.application_id)).status
            for a in (a1, a2)
        }
    assert list(statuses.values()).count(ApplicationStatusEnum.accepted) == 1
    winner = a1 if statuses[a1.application_id] == ApplicationStatusEnum.accepted else a2
    assert job_after.status == JobStatusEnum.in_progress
    assert job_after.accepted_freelancer_id == winner.freelancer_id


@pytest.mark.asyncio
async def test_concurrent_applies_are_all_counted(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancers = [await create_user(db) for _ in range(5)]
        job = await create_job(db, client)

    async def apply(freelancer_id):
        async with session_factory() as db:
            freelancer = await db.get(User, freelancer_id)
            await ApplicationService(db).apply(job.job_id, freelancer, application_data())

    await asyncio.gather(*[apply(f.user_id) for f in freelancers])

    async with session_factory() as db:
        job_after = await JobRepository(db).get_job_by_id(job.job_id)
        rows = await db.scalar(
            select(func.count()).select_from(Application).where(Application.job_id == job.job_id)
        )
    assert job_after.applications_count == len(freelancers) == rows


@pytest.mark.asyncio
async def test_reject_has_no_job_side_effects(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(db, client, applications_count=1)
        application = await create_application(db, job, freelancer)

        rejected = await ApplicationService(db).update_status(
            application.application_id, client, "rejected", "Budget too high"
        )

        assert rejected.status == ApplicationStatusEnum.rejected
        assert rejected.rejection_reason == "Budget too high"
        job_after = await JobRepository(db).get_job_by_id(job.job_id)
        assert job_after.status == JobStatusEnum.open
        assert job_after.accepted_freelancer_id is None
        assert job_after.applications_count == 1


@pytest.mark.asyncio
async def test_update_status_guards(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        stranger = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(db, client)
        application = await create_application(db, job, freelancer)
        service = ApplicationService(db)

        with pytest.raises(ValidationError):
            await service.update_status(application.application_id, client, "withdrawn")
        with pytest.raises(ForbiddenError):
            await service.update_status(application.application_id, stranger, "accepted")

        await service.update_status(application.application_id, client, "rejected")
        with pytest.raises(InvalidStateError):
            await service.update_status(application.application_id, client, "accepted")


@pytest.mark.asyncio
async def test_withdraw_keeps_the_row_and_the_count(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        freelancer = await create_user(db)
        job = await create_job(db, client)
        service = ApplicationService(db)
        application = await service.apply(job.job_id, freelancer, application_data())

        withdrawn = await service.withdraw(application.application_id, freelancer)

        assert withdrawn.status == ApplicationStatusEnum.withdrawn
        job_after = await JobRepository(db).get_job_by_id(job.job_id)
        assert job_after.applications_count == 1
        with pytest.raises(InvalidStateError):
            await service.withdraw(application.application_id, freelancer)


@pytest.mark.asyncio
async def test_listing_is_scoped_to_the_caller(session_factory):
    async with session_factory() as db:
        client = await create_user(db, UserRoleEnum.client)
        stranger = await create_user(db, UserRoleEnum.client)
        f = await create_user(db)
        g = await create_user(db)
        job = await create_job(db, client)
        await create_application(db, job, f)
        await create_application(db, job, g, status=ApplicationStatusEnum.rejected)
        service = ApplicationService(db)

        mine, total = await service.list_my_applications(f, page=1, limit=10)
        assert total == 1
        assert mine[0].job.client.user_id == client.user_id

        pending, total = await service.list_job_applications(job.job_id, client, 1, 10, status="pending")
        assert total == 1
        assert pending[0].freelancer.user_id == f.user_id

        with pytest.raises(ForbiddenError):
            await service.list_job_applications(job.job_id, stranger, 1, 10)
