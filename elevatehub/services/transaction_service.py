# elevatehub/services/transaction_service.py
# Escrow bookkeeping. No money moves here: a Transaction records that the
# client committed funds for a job and what became of them.

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elevatehub.core.config import settings
from elevatehub.core.exceptions import (
    ConflictError, ForbiddenError, InvalidStateError, NotFoundError, ValidationError
)
from elevatehub.core.permissions import ensure_role
from elevatehub.models.application import ApplicationStatusEnum
from elevatehub.models.job import Job, JobStatusEnum, PaymentStatusEnum
from elevatehub.models.transaction import Transaction, TransactionStatusEnum
from elevatehub.models.user import User, UserRoleEnum
from elevatehub.repositories.application_repo import ApplicationRepository
from elevatehub.repositories.job_repo import JobRepository
from elevatehub.repositories.transaction_repo import TransactionRepository
from elevatehub.repositories.user_repo import UserRepository
from elevatehub.schemas.transaction_schema import EscrowCreate
from elevatehub.services.notification_service import NotificationService
from elevatehub.utils.time import utcnow

logger = logging.getLogger(__name__)

ACTIVE_ESCROW_MESSAGE = "An active escrow already exists for this job"
ESCROW_JOB_STATUSES = (JobStatusEnum.in_progress, JobStatusEnum.under_review)


def parse_transaction_status(value: Optional[str]) -> Optional[TransactionStatusEnum]:
    if value is None or value == "all":
        return None
    try:
        return TransactionStatusEnum(value)
    except ValueError:
        raise ValidationError.for_field("status", f"Unknown transaction status '{value}'")


def platform_fee_for(amount: float, percentage: float) -> float:
    return round(amount * percentage / 100, 2)


class TransactionService:
    def __init__(self, db: AsyncSession, notification_service: Optional[NotificationService] = None):
        self.db = db
        self.transaction_repo = TransactionRepository(db)
        self.job_repo = JobRepository(db)
        self.application_repo = ApplicationRepository(db)
        self.user_repo = UserRepository(db)
        self.notification_service = notification_service or NotificationService()

    async def create_escrow(self, client: User, data: EscrowCreate) -> Transaction:
        ensure_role(client, UserRoleEnum.client)

        job = await self.job_repo.get_job_by_id(data.job_id)
        if not job:
            raise NotFoundError("Job not found")
        if job.client_id != client.user_id:
            raise ForbiddenError("You do not own this job")
        application = await self.application_repo.get_application_by_id(data.application_id)
        if not application:
            raise NotFoundError("Application not found")
        if application.job_id != job.job_id:
            raise ValidationError.for_field("application_id", "Application does not belong to this job")
        if application.status != ApplicationStatusEnum.accepted:
            raise InvalidStateError("Escrow can only be created for an accepted application")
        if job.status not in ESCROW_JOB_STATUSES:
            raise InvalidStateError("Escrow can only be created while the job is in progress")
        if await self.transaction_repo.get_active_for_job(job.job_id):
            raise ConflictError(ACTIVE_ESCROW_MESSAGE)

        amount = data.amount if data.amount is not None else application.proposed_rate
        if not amount or amount <= 0:
            raise ValidationError.for_field("amount", "Amount must be greater than zero")
        fee_percentage = settings.PLATFORM_FEE_PERCENTAGE

        try:
            held = await self.job_repo.compare_and_set(
                job.job_id,
                ESCROW_JOB_STATUSES,
                extra_where=(Job.payment_status == PaymentStatusEnum.unpaid,),
                payment_status=PaymentStatusEnum.in_escrow,
                escrow_amount=amount,
            )
            if not held:
                await self.db.rollback()
                fresh = await self.job_repo.get_job_by_id(job.job_id)
                if fresh and fresh.payment_status == PaymentStatusEnum.in_escrow:
                    raise ConflictError(ACTIVE_ESCROW_MESSAGE)
                raise InvalidStateError("Payment for this job has already been settled")

            now = utcnow()
            transaction = Transaction(
                job_id=job.job_id,
                active_job_id=job.job_id,
                application_id=application.application_id,
                client_id=client.user_id,
                freelancer_id=application.freelancer_id,
                amount=amount,
                currency=job.currency,
                platform_fee_percentage=fee_percentage,
                platform_fee=platform_fee_for(amount, fee_percentage),
                status=TransactionStatusEnum.in_escrow,
                notes=data.notes,
                held_at=now,
            )
            await self.transaction_repo.create_transaction(transaction)
            await self.db.commit()
        except IntegrityError:
            # unique active_job_id: another escrow for this job is live
            await self.db.rollback()
            raise ConflictError(ACTIVE_ESCROW_MESSAGE)

        logger.info(
            f"Escrow {transaction.transaction_id} opened on job {job.job_id}: "
            f"{amount} {transaction.currency} (fee {transaction.platform_fee})"
        )
        return await self.transaction_repo.get_transaction_by_id(transaction.transaction_id)

    async def _get_client_transaction(self, transaction_id: str, client: User) -> Transaction:
        transaction = await self.transaction_repo.get_transaction_by_id(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        if transaction.client_id != client.user_id:
            raise ForbiddenError("Only the paying client can manage this escrow")
        return transaction

    async def release(self, transaction_id: str, client: User) -> Transaction:
        ensure_role(client, UserRoleEnum.client)
        transaction = await self._get_client_transaction(transaction_id, client)
        if transaction.status != TransactionStatusEnum.in_escrow:
            raise InvalidStateError("Only funds held in escrow can be released")

        job = await self.job_repo.get_job_by_id(transaction.job_id)
        already_completed = job.status == JobStatusEnum.completed
        now = utcnow()
        released = await self.transaction_repo.compare_and_set_status(
            transaction.transaction_id,
            TransactionStatusEnum.in_escrow,
            status=TransactionStatusEnum.released,
            released_at=now,
            active_job_id=None,
        )
        settled = await self.job_repo.compare_and_set(
            job.job_id,
            (*ESCROW_JOB_STATUSES, JobStatusEnum.completed),
            extra_where=(Job.payment_status == PaymentStatusEnum.in_escrow,),
            status=JobStatusEnum.completed,
            payment_status=PaymentStatusEnum.released,
            completed_at=func.coalesce(Job.completed_at, now),
        )
        if not (released and settled):
            await self.db.rollback()
            raise InvalidStateError("Only funds held in escrow can be released")
        if not already_completed:
            await self.user_repo.record_completed_job(transaction.freelancer_id)
        await self.db.commit()
        logger.info(f"Escrow {transaction.transaction_id} released to freelancer {transaction.freelancer_id}")

        transaction = await self.transaction_repo.get_transaction_by_id(transaction.transaction_id)
        await self.notification_service.notify_user(
            transaction.freelancer_id,
            "payment.released",
            {
                "transaction_id": transaction.transaction_id,
                "job_id": transaction.job_id,
                "amount": transaction.amount,
                "net_amount": transaction.net_amount,
                "currency": transaction.currency,
            },
        )
        return transaction

    async def refund(self, transaction_id: str, client: User, reason: Optional[str] = None) -> Transaction:
        ensure_role(client, UserRoleEnum.client)
        transaction = await self._get_client_transaction(transaction_id, client)
        if transaction.status != TransactionStatusEnum.in_escrow:
            raise InvalidStateError("Only funds held in escrow can be refunded")

        now = utcnow()
        reason = reason or "Escrow refunded to client"
        refunded = await self.transaction_repo.compare_and_set_status(
            transaction.transaction_id,
            TransactionStatusEnum.in_escrow,
            status=TransactionStatusEnum.refunded,
            refunded_at=now,
            refund_reason=reason,
            active_job_id=None,
        )
        if not refunded:
            await self.db.rollback()
            raise InvalidStateError("Only funds held in escrow can be refunded")
        cancelled = await self.job_repo.compare_and_set(
            transaction.job_id,
            ESCROW_JOB_STATUSES,
            extra_where=(Job.payment_status == PaymentStatusEnum.in_escrow,),
            status=JobStatusEnum.cancelled,
            payment_status=PaymentStatusEnum.refunded,
            cancelled_at=now,
            cancellation_reason=reason,
        )
        if not cancelled:
            await self.db.rollback()
            raise InvalidStateError("Completed work cannot be refunded")
        await self.db.commit()
        logger.info(f"Escrow {transaction.transaction_id} refunded to client {client.user_id}")

        transaction = await self.transaction_repo.get_transaction_by_id(transaction.transaction_id)
        await self.notification_service.notify_user(
            transaction.freelancer_id,
            "payment.refunded",
            {"transaction_id": transaction.transaction_id, "job_id": transaction.job_id, "reason": reason},
        )
        return transaction

    # --- Reads ---

    async def get_transaction(self, transaction_id: str, user: User) -> Transaction:
        transaction = await self.transaction_repo.get_transaction_by_id(transaction_id)
        if not transaction:
            raise NotFoundError("Transaction not found")
        if user.user_id not in (transaction.client_id, transaction.freelancer_id) and user.role != UserRoleEnum.admin:
            raise ForbiddenError("You are not a party to this transaction")
        return transaction

    async def get_by_job(self, job_id: str, user: User) -> Transaction:
        job = await self.job_repo.get_job_by_id(job_id)
        if not job:
            raise NotFoundError("Job not found")
        if user.user_id not in (job.client_id, job.accepted_freelancer_id) and user.role != UserRoleEnum.admin:
            raise ForbiddenError("You are not a party to this job")
        transaction = await self.transaction_repo.get_latest_for_job(job_id)
        if not transaction:
            raise NotFoundError("No transaction found for this job")
        return transaction

    async def list_my_transactions(
        self, user: User, page: int, limit: int, status: Optional[str] = None
    ) -> Tuple[List[Transaction], int, Dict[str, Tuple[int, float]]]:
        ensure_role(user, UserRoleEnum.client, UserRoleEnum.freelancer)
        items, total = await self.transaction_repo.list_for_user(
            user.user_id, page, limit, status=parse_transaction_status(status)
        )
        totals = await self.transaction_repo.totals_for_user(user.user_id)
        return items, total, totals
