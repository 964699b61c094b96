# elevatehub/repositories/transaction_repo.py

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func, or_
from sqlalchemy.orm import joinedload
from typing import Dict, List, Optional, Tuple

from elevatehub.models.transaction import Transaction, TransactionStatusEnum
from elevatehub.repositories.pagination import paginate


class TransactionRepository:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _hydrated():
        return (
            joinedload(Transaction.job),
            joinedload(Transaction.client),
            joinedload(Transaction.freelancer),
        )

    async def get_transaction_by_id(self, transaction_id: str) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.transaction_id == transaction_id)
            .options(*self._hydrated())
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_active_for_job(self, job_id: str) -> Optional[Transaction]:
        stmt = select(Transaction).where(Transaction.active_job_id == job_id)
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_latest_for_job(self, job_id: str) -> Optional[Transaction]:
        stmt = (
            select(Transaction)
            .where(Transaction.job_id == job_id)
            .options(*self._hydrated())
            .order_by(Transaction.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def create_transaction(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    async def compare_and_set_status(
        self, transaction_id: str, expected: TransactionStatusEnum, **values
    ) -> int:
        stmt = (
            update(Transaction)
            .where(Transaction.transaction_id == transaction_id, Transaction.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount

    async def list_for_user(
        self,
        user_id: str,
        page: int,
        limit: int,
        status: Optional[TransactionStatusEnum] = None,
    ) -> Tuple[List[Transaction], int]:
        stmt = select(Transaction).where(
            or_(Transaction.client_id == user_id, Transaction.freelancer_id == user_id)
        )
        if status is not None:
            stmt = stmt.where(Transaction.status == status)
        return await paginate(
            self.db, stmt, page, limit,
            options=self._hydrated(),
            order_by=(Transaction.created_at.desc(),),
        )

    async def totals_for_user(self, user_id: str) -> Dict[str, Tuple[int, float]]:
        """{status: (count, amount)} over every transaction the user is party to."""
        stmt = (
            select(Transaction.status, func.count(), func.coalesce(func.sum(Transaction.amount), 0))
            .where(or_(Transaction.client_id == user_id, Transaction.freelancer_id == user_id))
            .group_by(Transaction.status)
        )
        result = await self.db.execute(stmt)
        totals = {}
        for status, count, amount in result.all():
            key = status.value if isinstance(status, TransactionStatusEnum) else str(status)
            totals[key] = (count, float(amount or 0))
        return totals
