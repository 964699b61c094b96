# elevatehub/routers/transaction_router.py

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from elevatehub.core.database import get_db
from elevatehub.core.security import get_current_user
from elevatehub.models.user import User
from elevatehub.routers.deps import PageParams, page_params
from elevatehub.schemas.common_schema import ApiResponse, Pagination
from elevatehub.schemas.transaction_schema import (
    EscrowCreate, RefundRequest, StatusTotal, TransactionListOut, TransactionOut
)
from elevatehub.services.transaction_service import TransactionService

router = APIRouter(
    prefix="/transactions",
    tags=["Transactions"],
    dependencies=[Depends(get_current_user)],
)


@router.post("/escrow", response_model=ApiResponse[TransactionOut], status_code=status.HTTP_201_CREATED)
async def create_escrow(
    escrow_data: EscrowCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Client puts funds for an accepted application into escrow (bookkeeping only)."""
    service = TransactionService(db)
    transaction = await service.create_escrow(current_user, escrow_data)
    return ApiResponse[TransactionOut](message="Escrow created", data=TransactionOut.model_validate(transaction))


@router.get("/my", response_model=ApiResponse[TransactionListOut])
async def list_my_transactions(
    status_filter: Optional[str] = Query(None, alias="status"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = TransactionService(db)
    transactions, total, totals = await service.list_my_transactions(
        current_user, paging.page, paging.limit, status=status_filter
    )
    data = TransactionListOut(
        transactions=[TransactionOut.model_validate(t) for t in transactions],
        totals={key: StatusTotal(count=count, amount=amount) for key, (count, amount) in totals.items()},
    )
    return ApiResponse[TransactionListOut](
        data=data,
        pagination=Pagination.build(paging.page, paging.limit, total),
    )


@router.get("/job/{job_id}", response_model=ApiResponse[TransactionOut])
async def get_job_transaction(
    job_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = TransactionService(db)
    transaction = await service.get_by_job(job_id, current_user)
    return ApiResponse[TransactionOut](data=TransactionOut.model_validate(transaction))


@router.get("/{transaction_id}", response_model=ApiResponse[TransactionOut])
async def get_transaction(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = TransactionService(db)
    transaction = await service.get_transaction(transaction_id, current_user)
    return ApiResponse[TransactionOut](data=TransactionOut.model_validate(transaction))


@router.post("/{transaction_id}/release", response_model=ApiResponse[TransactionOut])
async def release_payment(
    transaction_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = TransactionService(db)
    transaction = await service.release(transaction_id, current_user)
    return ApiResponse[TransactionOut](message="Payment released", data=TransactionOut.model_validate(transaction))


@router.post("/{transaction_id}/refund", response_model=ApiResponse[TransactionOut])
async def refund_payment(
    transaction_id: str,
    body: Optional[RefundRequest] = None,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    service = TransactionService(db)
    transaction = await service.refund(transaction_id, current_user, reason=body.reason if body else None)
    return ApiResponse[TransactionOut](message="Payment refunded", data=TransactionOut.model_validate(transaction))
