# elevatehub/schemas/transaction_schema.py
from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Dict, List, Optional
from elevatehub.models.transaction import TransactionStatusEnum
from elevatehub.schemas.job_schema import JobSummary
from elevatehub.schemas.user_schema import UserSummary


class EscrowCreate(BaseModel):
    job_id: str
    application_id: str
    # Defaults to the accepted application's proposed rate
    amount: Optional[float] = Field(None, gt=0)
    notes: Optional[str] = Field(None, max_length=500)


class RefundRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: str
    job_id: str
    application_id: str
    client_id: str
    freelancer_id: str
    amount: float
    currency: str
    platform_fee_percentage: float
    platform_fee: float
    net_amount: float
    status: TransactionStatusEnum
    notes: Optional[str] = None
    refund_reason: Optional[str] = None
    held_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    job: Optional[JobSummary] = None
    client: Optional[UserSummary] = None
    freelancer: Optional[UserSummary] = None


class StatusTotal(BaseModel):
    count: int = 0
    amount: float = 0.0


class TransactionListOut(BaseModel):
    transactions: List[TransactionOut]
    totals: Dict[str, StatusTotal]
