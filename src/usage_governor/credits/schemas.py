"""Pydantic schemas for credit endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class CreditTransactionResponse(BaseModel):
    id: str
    transaction_type: str
    amount: int
    balance_after: int
    description: str
    usage_log_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PeriodCounts(BaseModel):
    start: datetime
    end: datetime
    counts: dict[str, int]


class CreditBalanceResponse(BaseModel):
    user_id: str
    available_credits: int
    lifetime_credits_purchased: int
    is_grandfathered: bool
    current_period: PeriodCounts
    last_activity: Optional[datetime] = None
    recent_transactions: list[CreditTransactionResponse] = []


class CreditGrantRequest(BaseModel):
    amount: int = Field(..., gt=0)
    description: str = Field(default="", max_length=255)
    purchased: bool = True


class CreditGrantResponse(BaseModel):
    user_id: str
    available_credits: int
    transaction: CreditTransactionResponse
