"""Pydantic schemas for usage status and provisioning endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FeatureUsage(BaseModel):
    used: int
    limit: Optional[int] = None
    remaining: Optional[int] = None
    unlimited: bool = False
    credit_cost: int
    cooldown_seconds: int


class CreditSummary(BaseModel):
    available: int
    lifetime_purchased: int


class PeriodWindow(BaseModel):
    start: datetime
    end: datetime


class RateWindowUsage(BaseModel):
    used: int
    limit: int
    reset_at: datetime


class RateLimitUsage(BaseModel):
    hourly: RateWindowUsage
    daily: RateWindowUsage


class UsageStatusResponse(BaseModel):
    user_id: str
    access_type: str
    is_unlimited: bool
    partnership_id: Optional[str] = None
    credits: CreditSummary
    current_period: PeriodWindow
    usage: dict[str, FeatureUsage]
    rate_limits: RateLimitUsage


class GrandfatherRequest(BaseModel):
    grandfathered: bool = True


class PartnershipAssignRequest(BaseModel):
    partnership_id: Optional[str] = None


class PartnershipCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    ai_search_limit: int = Field(default=-1, ge=-1)
    ai_analysis_limit: int = Field(default=-1, ge=-1)
    ai_grant_writing_limit: int = Field(default=-1, ge=-1)
    ai_synthesis_limit: int = Field(default=-1, ge=-1)


class PartnershipResponse(BaseModel):
    id: str
    name: str
    ai_search_limit: int
    ai_analysis_limit: int
    ai_grant_writing_limit: int
    ai_synthesis_limit: int
    created_at: datetime

    model_config = {"from_attributes": True}
