"""Pydantic schemas for usage audit API responses."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class UsageLogResponse(BaseModel):
    id: str
    user_id: str
    feature: str
    credits_used: int
    was_free: bool
    status: str
    reason: Optional[str] = None
    metadata: dict[str, Any] = {}
    created_at: datetime

    model_config = {"from_attributes": True}
