"""Hourly/daily fixed-window rate limiting against the usage record."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.usage.store import UsageRecordStore
from usage_governor.usage.windows import seconds_until


class RateLimitScope(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"


@dataclass(frozen=True)
class RateLimitVerdict:
    allowed: bool
    retry_after: int = 0
    scope: RateLimitScope | None = None
    hourly_count: int = 0
    daily_count: int = 0


class RateLimiter:
    """Two independent fixed windows shared by every feature of a user.

    A single admitted request counts against both windows. Expired windows
    are rolled over before capacity is checked, and the rollover persists even
    when the request is then denied by the other window.
    """

    def __init__(self, store: UsageRecordStore, hourly_limit: int = 100, daily_limit: int = 500):
        self.store = store
        self.hourly_limit = hourly_limit
        self.daily_limit = daily_limit

    async def check_and_consume(
        self, session: AsyncSession, user_id: str, now: datetime,
    ) -> RateLimitVerdict:
        await self.store.roll_rate_windows(session, user_id, now)
        counts = await self.store.consume_rate(
            session, user_id, now, self.hourly_limit, self.daily_limit,
        )
        if counts is not None:
            hourly, daily = counts
            return RateLimitVerdict(allowed=True, hourly_count=hourly, daily_count=daily)

        record = await self.store.require(session, user_id)
        # Hourly is checked first, so it wins when both windows are full.
        if record.hourly_count >= self.hourly_limit:
            return RateLimitVerdict(
                allowed=False,
                retry_after=seconds_until(record.hourly_reset_at, now),
                scope=RateLimitScope.HOURLY,
                hourly_count=record.hourly_count,
                daily_count=record.daily_count,
            )
        return RateLimitVerdict(
            allowed=False,
            retry_after=seconds_until(record.daily_reset_at, now),
            scope=RateLimitScope.DAILY,
            hourly_count=record.hourly_count,
            daily_count=record.daily_count,
        )
