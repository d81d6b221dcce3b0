"""UsageRecordStore: durable per-user counters with atomic updates.

Every operation that compares a counter against a threshold and then writes
it is expressed as one conditional ``UPDATE ... WHERE ... RETURNING``.  The
database serialises concurrent statements against the same row, so two
requests can never both observe ``capacity - 1`` and both be admitted.
"""

from datetime import datetime

from sqlalchemy import case, literal, or_, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.admission.features import Feature
from usage_governor.common.exceptions import UsageRecordNotFoundError
from usage_governor.common.models import UTCDateTime, generate_uuid
from usage_governor.usage.models import (
    FEATURE_COUNTERS,
    FEATURE_LAST_USED,
    InstitutionalPartnershipModel,
    UsageRecordModel,
)
from usage_governor.usage.windows import DAILY_WINDOW, HOURLY_WINDOW, next_period

_INSERT_BUILDERS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}

# Rows are re-read after bulk updates, so the identity map is never synced.
_NO_SYNC = {"synchronize_session": False}


def _at(value: datetime):
    return literal(value, UTCDateTime())


def _cooldown_clause(feature: Feature, ready_before: datetime | None):
    """Restrict an update to rows whose last use of ``feature`` is old enough."""
    if ready_before is None:
        return None
    last_used = FEATURE_LAST_USED[feature]
    return or_(last_used.is_(None), last_used <= ready_before)


class UsageRecordStore:
    """Per-user usage row operations. Callers own the session/transaction."""

    # ── Lifecycle ──

    async def ensure(self, session: AsyncSession, user_id: str, now: datetime) -> None:
        """Create a zeroed record for ``user_id`` unless one already exists."""
        period_start, period_end = next_period(now)
        values = {
            "id": generate_uuid(),
            "user_id": user_id,
            "period_start": period_start,
            "period_end": period_end,
            "hourly_count": 0,
            "hourly_reset_at": now + HOURLY_WINDOW,
            "daily_count": 0,
            "daily_reset_at": now + DAILY_WINDOW,
            "created_at": now,
            "updated_at": now,
        }
        dialect = session.get_bind().dialect.name
        try:
            build_insert = _INSERT_BUILDERS[dialect]
        except KeyError:
            raise RuntimeError(f"Unsupported database dialect: {dialect}") from None
        stmt = (
            build_insert(UsageRecordModel.__table__)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        await session.execute(stmt)

    async def get(self, session: AsyncSession, user_id: str) -> UsageRecordModel | None:
        result = await session.execute(
            select(UsageRecordModel)
            .where(UsageRecordModel.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def require(self, session: AsyncSession, user_id: str) -> UsageRecordModel:
        record = await self.get(session, user_id)
        if record is None:
            raise UsageRecordNotFoundError(f"No usage record for user {user_id}")
        return record

    async def get_partnership(
        self, session: AsyncSession, partnership_id: str,
    ) -> InstitutionalPartnershipModel | None:
        result = await session.execute(
            select(InstitutionalPartnershipModel).where(
                InstitutionalPartnershipModel.id == partnership_id,
            )
        )
        return result.scalar_one_or_none()

    # ── Rate windows ──

    async def roll_rate_windows(self, session: AsyncSession, user_id: str, now: datetime) -> None:
        """Reset whichever of the hourly/daily windows has reached its boundary."""
        hourly_due = UsageRecordModel.hourly_reset_at <= now
        daily_due = UsageRecordModel.daily_reset_at <= now
        await session.execute(
            update(UsageRecordModel)
            .where(UsageRecordModel.user_id == user_id, or_(hourly_due, daily_due))
            .values(
                hourly_count=case((hourly_due, 0), else_=UsageRecordModel.hourly_count),
                hourly_reset_at=case(
                    (hourly_due, _at(now + HOURLY_WINDOW)),
                    else_=UsageRecordModel.hourly_reset_at,
                ),
                daily_count=case((daily_due, 0), else_=UsageRecordModel.daily_count),
                daily_reset_at=case(
                    (daily_due, _at(now + DAILY_WINDOW)),
                    else_=UsageRecordModel.daily_reset_at,
                ),
            )
            .execution_options(**_NO_SYNC)
        )

    async def consume_rate(
        self,
        session: AsyncSession,
        user_id: str,
        now: datetime,
        hourly_limit: int,
        daily_limit: int,
    ) -> tuple[int, int] | None:
        """Count one request against both windows if both have room.

        Returns the new (hourly, daily) counts, or None when either is full.
        """
        result = await session.execute(
            update(UsageRecordModel)
            .where(
                UsageRecordModel.user_id == user_id,
                UsageRecordModel.hourly_count < hourly_limit,
                UsageRecordModel.daily_count < daily_limit,
            )
            .values(
                hourly_count=UsageRecordModel.hourly_count + 1,
                daily_count=UsageRecordModel.daily_count + 1,
                last_request_at=now,
            )
            .returning(UsageRecordModel.hourly_count, UsageRecordModel.daily_count)
            .execution_options(**_NO_SYNC)
        )
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    # ── Monthly period ──

    async def roll_monthly_period(
        self, session: AsyncSession, user_id: str, now: datetime, force: bool = False,
    ) -> bool:
        """Start a new monthly window with zeroed feature counts.

        Only applies once the current window has ended unless ``force`` is set.
        Returns True if the window was replaced.
        """
        period_start, period_end = next_period(now)
        counters = {counter: 0 for counter in FEATURE_COUNTERS.values()}
        stmt = update(UsageRecordModel).where(UsageRecordModel.user_id == user_id)
        if not force:
            stmt = stmt.where(UsageRecordModel.period_end <= now)
        result = await session.execute(
            stmt.values(
                {
                    UsageRecordModel.period_start: period_start,
                    UsageRecordModel.period_end: period_end,
                    **counters,
                }
            )
            .returning(UsageRecordModel.id)
            .execution_options(**_NO_SYNC)
        )
        return result.first() is not None

    # ── Feature use ──

    async def consume_quota(
        self,
        session: AsyncSession,
        user_id: str,
        feature: Feature,
        now: datetime,
        limit: int | None,
        ready_before: datetime | None = None,
    ) -> int | None:
        """Increment the monthly count for ``feature`` while under ``limit``.

        ``limit=None`` means unlimited. Also stamps the feature's last use.
        Returns the new count, or None if the quota or cooldown blocked it.
        """
        counter = FEATURE_COUNTERS[feature]
        stmt = update(UsageRecordModel).where(UsageRecordModel.user_id == user_id)
        if limit is not None:
            stmt = stmt.where(counter < limit)
        cooldown = _cooldown_clause(feature, ready_before)
        if cooldown is not None:
            stmt = stmt.where(cooldown)
        result = await session.execute(
            stmt.values({counter: counter + 1, FEATURE_LAST_USED[feature]: now})
            .returning(counter)
            .execution_options(**_NO_SYNC)
        )
        row = result.first()
        return None if row is None else row[0]

    async def touch(
        self,
        session: AsyncSession,
        user_id: str,
        feature: Feature,
        now: datetime,
        ready_before: datetime | None = None,
    ) -> bool:
        """Stamp the feature's last use without metering it."""
        stmt = update(UsageRecordModel).where(UsageRecordModel.user_id == user_id)
        cooldown = _cooldown_clause(feature, ready_before)
        if cooldown is not None:
            stmt = stmt.where(cooldown)
        result = await session.execute(
            stmt.values({FEATURE_LAST_USED[feature]: now})
            .returning(UsageRecordModel.id)
            .execution_options(**_NO_SYNC)
        )
        return result.first() is not None

    # ── Credits ──

    async def debit_credits(
        self,
        session: AsyncSession,
        user_id: str,
        feature: Feature,
        amount: int,
        now: datetime,
        ready_before: datetime | None = None,
    ) -> int | None:
        """Take ``amount`` credits if the balance covers it; returns the new balance."""
        stmt = update(UsageRecordModel).where(
            UsageRecordModel.user_id == user_id,
            UsageRecordModel.available_credits >= amount,
        )
        cooldown = _cooldown_clause(feature, ready_before)
        if cooldown is not None:
            stmt = stmt.where(cooldown)
        result = await session.execute(
            stmt.values(
                {
                    UsageRecordModel.available_credits: UsageRecordModel.available_credits - amount,
                    FEATURE_LAST_USED[feature]: now,
                }
            )
            .returning(UsageRecordModel.available_credits)
            .execution_options(**_NO_SYNC)
        )
        row = result.first()
        return None if row is None else row[0]

    async def add_credits(
        self, session: AsyncSession, user_id: str, amount: int, purchased: bool,
    ) -> int:
        values = {UsageRecordModel.available_credits: UsageRecordModel.available_credits + amount}
        if purchased:
            values[UsageRecordModel.lifetime_credits_purchased] = (
                UsageRecordModel.lifetime_credits_purchased + amount
            )
        result = await session.execute(
            update(UsageRecordModel)
            .where(UsageRecordModel.user_id == user_id)
            .values(values)
            .returning(UsageRecordModel.available_credits)
            .execution_options(**_NO_SYNC)
        )
        row = result.first()
        if row is None:
            raise UsageRecordNotFoundError(f"No usage record for user {user_id}")
        return row[0]

    # ── Provisioning ──

    async def mark_grandfathered(self, session: AsyncSession, user_id: str) -> None:
        await session.execute(
            update(UsageRecordModel)
            .where(UsageRecordModel.user_id == user_id)
            .values(is_grandfathered=True)
            .execution_options(**_NO_SYNC)
        )

    async def set_partnership(
        self, session: AsyncSession, user_id: str, partnership_id: str | None,
    ) -> None:
        await session.execute(
            update(UsageRecordModel)
            .where(UsageRecordModel.user_id == user_id)
            .values(partnership_id=partnership_id)
            .execution_options(**_NO_SYNC)
        )
