"""Usage service: read-only status view and access provisioning."""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.admission.features import FEATURE_POLICIES, Feature, FeaturePolicy
from usage_governor.admission.quota import resolve_limit
from usage_governor.common.clock import Clock, utc_now
from usage_governor.common.config import GovernorSettings
from usage_governor.common.exceptions import PartnershipNotFoundError, ProvisioningError
from usage_governor.usage.models import FEATURE_LIMITS, UNLIMITED, InstitutionalPartnershipModel
from usage_governor.usage.store import UsageRecordStore
from usage_governor.usage.windows import (
    DAILY_WINDOW,
    HOURLY_WINDOW,
    next_period,
    period_expired,
    roll_window,
)

logger = logging.getLogger(__name__)


class UsageService:
    """Status reporting and provisioning for usage records."""

    def __init__(
        self,
        settings: GovernorSettings,
        store: UsageRecordStore,
        policies: dict[Feature, FeaturePolicy] | None = None,
        clock: Clock = utc_now,
    ):
        self.settings = settings
        self.store = store
        self.policies = policies or FEATURE_POLICIES
        self.clock = clock

    # ── Status ──

    async def get_usage_status(self, session: AsyncSession, user_id: str) -> dict:
        """Usage as of now, with expired windows shown as rolled over.

        Rollovers are projected in memory: nothing is consumed or reset here.
        A missing record is created zeroed so the view is never empty.
        """
        now = self.clock()
        await self.store.ensure(session, user_id, now)
        record = await self.store.require(session, user_id)
        partnership = None
        if record.partnership_id is not None:
            partnership = await self.store.get_partnership(session, record.partnership_id)

        if period_expired(record.period_end, now):
            period_start, period_end = next_period(now)
            monthly_rolled = True
        else:
            period_start, period_end = record.period_start, record.period_end
            monthly_rolled = False

        usage = {}
        access_type = None
        for feature in Feature:
            source, limit = resolve_limit(record, partnership, feature, self.policies)
            access_type = source
            used = 0 if monthly_rolled else record.monthly_count(feature)
            policy = self.policies[feature]
            usage[feature.value] = {
                "used": used,
                "limit": limit,
                "remaining": None if limit is None else max(0, limit - used),
                "unlimited": limit is None,
                "credit_cost": policy.credit_cost,
                "cooldown_seconds": policy.cooldown_seconds,
            }

        hourly = roll_window(record.hourly_count, record.hourly_reset_at, now, HOURLY_WINDOW)
        daily = roll_window(record.daily_count, record.daily_reset_at, now, DAILY_WINDOW)

        return {
            "user_id": user_id,
            "access_type": access_type.value,
            "is_unlimited": record.is_grandfathered,
            "partnership_id": record.partnership_id,
            "credits": {
                "available": record.available_credits,
                "lifetime_purchased": record.lifetime_credits_purchased,
            },
            "current_period": {"start": period_start, "end": period_end},
            "usage": usage,
            "rate_limits": {
                "hourly": {
                    "used": hourly.count,
                    "limit": self.settings.hourly_rate_limit,
                    "reset_at": hourly.reset_at,
                },
                "daily": {
                    "used": daily.count,
                    "limit": self.settings.daily_rate_limit,
                    "reset_at": daily.reset_at,
                },
            },
        }

    # ── Provisioning ──

    async def grandfather(self, session: AsyncSession, user_id: str, grandfathered: bool = True) -> None:
        """Exempt a user from quota metering. The flag can never be cleared."""
        now = self.clock()
        await self.store.ensure(session, user_id, now)
        record = await self.store.require(session, user_id)
        if not grandfathered:
            if record.is_grandfathered:
                raise ProvisioningError(f"Grandfathered status of user {user_id} cannot be revoked")
            return
        if not record.is_grandfathered:
            await self.store.mark_grandfathered(session, user_id)
            logger.info("User %s marked grandfathered", user_id)

    async def assign_partnership(
        self, session: AsyncSession, user_id: str, partnership_id: str | None,
    ) -> None:
        """Attach a user to an institutional partnership, or detach with None."""
        if partnership_id is not None:
            await self.get_partnership(session, partnership_id)
        now = self.clock()
        await self.store.ensure(session, user_id, now)
        await self.store.set_partnership(session, user_id, partnership_id)
        logger.info("User %s partnership set to %s", user_id, partnership_id)

    async def reset_monthly_usage(self, session: AsyncSession, user_id: str) -> None:
        """Start a fresh monthly window immediately."""
        now = self.clock()
        await self.store.ensure(session, user_id, now)
        await self.store.roll_monthly_period(session, user_id, now, force=True)

    # ── Partnerships ──

    async def create_partnership(
        self,
        session: AsyncSession,
        name: str,
        limits: dict[Feature, int] | None = None,
    ) -> InstitutionalPartnershipModel:
        """Create a partnership; features missing from ``limits`` are unlimited."""
        limits = limits or {}
        partnership = InstitutionalPartnershipModel(name=name)
        for feature, column in FEATURE_LIMITS.items():
            setattr(partnership, column.key, limits.get(feature, UNLIMITED))
        session.add(partnership)
        try:
            await session.flush()
        except IntegrityError as exc:
            raise ProvisioningError(f"Partnership '{name}' already exists") from exc
        return partnership

    async def get_partnership(
        self, session: AsyncSession, partnership_id: str,
    ) -> InstitutionalPartnershipModel:
        partnership = await self.store.get_partnership(session, partnership_id)
        if partnership is None:
            raise PartnershipNotFoundError(f"Partnership {partnership_id} not found")
        return partnership

    async def list_partnerships(self, session: AsyncSession) -> list[InstitutionalPartnershipModel]:
        result = await session.execute(
            select(InstitutionalPartnershipModel).order_by(InstitutionalPartnershipModel.name)
        )
        return list(result.scalars().all())
