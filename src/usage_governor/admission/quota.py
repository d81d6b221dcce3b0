"""Monthly quota resolution: grandfathered, institutional or free tier."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.admission.features import FEATURE_POLICIES, Feature, FeaturePolicy
from usage_governor.common.exceptions import PartnershipNotFoundError
from usage_governor.usage.models import (
    UNLIMITED,
    InstitutionalPartnershipModel,
    UsageRecordModel,
)
from usage_governor.usage.store import UsageRecordStore


class QuotaSource(str, Enum):
    GRANDFATHERED = "grandfathered"
    INSTITUTIONAL = "institutional"
    FREE = "free"


@dataclass(frozen=True)
class QuotaEvaluation:
    source: QuotaSource
    limit: int | None  # None means unlimited
    used: int
    record: UsageRecordModel

    @property
    def unlimited(self) -> bool:
        return self.limit is None

    @property
    def within_quota(self) -> bool:
        return self.limit is None or self.used < self.limit

    @property
    def remaining(self) -> int | None:
        if self.limit is None:
            return None
        return max(0, self.limit - self.used)


def resolve_limit(
    record: UsageRecordModel,
    partnership: InstitutionalPartnershipModel | None,
    feature: Feature,
    policies: dict[Feature, FeaturePolicy] = FEATURE_POLICIES,
) -> tuple[QuotaSource, int | None]:
    """Pick the effective monthly limit for ``feature``; first match wins."""
    if record.is_grandfathered:
        return QuotaSource.GRANDFATHERED, None
    if record.partnership_id is not None:
        if partnership is None:
            raise PartnershipNotFoundError(
                f"Partnership {record.partnership_id} referenced by user {record.user_id} is missing"
            )
        limit = partnership.limit_for(feature)
        return QuotaSource.INSTITUTIONAL, None if limit == UNLIMITED else limit
    return QuotaSource.FREE, policies[feature].free_quota


class QuotaEvaluator:
    """Resolves a user's effective limit and monthly usage for one feature."""

    def __init__(
        self,
        store: UsageRecordStore,
        policies: dict[Feature, FeaturePolicy] | None = None,
    ):
        self.store = store
        self.policies = policies or FEATURE_POLICIES

    async def evaluate(
        self, session: AsyncSession, user_id: str, feature: Feature, now: datetime,
    ) -> QuotaEvaluation:
        # The rollover is conditional on the stored period end, so a second
        # call inside the new window sees it already advanced.
        await self.store.roll_monthly_period(session, user_id, now)
        record = await self.store.require(session, user_id)

        partnership = None
        if record.partnership_id is not None:
            partnership = await self.store.get_partnership(session, record.partnership_id)

        source, limit = resolve_limit(record, partnership, feature, self.policies)
        return QuotaEvaluation(
            source=source,
            limit=limit,
            used=record.monthly_count(feature),
            record=record,
        )
