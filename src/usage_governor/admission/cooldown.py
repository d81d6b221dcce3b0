"""Per-feature minimum interval between successive uses."""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from usage_governor.admission.features import FEATURE_POLICIES, Feature, FeaturePolicy
from usage_governor.usage.models import UsageRecordModel


@dataclass(frozen=True)
class CooldownVerdict:
    allowed: bool
    retry_after: int = 0


class CooldownGuard:
    """Read-only cooldown check.

    The guard never stamps ``last_used_at`` itself; that happens only when an
    admission succeeds, so denied attempts do not restart the cooldown.
    """

    def __init__(self, policies: dict[Feature, FeaturePolicy] | None = None):
        self.policies = policies or FEATURE_POLICIES

    def cooldown_for(self, feature: Feature) -> int:
        return self.policies[feature].cooldown_seconds

    def check(self, record: UsageRecordModel, feature: Feature, now: datetime) -> CooldownVerdict:
        cooldown = self.cooldown_for(feature)
        if cooldown == 0:
            return CooldownVerdict(allowed=True)

        last_used = record.last_used_at(feature)
        if last_used is None:
            return CooldownVerdict(allowed=True)

        elapsed = (now - last_used).total_seconds()
        if elapsed < cooldown:
            return CooldownVerdict(
                allowed=False,
                retry_after=max(1, math.ceil(cooldown - elapsed)),
            )
        return CooldownVerdict(allowed=True)

    def ready_before(self, feature: Feature, now: datetime) -> datetime | None:
        """Latest last-use instant that still lets ``feature`` run at ``now``.

        None when the feature has no cooldown.
        """
        cooldown = self.cooldown_for(feature)
        if cooldown == 0:
            return None
        return now - timedelta(seconds=cooldown)
