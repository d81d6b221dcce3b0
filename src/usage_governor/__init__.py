"""Usage-Governor: admission control, quotas and credits for metered AI features."""

from usage_governor.admission.decisions import (
    Allowed,
    CooldownActive,
    Decision,
    DecisionStatus,
    QuotaExceeded,
    RateLimited,
    SystemFailure,
    Unauthenticated,
)
from usage_governor.admission.features import FEATURE_POLICIES, Feature, FeaturePolicy
from usage_governor.client import GovernorClient

__all__ = [
    "GovernorClient",
    "Feature",
    "FeaturePolicy",
    "FEATURE_POLICIES",
    "Decision",
    "DecisionStatus",
    "Allowed",
    "Unauthenticated",
    "RateLimited",
    "CooldownActive",
    "QuotaExceeded",
    "SystemFailure",
]
__version__ = "0.1.0"
