"""Pydantic schemas for admission decisions and the pricing table."""

import math
from typing import Optional

from pydantic import BaseModel

from usage_governor.admission.decisions import (
    Allowed,
    CooldownActive,
    Decision,
    QuotaExceeded,
    RateLimited,
    SystemFailure,
    Unauthenticated,
)
from usage_governor.admission.features import Feature, FeaturePolicy
from usage_governor.admission.quota import QuotaSource
from usage_governor.admission.rate_limiter import RateLimitScope

HTTP_STATUS = {
    Allowed: 200,
    Unauthenticated: 401,
    QuotaExceeded: 403,
    RateLimited: 429,
    CooldownActive: 429,
    SystemFailure: 500,
}


class DecisionResponse(BaseModel):
    status: str
    allowed: bool
    feature: str
    error: Optional[str] = None
    message: str = ""

    source: Optional[str] = None
    used: Optional[int] = None
    limit: Optional[int] = None
    credits_charged: int = 0
    credits_remaining: Optional[int] = None
    was_free: Optional[bool] = None

    retry_after_seconds: Optional[int] = None
    scope: Optional[str] = None

    credits_needed: Optional[int] = None
    credits_available: Optional[int] = None

    reference: Optional[str] = None

    @classmethod
    def from_decision(cls, decision: Decision, feature: Feature) -> "DecisionResponse":
        base = {
            "status": decision.status.value,
            "allowed": decision.allowed,
            "feature": feature.value,
        }
        if isinstance(decision, Allowed):
            return cls(
                **base,
                message=_allowed_message(decision, feature),
                source=decision.source.value,
                used=decision.used,
                limit=decision.limit,
                credits_charged=decision.credits_charged,
                credits_remaining=decision.credits_remaining,
                was_free=decision.was_free,
            )
        if isinstance(decision, Unauthenticated):
            return cls(
                **base,
                error="Authentication required",
                message="You must be logged in to use AI features",
            )
        if isinstance(decision, RateLimited):
            return cls(
                **base,
                error="Rate limit exceeded",
                message=_rate_limit_message(decision),
                retry_after_seconds=decision.retry_after_seconds,
                scope=decision.scope.value,
            )
        if isinstance(decision, CooldownActive):
            minutes = math.ceil(decision.retry_after_seconds / 60)
            return cls(
                **base,
                error="Cooldown period active",
                message=(
                    f"Please wait {minutes} minutes between {feature.label} "
                    "requests to prevent system abuse."
                ),
                retry_after_seconds=decision.retry_after_seconds,
            )
        if isinstance(decision, QuotaExceeded):
            return cls(
                **base,
                error=_quota_error(decision),
                message=_quota_message(decision, feature),
                source=decision.source.value,
                used=decision.used,
                limit=decision.limit,
                credits_needed=decision.credits_needed,
                credits_available=decision.credits_available,
            )
        return cls(
            **base,
            error="Usage limit check failed",
            message="An error occurred while checking usage limits. Please try again.",
            reference=decision.reference,
        )


def _allowed_message(decision: Allowed, feature: Feature) -> str:
    if decision.source is QuotaSource.GRANDFATHERED:
        return f"Unlimited {feature.label} access"
    if not decision.was_free:
        return (
            f"Used {decision.credits_charged} credits for {feature.label}, "
            f"{decision.credits_remaining} remaining"
        )
    if decision.limit is None:
        return f"Unlimited {feature.label} access"
    return f"{decision.used} of {decision.limit} monthly {feature.label} requests used"


def _rate_limit_message(decision: RateLimited) -> str:
    if decision.scope is RateLimitScope.HOURLY:
        minutes = math.ceil(decision.retry_after_seconds / 60)
        return f"Hourly rate limit exceeded. Please try again in {minutes} minutes."
    hours = math.ceil(decision.retry_after_seconds / 3600)
    return f"Daily rate limit exceeded. Please try again in {hours} hours."


def _quota_error(decision: QuotaExceeded) -> str:
    if decision.source is QuotaSource.INSTITUTIONAL:
        return "Institutional quota exceeded"
    return "Usage quota exceeded"


def _quota_message(decision: QuotaExceeded, feature: Feature) -> str:
    if decision.source is QuotaSource.INSTITUTIONAL:
        return (
            f"Your institutional partnership has reached its monthly {feature.label} "
            f"limit of {decision.limit} requests. Please contact your institutional "
            "administrator."
        )
    return (
        f"You've exceeded your monthly {feature.label} quota. "
        "Please purchase credits to continue."
    )


class FeaturePricing(BaseModel):
    feature: str
    label: str
    free_quota: int
    credit_cost: int
    cooldown_seconds: int

    @classmethod
    def from_policy(cls, feature: Feature, policy: FeaturePolicy) -> "FeaturePricing":
        return cls(
            feature=feature.value,
            label=feature.label,
            free_quota=policy.free_quota,
            credit_cost=policy.credit_cost,
            cooldown_seconds=policy.cooldown_seconds,
        )
