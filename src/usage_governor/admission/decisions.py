"""Admission decision values returned by the controller."""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Union

from usage_governor.admission.quota import QuotaSource
from usage_governor.admission.rate_limiter import RateLimitScope


class DecisionStatus(str, Enum):
    ALLOWED = "allowed"
    UNAUTHENTICATED = "unauthenticated"
    RATE_LIMITED = "rate_limited"
    COOLDOWN_ACTIVE = "cooldown_active"
    QUOTA_EXCEEDED = "quota_exceeded"
    SYSTEM_FAILURE = "system_failure"


@dataclass(frozen=True)
class Allowed:
    source: QuotaSource
    used: int = 0
    limit: Optional[int] = None
    credits_charged: int = 0
    credits_remaining: Optional[int] = None

    status: ClassVar[DecisionStatus] = DecisionStatus.ALLOWED
    allowed: ClassVar[bool] = True

    @property
    def was_free(self) -> bool:
        return self.credits_charged == 0


@dataclass(frozen=True)
class Unauthenticated:
    status: ClassVar[DecisionStatus] = DecisionStatus.UNAUTHENTICATED
    allowed: ClassVar[bool] = False


@dataclass(frozen=True)
class RateLimited:
    retry_after_seconds: int
    scope: RateLimitScope

    status: ClassVar[DecisionStatus] = DecisionStatus.RATE_LIMITED
    allowed: ClassVar[bool] = False


@dataclass(frozen=True)
class CooldownActive:
    retry_after_seconds: int

    status: ClassVar[DecisionStatus] = DecisionStatus.COOLDOWN_ACTIVE
    allowed: ClassVar[bool] = False


@dataclass(frozen=True)
class QuotaExceeded:
    """Monthly quota used up and no credit fallback succeeded.

    ``credits_needed`` is None for institutional users, whose overage never
    falls back to credits.
    """
    source: QuotaSource
    limit: Optional[int]
    used: int
    credits_needed: Optional[int] = None
    credits_available: int = 0

    status: ClassVar[DecisionStatus] = DecisionStatus.QUOTA_EXCEEDED
    allowed: ClassVar[bool] = False

    @property
    def insufficient_credits(self) -> bool:
        return self.credits_needed is not None


@dataclass(frozen=True)
class SystemFailure:
    reference: str = ""

    status: ClassVar[DecisionStatus] = DecisionStatus.SYSTEM_FAILURE
    allowed: ClassVar[bool] = False


Decision = Union[Allowed, Unauthenticated, RateLimited, CooldownActive, QuotaExceeded, SystemFailure]
