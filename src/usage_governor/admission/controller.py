"""Admission controller: one allow/deny decision per metered feature use.

Pipeline, in strict order:

1. identity            -> Unauthenticated
2. rate limiter        -> RateLimited (counts are consumed even if a later
                          step denies, bounding abusive probing)
3. cooldown guard      -> CooldownActive
4. quota evaluator     -> Allowed (grandfathered / within quota) or
                          QuotaExceeded (institutional overage)
5. credit ledger       -> Allowed (paid) or QuotaExceeded (no credits)

Every step that mutates counters runs as its own short transaction built
around a single conditional update. Storage faults are logged with a
reference id and surfaced as SystemFailure; nothing raises past ``admit``
except an unknown feature identifier, which is a programming error.
"""

import logging
from datetime import datetime
from typing import Any

from usage_governor.admission.cooldown import CooldownGuard, CooldownVerdict
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
from usage_governor.admission.features import Feature, resolve_feature
from usage_governor.admission.quota import QuotaEvaluation, QuotaEvaluator, QuotaSource
from usage_governor.admission.rate_limiter import RateLimiter
from usage_governor.audit.service import UsageAuditLog
from usage_governor.common.clock import Clock, utc_now
from usage_governor.common.models import generate_uuid
from usage_governor.credits.ledger import CreditLedger
from usage_governor.usage.store import UsageRecordStore

logger = logging.getLogger(__name__)

# A conditional update that misses is re-evaluated this many times before
# the request is treated as a storage fault.
_MAX_SETTLE_ATTEMPTS = 3


class AdmissionController:
    """Orchestrates rate limit, cooldown, quota and credits for one request."""

    def __init__(
        self,
        db,
        store: UsageRecordStore,
        rate_limiter: RateLimiter,
        cooldown: CooldownGuard,
        quota: QuotaEvaluator,
        ledger: CreditLedger,
        audit: UsageAuditLog,
        clock: Clock = utc_now,
    ):
        self.db = db
        self.store = store
        self.rate_limiter = rate_limiter
        self.cooldown = cooldown
        self.quota = quota
        self.ledger = ledger
        self.audit = audit
        self.clock = clock
        self.policies = quota.policies

    async def admit(
        self,
        user_id: str | None,
        feature: Feature | str,
        metadata: dict[str, Any] | None = None,
    ) -> Decision:
        """Decide whether ``user_id`` may use ``feature`` right now."""
        feature = resolve_feature(feature)
        if not user_id:
            return Unauthenticated()

        metadata = dict(metadata or {})
        now = self.clock()
        try:
            return await self._decide(user_id, feature, now, metadata)
        except Exception as exc:
            reference = generate_uuid()
            logger.exception(
                "Usage limit check failed for %s (user=%s ref=%s)",
                feature.value, user_id, reference,
            )
            await self.audit.record(
                user_id, feature, DecisionStatus.SYSTEM_FAILURE,
                reason="system_failure",
                metadata={**metadata, "error": type(exc).__name__, "reference": reference},
                now=now,
            )
            return SystemFailure(reference=reference)

    # ── Pipeline ──

    async def _decide(
        self, user_id: str, feature: Feature, now: datetime, metadata: dict[str, Any],
    ) -> Decision:
        async with self.db.get_session() as session:
            await self.store.ensure(session, user_id, now)

        async with self.db.get_session() as session:
            rate = await self.rate_limiter.check_and_consume(session, user_id, now)
        if not rate.allowed:
            await self._audit(
                user_id, feature, DecisionStatus.RATE_LIMITED, now, metadata,
                reason=f"{rate.scope.value}_rate_limit",
            )
            return RateLimited(retry_after_seconds=rate.retry_after, scope=rate.scope)

        async with self.db.get_session() as session:
            record = await self.store.require(session, user_id)
        cooldown = self.cooldown.check(record, feature, now)
        if not cooldown.allowed:
            return await self._deny_cooldown(user_id, feature, cooldown, now, metadata)

        async with self.db.get_session() as session:
            evaluation = await self.quota.evaluate(session, user_id, feature, now)
        return await self._settle(user_id, feature, evaluation, now, metadata)

    async def _settle(
        self,
        user_id: str,
        feature: Feature,
        evaluation: QuotaEvaluation,
        now: datetime,
        metadata: dict[str, Any],
    ) -> Decision:
        ready_before = self.cooldown.ready_before(feature, now)

        for _ in range(_MAX_SETTLE_ATTEMPTS):
            if evaluation.source is QuotaSource.GRANDFATHERED:
                async with self.db.get_session() as session:
                    touched = await self.store.touch(session, user_id, feature, now, ready_before)
                if touched:
                    await self._audit(
                        user_id, feature, DecisionStatus.ALLOWED, now, metadata,
                        was_free=True, reason="grandfathered_user",
                        source=evaluation.source.value,
                    )
                    return Allowed(source=evaluation.source, used=evaluation.used)

            elif evaluation.within_quota:
                async with self.db.get_session() as session:
                    used = await self.store.consume_quota(
                        session, user_id, feature, now, evaluation.limit, ready_before,
                    )
                if used is not None:
                    remaining = None if evaluation.limit is None else evaluation.limit - used
                    await self._audit(
                        user_id, feature, DecisionStatus.ALLOWED, now, metadata,
                        was_free=True, reason="within_quota",
                        source=evaluation.source.value, quota_remaining=remaining,
                    )
                    return Allowed(source=evaluation.source, used=used, limit=evaluation.limit)

            elif evaluation.source is QuotaSource.INSTITUTIONAL:
                await self._audit(
                    user_id, feature, DecisionStatus.QUOTA_EXCEEDED, now, metadata,
                    reason="institutional_quota_exceeded",
                    limit=evaluation.limit, used=evaluation.used,
                )
                return QuotaExceeded(
                    source=evaluation.source,
                    limit=evaluation.limit,
                    used=evaluation.used,
                    credits_available=evaluation.record.available_credits,
                )

            else:
                return await self._charge_credits(user_id, feature, evaluation, now, metadata)

            # The conditional update missed: a concurrent request for this
            # user moved the counters first. Look again.
            async with self.db.get_session() as session:
                evaluation = await self.quota.evaluate(session, user_id, feature, now)
            cooldown = self.cooldown.check(evaluation.record, feature, now)
            if not cooldown.allowed:
                return await self._deny_cooldown(user_id, feature, cooldown, now, metadata)

        raise RuntimeError(
            f"Could not settle {feature.value} quota for user {user_id} "
            f"after {_MAX_SETTLE_ATTEMPTS} attempts"
        )

    async def _charge_credits(
        self,
        user_id: str,
        feature: Feature,
        evaluation: QuotaEvaluation,
        now: datetime,
        metadata: dict[str, Any],
    ) -> Decision:
        cost = self.policies[feature].credit_cost
        async with self.db.get_session() as session:
            result = await self.ledger.debit(
                session, user_id, cost, feature, now,
                ready_before=self.cooldown.ready_before(feature, now),
                metadata={**metadata, "source": evaluation.source.value, "quota_exceeded": True},
            )
        if result.success:
            return Allowed(
                source=evaluation.source,
                used=evaluation.used,
                limit=evaluation.limit,
                credits_charged=cost,
                credits_remaining=result.balance,
            )

        async with self.db.get_session() as session:
            record = await self.store.require(session, user_id)
        cooldown = self.cooldown.check(record, feature, now)
        if not cooldown.allowed:
            return await self._deny_cooldown(user_id, feature, cooldown, now, metadata)

        used = record.monthly_count(feature)
        await self._audit(
            user_id, feature, DecisionStatus.QUOTA_EXCEEDED, now, metadata,
            reason="no_credits",
            quota_exceeded=True,
            credits_needed=cost,
            credits_available=record.available_credits,
        )
        return QuotaExceeded(
            source=evaluation.source,
            limit=evaluation.limit,
            used=used,
            credits_needed=cost,
            credits_available=record.available_credits,
        )

    # ── Helpers ──

    async def _deny_cooldown(
        self,
        user_id: str,
        feature: Feature,
        verdict: CooldownVerdict,
        now: datetime,
        metadata: dict[str, Any],
    ) -> CooldownActive:
        await self._audit(
            user_id, feature, DecisionStatus.COOLDOWN_ACTIVE, now, metadata,
            reason="cooldown_active", retry_after=verdict.retry_after,
        )
        return CooldownActive(retry_after_seconds=verdict.retry_after)

    async def _audit(
        self,
        user_id: str,
        feature: Feature,
        status: DecisionStatus,
        now: datetime,
        metadata: dict[str, Any],
        reason: str | None = None,
        was_free: bool = False,
        **detail: Any,
    ) -> None:
        await self.audit.record(
            user_id, feature, status,
            credits_used=0,
            was_free=was_free,
            reason=reason,
            metadata={**metadata, **detail},
            now=now,
        )
