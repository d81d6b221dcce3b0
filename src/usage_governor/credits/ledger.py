"""Credit ledger: atomic balance movements with a transaction trail."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.admission.decisions import DecisionStatus
from usage_governor.admission.features import Feature
from usage_governor.audit.models import UsageLogModel
from usage_governor.audit.service import UsageAuditLog
from usage_governor.common.exceptions import InvalidCreditAmountError
from usage_governor.credits.models import CreditTransactionModel
from usage_governor.usage.store import UsageRecordStore

DEBIT = "debit"
PURCHASE = "purchase"
GRANT = "grant"


@dataclass(frozen=True)
class DebitResult:
    success: bool
    balance: int
    transaction: CreditTransactionModel | None = None
    usage_log: UsageLogModel | None = None


class CreditLedger:
    """Debits and grants against ``available_credits``.

    The balance check and decrement are one conditional update, so concurrent
    debits can never take the balance below zero. A successful debit writes
    its credit transaction in the same transaction; the audit entry sits in a
    savepoint, so a failed audit write leaves the charge standing.
    """

    def __init__(self, store: UsageRecordStore, audit: UsageAuditLog):
        self.store = store
        self.audit = audit

    async def debit(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        feature: Feature,
        now: datetime,
        ready_before: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> DebitResult:
        """Charge ``amount`` credits for one use of ``feature``.

        ``ready_before`` carries the feature's cooldown into the same update;
        a debit that would land inside the cooldown fails like an empty balance
        and the caller re-checks which one it was.
        """
        if amount <= 0:
            raise InvalidCreditAmountError(f"Debit amount must be positive, got {amount}")

        balance = await self.store.debit_credits(
            session, user_id, feature, amount, now, ready_before,
        )
        if balance is None:
            record = await self.store.require(session, user_id)
            return DebitResult(success=False, balance=record.available_credits)

        entry = await self.audit.append_in_savepoint(
            session, user_id, feature, DecisionStatus.ALLOWED,
            credits_used=amount,
            was_free=False,
            reason="credits_charged",
            metadata=metadata,
            now=now,
        )
        transaction = await self._add_transaction(
            session, user_id, DEBIT, -amount, balance,
            f"Used {amount} credits for {feature.label}",
            now, usage_log_id=entry.id if entry is not None else None,
        )
        return DebitResult(
            success=True, balance=balance, transaction=transaction, usage_log=entry,
        )

    async def grant(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
        now: datetime,
        description: str = "",
        purchased: bool = True,
    ) -> CreditTransactionModel:
        """Add credits, e.g. after a completed purchase or as a manual grant."""
        if amount <= 0:
            raise InvalidCreditAmountError(f"Grant amount must be positive, got {amount}")

        await self.store.ensure(session, user_id, now)
        balance = await self.store.add_credits(session, user_id, amount, purchased)
        kind = PURCHASE if purchased else GRANT
        return await self._add_transaction(
            session, user_id, kind, amount, balance,
            description or f"{kind.capitalize()} of {amount} credits",
            now,
        )

    async def get_transactions(
        self,
        session: AsyncSession,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[CreditTransactionModel]:
        result = await session.execute(
            select(CreditTransactionModel)
            .where(CreditTransactionModel.user_id == user_id)
            .order_by(CreditTransactionModel.created_at.desc(), CreditTransactionModel.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def get_balance(
        self, session: AsyncSession, user_id: str, now: datetime, recent: int = 20,
    ) -> dict:
        """Balance, current period counts and the latest transactions."""
        await self.store.ensure(session, user_id, now)
        record = await self.store.require(session, user_id)
        transactions = await self.get_transactions(session, user_id, limit=recent)
        return {
            "user_id": user_id,
            "available_credits": record.available_credits,
            "lifetime_credits_purchased": record.lifetime_credits_purchased,
            "is_grandfathered": record.is_grandfathered,
            "current_period": {
                "start": record.period_start,
                "end": record.period_end,
                "counts": {f.value: record.monthly_count(f) for f in Feature},
            },
            "last_activity": record.last_request_at,
            "recent_transactions": transactions,
        }

    @staticmethod
    async def _add_transaction(
        session: AsyncSession,
        user_id: str,
        transaction_type: str,
        amount: int,
        balance_after: int,
        description: str,
        now: datetime,
        usage_log_id: str | None = None,
    ) -> CreditTransactionModel:
        transaction = CreditTransactionModel(
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            balance_after=balance_after,
            description=description,
            usage_log_id=usage_log_id,
            created_at=now,
            updated_at=now,
        )
        session.add(transaction)
        await session.flush()
        return transaction
