"""Credits API router: pricing, balance and admin grants."""

from fastapi import APIRouter, Depends, HTTPException

from usage_governor.admission.schemas import FeaturePricing
from usage_governor.common.exceptions import InvalidCreditAmountError
from usage_governor.common.security import require_api_key, require_user_id
from usage_governor.credits.schemas import (
    CreditBalanceResponse,
    CreditGrantRequest,
    CreditGrantResponse,
    CreditTransactionResponse,
)

router = APIRouter()


def _get_ledger():
    from usage_governor.deps import get_credit_ledger
    return get_credit_ledger()


def _get_db():
    from usage_governor.deps import get_db
    return get_db()


@router.get("/credits/pricing", response_model=list[FeaturePricing])
async def get_pricing():
    from usage_governor.deps import get_quota_evaluator

    policies = get_quota_evaluator().policies
    return [FeaturePricing.from_policy(f, p) for f, p in policies.items()]


@router.get("/credits/balance", response_model=CreditBalanceResponse)
async def get_balance(user_id: str = Depends(require_user_id)):
    from usage_governor.common.config import get_settings
    from usage_governor.deps import get_clock

    ledger = _get_ledger()
    db = _get_db()
    async with db.get_session() as session:
        balance = await ledger.get_balance(
            session, user_id, get_clock()(),
            recent=get_settings().recent_transactions_limit,
        )
        return CreditBalanceResponse.model_validate(balance, from_attributes=True)


@router.post("/credits/{user_id}/grant", response_model=CreditGrantResponse, status_code=201)
async def grant_credits(
    user_id: str, body: CreditGrantRequest, _=Depends(require_api_key),
):
    from usage_governor.deps import get_clock

    ledger = _get_ledger()
    db = _get_db()
    try:
        async with db.get_session() as session:
            transaction = await ledger.grant(
                session, user_id, body.amount, get_clock()(),
                description=body.description,
                purchased=body.purchased,
            )
            return CreditGrantResponse(
                user_id=user_id,
                available_credits=transaction.balance_after,
                transaction=CreditTransactionResponse.model_validate(transaction),
            )
    except InvalidCreditAmountError as e:
        raise HTTPException(status_code=400, detail=e.message)
