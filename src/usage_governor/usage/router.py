"""Usage status and provisioning API router."""

from fastapi import APIRouter, Depends, HTTPException

from usage_governor.admission.features import Feature
from usage_governor.common.exceptions import (
    PartnershipNotFoundError,
    ProvisioningError,
)
from usage_governor.common.security import require_api_key, require_user_id
from usage_governor.usage.schemas import (
    GrandfatherRequest,
    PartnershipAssignRequest,
    PartnershipCreate,
    PartnershipResponse,
    UsageStatusResponse,
)

router = APIRouter()


def _get_service():
    from usage_governor.deps import get_usage_service
    return get_usage_service()


def _get_db():
    from usage_governor.deps import get_db
    return get_db()


@router.get("/usage/me", response_model=UsageStatusResponse)
async def get_my_usage(user_id: str = Depends(require_user_id)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_usage_status(session, user_id)
    except PartnershipNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.get("/usage/{user_id}", response_model=UsageStatusResponse)
async def get_usage(user_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            return await svc.get_usage_status(session, user_id)
    except PartnershipNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/usage/{user_id}/grandfather", response_model=UsageStatusResponse)
async def set_grandfathered(
    user_id: str, body: GrandfatherRequest, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.grandfather(session, user_id, body.grandfathered)
            return await svc.get_usage_status(session, user_id)
    except ProvisioningError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.put("/usage/{user_id}/partnership", response_model=UsageStatusResponse)
async def assign_partnership(
    user_id: str, body: PartnershipAssignRequest, _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            await svc.assign_partnership(session, user_id, body.partnership_id)
            return await svc.get_usage_status(session, user_id)
    except PartnershipNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/usage/{user_id}/reset", response_model=UsageStatusResponse)
async def reset_monthly_usage(user_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        await svc.reset_monthly_usage(session, user_id)
        return await svc.get_usage_status(session, user_id)


# ── Partnerships ──


@router.post("/partnerships", response_model=PartnershipResponse, status_code=201)
async def create_partnership(body: PartnershipCreate, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    limits = {
        Feature.AI_SEARCH: body.ai_search_limit,
        Feature.AI_ANALYSIS: body.ai_analysis_limit,
        Feature.AI_GRANT_WRITING: body.ai_grant_writing_limit,
        Feature.AI_SYNTHESIS: body.ai_synthesis_limit,
    }
    try:
        async with db.get_session() as session:
            partnership = await svc.create_partnership(session, body.name, limits)
            return PartnershipResponse.model_validate(partnership)
    except ProvisioningError as e:
        raise HTTPException(status_code=409, detail=e.message)


@router.get("/partnerships", response_model=list[PartnershipResponse])
async def list_partnerships(_=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        partnerships = await svc.list_partnerships(session)
        return [PartnershipResponse.model_validate(p) for p in partnerships]


@router.get("/partnerships/{partnership_id}", response_model=PartnershipResponse)
async def get_partnership(partnership_id: str, _=Depends(require_api_key)):
    svc = _get_service()
    db = _get_db()
    try:
        async with db.get_session() as session:
            partnership = await svc.get_partnership(session, partnership_id)
            return PartnershipResponse.model_validate(partnership)
    except PartnershipNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
