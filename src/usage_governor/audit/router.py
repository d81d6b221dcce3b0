"""Usage audit API router."""

from fastapi import APIRouter, Depends, Query

from usage_governor.admission.decisions import DecisionStatus
from usage_governor.admission.features import Feature
from usage_governor.audit.schemas import UsageLogResponse
from usage_governor.common.security import require_api_key

router = APIRouter()


def _get_service():
    from usage_governor.deps import get_audit_log
    return get_audit_log()


def _get_db():
    from usage_governor.deps import get_db
    return get_db()


@router.get("/audit/{user_id}", response_model=list[UsageLogResponse])
async def get_usage_logs(
    user_id: str,
    feature: Feature | None = Query(None),
    status: DecisionStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    _=Depends(require_api_key),
):
    svc = _get_service()
    db = _get_db()
    async with db.get_session() as session:
        entries = await svc.get_entries(
            session, user_id,
            feature=feature.value if feature else None,
            status=status.value if status else None,
            limit=limit, offset=offset,
        )
        return [
            UsageLogResponse(
                id=e.id,
                user_id=e.user_id,
                feature=e.feature,
                credits_used=e.credits_used,
                was_free=e.was_free,
                status=e.status,
                reason=e.reason,
                metadata=e.metadata_ or {},
                created_at=e.created_at,
            )
            for e in entries
        ]
