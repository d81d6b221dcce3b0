"""FastAPI dependencies for routes that consume or display metered features."""

import logging
from typing import Any, Optional

from fastapi import Depends, HTTPException, Request

from usage_governor.admission.decisions import Allowed
from usage_governor.admission.features import Feature, resolve_feature
from usage_governor.admission.schemas import HTTP_STATUS, DecisionResponse
from usage_governor.common.security import current_user_id

logger = logging.getLogger(__name__)


def request_metadata(request: Request) -> dict[str, Any]:
    """Request context stored with each usage log entry."""
    return {
        "endpoint": request.url.path,
        "method": request.method,
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


def require_feature(feature: Feature | str):
    """Build a dependency that admits one use of ``feature`` or aborts the request.

    Usage::

        @router.post("/search")
        async def search(decision: Allowed = Depends(require_feature("ai_search"))):
            ...

    Denials raise HTTPException carrying the decision body, with Retry-After
    where it applies. Unknown features fail at route definition time.
    """
    resolved = resolve_feature(feature)

    async def _guard(
        request: Request,
        user_id: Optional[str] = Depends(current_user_id),
    ) -> Allowed:
        from usage_governor.deps import get_admission_controller

        decision = await get_admission_controller().admit(
            user_id, resolved, request_metadata(request),
        )
        if isinstance(decision, Allowed):
            return decision

        body = DecisionResponse.from_decision(decision, resolved)
        headers = None
        if body.retry_after_seconds is not None:
            headers = {"Retry-After": str(body.retry_after_seconds)}
        raise HTTPException(
            status_code=HTTP_STATUS[type(decision)],
            detail=body.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )

    return _guard


async def attach_usage_status(
    request: Request,
    user_id: Optional[str] = Depends(current_user_id),
) -> Optional[dict[str, Any]]:
    """Usage status for the caller, also stored on ``request.state.usage_status``.

    Can be applied app-wide with ``FastAPI(dependencies=[Depends(attach_usage_status)])``.
    Anonymous callers get None. A failed lookup is logged and also yields None;
    it never fails the request.
    """
    from usage_governor.deps import get_db, get_usage_service

    status = None
    if user_id:
        try:
            async with get_db().get_session() as session:
                status = await get_usage_service().get_usage_status(session, user_id)
        except Exception:
            logger.exception("Failed to attach usage status for user=%s", user_id)
    request.state.usage_status = status
    return status
