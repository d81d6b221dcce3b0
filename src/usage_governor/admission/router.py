"""Admission API router: one decision per metered feature use."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from usage_governor.admission.dependencies import request_metadata
from usage_governor.admission.features import resolve_feature
from usage_governor.admission.schemas import HTTP_STATUS, DecisionResponse
from usage_governor.common.exceptions import UnknownFeatureError
from usage_governor.common.security import current_user_id

router = APIRouter()


def _get_controller():
    from usage_governor.deps import get_admission_controller
    return get_admission_controller()


@router.post("/admission/{feature}", response_model=DecisionResponse)
async def admit(
    feature: str,
    request: Request,
    user_id: Optional[str] = Depends(current_user_id),
):
    """Decide whether the caller may use ``feature`` now.

    The decision is returned in the body for every outcome; the status code
    mirrors it (429 with Retry-After for rate limits and cooldowns).
    """
    try:
        resolved = resolve_feature(feature)
    except UnknownFeatureError as e:
        raise HTTPException(status_code=400, detail=e.message)

    controller = _get_controller()
    decision = await controller.admit(user_id, resolved, request_metadata(request))
    body = DecisionResponse.from_decision(decision, resolved)

    headers = {}
    if body.retry_after_seconds is not None:
        headers["Retry-After"] = str(body.retry_after_seconds)
    return JSONResponse(
        status_code=HTTP_STATUS[type(decision)],
        content=body.model_dump(mode="json"),
        headers=headers,
    )
