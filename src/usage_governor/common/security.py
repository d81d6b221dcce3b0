"""Request identity and admin API key dependencies."""

from typing import Optional

from fastapi import Header, HTTPException


async def require_api_key(
    x_governor_api_key: str = Header(..., alias="X-Governor-Api-Key"),
) -> str:
    """FastAPI dependency that validates admin API key from header."""
    from usage_governor.common.config import get_settings

    settings = get_settings()
    if x_governor_api_key != settings.api_key:
        raise HTTPException(status_code=403, detail="Invalid API key")
    return x_governor_api_key


async def current_user_id(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> Optional[str]:
    """Authenticated user id forwarded by the upstream auth layer.

    Returns None when the header is absent or blank; the admission engine
    turns that into an Unauthenticated decision.
    """
    if x_user_id is None:
        return None
    return x_user_id.strip() or None


async def require_user_id(
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> str:
    """Like current_user_id, but rejects anonymous callers outright."""
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=401,
            detail="You must be logged in to use AI features",
        )
    return user_id.strip()
