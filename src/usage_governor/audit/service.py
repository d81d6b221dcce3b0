"""Usage audit log: append-only record of every admission decision."""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from usage_governor.admission.features import Feature
from usage_governor.audit.models import UsageLogModel
from usage_governor.common.logging import AUDIT_FALLBACK_LOGGER

fallback_logger = logging.getLogger(AUDIT_FALLBACK_LOGGER)


class UsageAuditLog:
    """Immutable per-user log of allowed and denied feature uses."""

    def __init__(self, db=None):
        self._db = db

    @property
    def db(self):
        if self._db is None:
            from usage_governor.deps import get_db
            self._db = get_db()
        return self._db

    # ── Write ──

    async def append(
        self,
        session: AsyncSession,
        user_id: str,
        feature: Feature | str,
        status: str,
        credits_used: int = 0,
        was_free: bool = False,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> UsageLogModel:
        """Add an entry inside the caller's transaction."""
        entry = UsageLogModel(
            user_id=user_id,
            feature=getattr(feature, "value", feature),
            credits_used=credits_used,
            was_free=was_free,
            status=getattr(status, "value", status),
            reason=reason,
            metadata_=metadata or {},
        )
        if now is not None:
            entry.created_at = now
            entry.updated_at = now
        session.add(entry)
        await session.flush()
        return entry

    async def append_in_savepoint(
        self,
        session: AsyncSession,
        user_id: str,
        feature: Feature | str,
        status: str,
        **kwargs: Any,
    ) -> UsageLogModel | None:
        """Like ``append``, but a failure only rolls back the entry itself.

        The caller's transaction stays usable; the error goes to the fallback
        channel and None is returned.
        """
        try:
            async with session.begin_nested():
                return await self.append(session, user_id, feature, status, **kwargs)
        except Exception:
            fallback_logger.exception(
                "Failed to write usage log (user=%s feature=%s status=%s)",
                user_id, getattr(feature, "value", feature), getattr(status, "value", status),
            )
            return None

    async def record(
        self,
        user_id: str,
        feature: Feature | str,
        status: str,
        credits_used: int = 0,
        was_free: bool = False,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> UsageLogModel | None:
        """Best-effort write in its own transaction.

        Failures go to the fallback channel and return None; they never reach
        the caller, so a broken audit table cannot change an admission decision.
        Also used directly by background jobs that meter work outside a request.
        """
        try:
            async with self.db.get_session() as session:
                return await self.append(
                    session, user_id, feature, status,
                    credits_used=credits_used,
                    was_free=was_free,
                    reason=reason,
                    metadata=metadata,
                    now=now,
                )
        except Exception:
            fallback_logger.exception(
                "Failed to write usage log (user=%s feature=%s status=%s)",
                user_id, getattr(feature, "value", feature), getattr(status, "value", status),
            )
            return None

    # ── Read ──

    async def get_entries(
        self,
        session: AsyncSession,
        user_id: str,
        feature: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[UsageLogModel]:
        """Paginated entry list, newest first."""
        query = select(UsageLogModel).where(UsageLogModel.user_id == user_id)
        if feature:
            query = query.where(UsageLogModel.feature == feature)
        if status:
            query = query.where(UsageLogModel.status == status)
        query = (
            query.order_by(UsageLogModel.created_at.desc(), UsageLogModel.id)
            .offset(offset)
            .limit(limit)
        )
        result = await session.execute(query)
        return list(result.scalars().all())
