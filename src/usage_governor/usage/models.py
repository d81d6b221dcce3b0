"""SQLAlchemy models for per-user usage records and partnerships."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from usage_governor.admission.features import Feature
from usage_governor.common.models import Base, TimestampMixin, UTCDateTime, generate_uuid

UNLIMITED = -1


class InstitutionalPartnershipModel(Base, TimestampMixin):
    __tablename__ = "institutional_partnerships"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    ai_search_limit: Mapped[int] = mapped_column(Integer, default=UNLIMITED, nullable=False)
    ai_analysis_limit: Mapped[int] = mapped_column(Integer, default=UNLIMITED, nullable=False)
    ai_grant_writing_limit: Mapped[int] = mapped_column(Integer, default=UNLIMITED, nullable=False)
    ai_synthesis_limit: Mapped[int] = mapped_column(Integer, default=UNLIMITED, nullable=False)

    def limit_for(self, feature: Feature) -> int:
        return getattr(self, FEATURE_LIMITS[feature].key)


class UsageRecordModel(Base, TimestampMixin):
    __tablename__ = "usage_records"
    __table_args__ = (
        CheckConstraint("available_credits >= 0", name="ck_usage_records_credits_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)

    # Monthly accounting window
    period_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ai_search_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_analysis_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_grant_writing_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    ai_synthesis_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Cooldown bookkeeping
    last_ai_search_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_ai_analysis_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_ai_grant_writing_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_ai_synthesis_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Fixed-window rate counters
    hourly_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    hourly_reset_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    daily_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    daily_reset_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    last_request_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Credits
    available_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_credits_purchased: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Access provisioning
    is_grandfathered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    partnership_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("institutional_partnerships.id"), nullable=True, index=True
    )

    def monthly_count(self, feature: Feature) -> int:
        return getattr(self, FEATURE_COUNTERS[feature].key)

    def last_used_at(self, feature: Feature) -> datetime | None:
        return getattr(self, FEATURE_LAST_USED[feature].key)


FEATURE_COUNTERS = {
    Feature.AI_SEARCH: UsageRecordModel.ai_search_count,
    Feature.AI_ANALYSIS: UsageRecordModel.ai_analysis_count,
    Feature.AI_GRANT_WRITING: UsageRecordModel.ai_grant_writing_count,
    Feature.AI_SYNTHESIS: UsageRecordModel.ai_synthesis_count,
}

FEATURE_LAST_USED = {
    Feature.AI_SEARCH: UsageRecordModel.last_ai_search_at,
    Feature.AI_ANALYSIS: UsageRecordModel.last_ai_analysis_at,
    Feature.AI_GRANT_WRITING: UsageRecordModel.last_ai_grant_writing_at,
    Feature.AI_SYNTHESIS: UsageRecordModel.last_ai_synthesis_at,
}

FEATURE_LIMITS = {
    Feature.AI_SEARCH: InstitutionalPartnershipModel.ai_search_limit,
    Feature.AI_ANALYSIS: InstitutionalPartnershipModel.ai_analysis_limit,
    Feature.AI_GRANT_WRITING: InstitutionalPartnershipModel.ai_grant_writing_limit,
    Feature.AI_SYNTHESIS: InstitutionalPartnershipModel.ai_synthesis_limit,
}

for _name, _mapping in (
    ("FEATURE_COUNTERS", FEATURE_COUNTERS),
    ("FEATURE_LAST_USED", FEATURE_LAST_USED),
    ("FEATURE_LIMITS", FEATURE_LIMITS),
):
    if set(_mapping) != set(Feature):
        raise RuntimeError(f"{_name} does not cover every Feature")
