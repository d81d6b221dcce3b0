"""SQLAlchemy models for the credit ledger."""

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from usage_governor.common.models import Base, TimestampMixin, generate_uuid


class CreditTransactionModel(Base, TimestampMixin):
    """Append-only balance movement; amount is negative for debits."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    usage_log_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("usage_logs.id"), nullable=True, index=True
    )
