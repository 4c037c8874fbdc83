from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .core.database import Base


def now_naive() -> datetime:
    """Current wall-clock time as a naive datetime truncated to milliseconds."""
    now = datetime.now()
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_naive, onupdate=now_naive, nullable=False)


class TxnType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"


class RecurringType(str, Enum):
    FIXED = "fixed"
    INSTALLMENT = "installment"


class FixedFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUAL = "annual"


class InstallmentPeriod(str, Enum):
    DAYS = "days"
    WEEKS = "weeks"
    BIWEEKS = "biweeks"
    MONTHS = "months"
    BIMONTHS = "bimonths"
    QUARTERS = "quarters"
    SEMESTERS = "semesters"
    YEARS = "years"


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class Transaction(Base, TimestampMixin):
    # Opaque string ids: generated occurrences carry deterministic ids
    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    amount: Mapped[float] = mapped_column(Numeric(18, 2), nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    category_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[str | None] = mapped_column(String(64))
    credit_card_id: Mapped[str | None] = mapped_column(String(64))
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurring_type: Mapped[RecurringType | None] = mapped_column(SAEnum(RecurringType, name="recurring_type"))
    fixed_frequency: Mapped[FixedFrequency | None] = mapped_column(SAEnum(FixedFrequency, name="fixed_frequency"))
    installment_count: Mapped[int | None] = mapped_column(Integer)
    installment_period: Mapped[InstallmentPeriod | None] = mapped_column(
        SAEnum(InstallmentPeriod, name="installment_period")
    )
    current_installment: Mapped[int | None] = mapped_column(Integer)
    # No FK: an occurrence may outlive a deleted template
    parent_transaction_id: Mapped[str | None] = mapped_column(String(128))

    __table_args__ = (
        Index("ix_transaction_user_date", "user_id", "date"),
        Index("ix_transaction_parent", "parent_transaction_id"),
    )


class RenewalRecord(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    template_id: Mapped[str] = mapped_column(String(128), nullable=False)
    renewed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    renewal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("template_id", name="uq_renewal_template"),
    )
