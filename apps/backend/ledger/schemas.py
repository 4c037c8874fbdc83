from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .models import (
    FixedFrequency,
    InstallmentPeriod,
    RecurringType,
    TxnType,
)


class TransactionRecord(BaseModel):
    """Flat transaction snapshot the recurring engine reads and produces.

    Mirrors ``models.Transaction`` column for column so records can be built
    from ORM rows (``model_validate(row)``) and written back with
    ``model_dump()``.
    """

    id: str
    user_id: int
    description: str = ""
    amount: float
    type: TxnType
    category_id: str
    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None
    date: datetime
    paid: bool = False
    is_recurring: bool = False
    recurring_type: Optional[RecurringType] = None
    fixed_frequency: Optional[FixedFrequency] = None
    installment_count: Optional[int] = None
    installment_period: Optional[InstallmentPeriod] = None
    current_installment: Optional[int] = None
    parent_transaction_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


TransactionOut = TransactionRecord


class TransactionCreate(BaseModel):
    description: str = ""
    amount: float = Field(ge=0)
    type: TxnType
    category_id: str = Field(min_length=1, max_length=64)
    account_id: Optional[str] = Field(default=None, max_length=64)
    credit_card_id: Optional[str] = Field(default=None, max_length=64)
    date: datetime
    paid: bool = False
    is_recurring: bool = False
    recurring_type: Optional[RecurringType] = None
    fixed_frequency: Optional[FixedFrequency] = None
    installment_count: Optional[int] = Field(default=None, ge=1)
    installment_period: Optional[InstallmentPeriod] = None
    current_installment: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_recurrence(self):
        if not self.is_recurring:
            self.recurring_type = None
            self.fixed_frequency = None
            self.installment_count = None
            self.installment_period = None
            self.current_installment = None
            return self
        if self.recurring_type is None:
            raise ValueError("recurring_type is required for recurring transactions")
        if self.recurring_type == RecurringType.FIXED:
            if self.fixed_frequency is None:
                raise ValueError("fixed_frequency is required for fixed recurrence")
            self.installment_count = None
            self.installment_period = None
            self.current_installment = None
        else:
            if self.installment_count is None or self.installment_period is None:
                raise ValueError("installment_count and installment_period are required for installments")
            self.fixed_frequency = None
            if self.current_installment is None:
                self.current_installment = 1
            if self.current_installment > self.installment_count:
                raise ValueError("current_installment exceeds installment_count")
        return self


class TransactionUpdate(BaseModel):
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    type: Optional[TxnType] = None
    category_id: Optional[str] = Field(default=None, min_length=1, max_length=64)
    account_id: Optional[str] = Field(default=None, max_length=64)
    credit_card_id: Optional[str] = Field(default=None, max_length=64)
    date: Optional[datetime] = None
    paid: Optional[bool] = None
    fixed_frequency: Optional[FixedFrequency] = None
    installment_count: Optional[int] = Field(default=None, ge=1)
    installment_period: Optional[InstallmentPeriod] = None
    model_config = ConfigDict(extra="ignore")


class ExpansionResult(BaseModel):
    horizon: datetime
    created: list[TransactionOut] = Field(default_factory=list)
    skipped: int = 0
    failed: int = 0


class TransactionWriteResult(BaseModel):
    transaction: TransactionOut
    generated: list[TransactionOut] = Field(default_factory=list)
    cancelled_ids: list[str] = Field(default_factory=list)


class CancellationResult(BaseModel):
    template_id: str
    ids: list[str] = Field(default_factory=list)
    deleted: int = 0


class RenewalRunOut(BaseModel):
    users: int = 0
    templates_checked: int = 0
    templates_renewed: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0
