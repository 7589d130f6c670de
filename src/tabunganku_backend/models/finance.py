'''
Transactions, balances and recap models.
'''
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from ..database.db_enums import TransactionType


# --- 1. Internal value models (produced by core.aggregator) ---

class BalanceSummary(BaseModel):
    """Folded totals of a set of transactions. `balance` is never clamped."""
    balance: Decimal = Decimal("0")
    total_deposits: Decimal = Decimal("0")
    total_withdrawals: Decimal = Decimal("0")

    @computed_field
    @property
    def display_balance(self) -> Decimal:
        return max(Decimal("0"), self.balance)


class StudentPeriodSummary(BaseModel):
    """One row of the recap."""
    student_id: UUID
    student_name: str
    nisn: str
    class_name: str = Field(..., serialization_alias="class")
    overall_current_balance: Decimal
    period_deposits: Decimal = Decimal("0")
    period_withdrawals: Decimal = Decimal("0")

    @computed_field
    @property
    def display_balance(self) -> Decimal:
        return max(Decimal("0"), self.overall_current_balance)


class PeriodTotals(BaseModel):
    total_period_deposits: Decimal = Decimal("0")
    total_period_withdrawals: Decimal = Decimal("0")

    @computed_field
    @property
    def net_period_balance(self) -> Decimal:
        return self.total_period_deposits - self.total_period_withdrawals


# --- 2. API Models ---

class TransactionCreate(BaseModel):
    student_id: UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    type: TransactionType
    description: Optional[str] = None

    @field_validator("description")
    @classmethod
    def blank_description_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not value.strip():
            return None
        return value


class TransactionRead(BaseModel):
    id: UUID
    student_id: UUID
    teacher_id: Optional[UUID] = None
    amount: Decimal
    type: TransactionType
    description: Optional[str] = None
    created_at: datetime
    student_name: Optional[str] = None
    student_class: Optional[str] = None
    student_nisn: Optional[str] = None
    teacher_name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TransactionPage(BaseModel):
    items: list[TransactionRead]
    total: int
    page: int
    per_page: int


class StudentSummaryRead(BaseModel):
    student_id: UUID
    student_name: str
    nisn: str
    class_name: str = Field(..., serialization_alias="class")
    summary: BalanceSummary


class RecapQuery(BaseModel):
    class_name: Optional[str] = None
    day: Optional[date] = None
    search: Optional[str] = None


class RecapRead(PeriodTotals):
    class_name: Optional[str] = Field(None, serialization_alias="class")
    day: Optional[date] = Field(None, serialization_alias="date")
    rows: list[StudentPeriodSummary]


class GlobalStats(BaseModel):
    total_students: int
    total_balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal


class TransactionIdRequest(BaseModel):
    transaction_id: UUID = Field(..., alias="transactionId")
    model_config = ConfigDict(populate_by_name=True)
