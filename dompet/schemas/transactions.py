from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dompet.models.transaction import TransactionType


class TransactionCreate(BaseModel):
    type: TransactionType
    amount: int = Field(..., gt=0)
    category: str | None = Field(None, max_length=100)
    description: str | None = None
    occurred_at: datetime | None = None


class TransactionUpdate(BaseModel):
    type: TransactionType | None = None
    amount: int | None = Field(None, gt=0)
    category: str | None = Field(None, max_length=100)
    description: str | None = None
    occurred_at: datetime | None = None


class TransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    household_id: UUID
    user_id: UUID | None = None
    type: TransactionType
    amount: int
    category: str | None = None
    description: str | None = None
    occurred_at: datetime
    created_at: datetime


class AnalyticsSummary(BaseModel):
    period_start: datetime
    period_end: datetime
    total_income: int
    total_expense: int
    net: int
    by_category: dict[str, int]


class BudgetOverview(BaseModel):
    month: str
    income: int
    expense: int
    remaining: int
    spent_percentage: int
